"""Exceptions for django-stock-ledger."""


class StockLedgerError(Exception):
    """Base exception for stock ledger errors."""
    pass


class InvalidQuantity(StockLedgerError):
    """Raised when a mutating call receives a non-positive quantity."""

    def __init__(self, quantity, reason: str = None):
        self.quantity = quantity
        self.reason = reason or f"Quantity must be a positive integer, got {quantity!r}"
        super().__init__(self.reason)


class InvalidLotKey(StockLedgerError):
    """Raised when an item kind / lot code combination cannot identify a lot."""
    pass


class InvalidReceiptLine(StockLedgerError):
    """Raised when a purchase receipt line is malformed."""

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Line {line_number}: {reason}")


class InsufficientStock(StockLedgerError):
    """Raised when a decrement would take a lot below zero."""

    def __init__(self, lot_key, requested: int, available: int):
        self.lot_key = lot_key
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {lot_key}: requested {requested}, available {available}"
        )


class UnknownLot(StockLedgerError):
    """Raised when a decrement targets a lot that does not exist."""

    def __init__(self, lot_key):
        self.lot_key = lot_key
        super().__init__(f"No stock lot exists for {lot_key}")


class LotSelectionRequired(StockLedgerError):
    """Raised when a medication has several candidate lots and none was chosen."""

    def __init__(self, item_id, candidates: list[str]):
        self.item_id = item_id
        self.candidates = candidates
        super().__init__(
            f"Medication {item_id} has {len(candidates)} lots in stock "
            f"({', '.join(candidates)}); a lot code must be selected"
        )


class OriginatingLotMissing(StockLedgerError):
    """Raised when a reversal cannot find the lot its consumption came from."""

    def __init__(self, consumption_id, lot_key):
        self.consumption_id = consumption_id
        self.lot_key = lot_key
        super().__init__(
            f"Cannot reverse consumption {consumption_id}: originating lot {lot_key} "
            "no longer exists. Reconcile the inventory manually."
        )


class ConsumptionNotFound(StockLedgerError):
    """Raised when a consumption record does not exist (or was already reversed)."""

    def __init__(self, consumption_id):
        self.consumption_id = consumption_id
        super().__init__(f"Consumption record {consumption_id} not found")


class PartialBatchFailure(StockLedgerError):
    """Raised when one step of a purchase batch fails; the whole batch is rolled back.

    line_number is None when the failure happened while writing the audit records.
    """

    def __init__(self, line_number, reason: str):
        self.line_number = line_number
        self.reason = reason
        where = f"line {line_number}" if line_number is not None else "audit record"
        super().__init__(f"Purchase receipt rolled back, {where} failed: {reason}")


class ShortageNotAcknowledged(StockLedgerError):
    """Raised when a prescription carries a stock warning that was not acknowledged."""

    def __init__(self, availability):
        self.availability = availability
        super().__init__(
            f"Prescription needs acknowledgement: {availability.warning_message}"
        )


class ImmutableRecordError(StockLedgerError):
    """Raised when attempting to modify an immutable ledger record."""
    pass


class CatalogResolverLoadError(StockLedgerError):
    """Raised when the configured catalog resolver cannot be loaded."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load catalog resolver '{path}': {reason}")
