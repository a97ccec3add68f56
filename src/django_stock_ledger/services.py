"""Stock ledger services.

Write paths, each one transaction:
- receive_purchase: merge a shipment into the ledger, then record its audit trail
- consume: decrement exactly one lot and record the dispense event
- reverse_consumption: restore a dispense to its lot and remove the record
- reverse_encounter_consumptions: reverse every dispense of one encounter
- record_prescription: advisory record, never touches stock
- update_lot_details: edit lot location / expiry, never quantity

Every stock change goes through ledger.apply_delta. Nothing here retries a
failed decrement; the caller decides what to do with the error.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.db import DatabaseError, transaction
from django.utils.dateparse import parse_date

from .conf import DEFAULT_LOCATION
from .exceptions import (
    ConsumptionNotFound,
    InsufficientStock,
    InvalidLotKey,
    InvalidReceiptLine,
    LotSelectionRequired,
    OriginatingLotMissing,
    PartialBatchFailure,
    ShortageNotAcknowledged,
    StockLedgerError,
    UnknownLot,
)
from .keys import ItemKind, LotKey
from .ledger import apply_delta, validate_quantity
from .models import (
    ConsumptionRecord,
    PrescriptionRecord,
    PurchaseReceipt,
    PurchaseReceiptLine,
    StockLot,
)
from .selectors import evaluate_availability, list_lots
from .signals import notify_stock_changed

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')

# Bounds of PurchaseReceiptLine.unit_cost (12, 2) and PurchaseReceipt.total_cost (14, 2)
MAX_UNIT_COST = Decimal('1e10')
MAX_TOTAL_COST = Decimal('1e12')


def _require_encounter_ref(encounter_ref) -> str:
    encounter_ref = str(encounter_ref or '').strip()
    if not encounter_ref:
        raise ValueError("An encounter reference is required")
    return encounter_ref


# =============================================================================
# Purchase intake
# =============================================================================

@dataclass(frozen=True)
class _ReceiptLine:
    lot_key: LotKey
    quantity: int
    unit_cost: Decimal
    expiry_date: Optional[date]

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_cost


def _parse_receipt_line(number: int, line: dict) -> _ReceiptLine:
    """Validate one incoming line. Raises before anything is applied."""
    lot_key = LotKey.for_item(line.get('item_kind'), line.get('item_id'), line.get('lot_code'))
    quantity = validate_quantity(line.get('quantity'))

    if line.get('unit_cost') is None:
        raise InvalidReceiptLine(number, "Unit cost is required")
    try:
        unit_cost = Decimal(str(line['unit_cost']))
        if not unit_cost.is_finite() or unit_cost < 0:
            raise InvalidReceiptLine(number, f"Unit cost must be non-negative, got {unit_cost}")
        unit_cost = unit_cost.quantize(CENTS)
    except InvalidOperation:
        raise InvalidReceiptLine(number, f"Invalid unit cost {line['unit_cost']!r}")
    if unit_cost >= MAX_UNIT_COST:
        raise InvalidReceiptLine(number, f"Unit cost {unit_cost} is too large")

    expiry_date = None
    if lot_key.is_medication:
        expiry_date = line.get('expiry_date')
        if isinstance(expiry_date, str):
            try:
                expiry_date = parse_date(expiry_date)
            except ValueError:
                expiry_date = None
        if not isinstance(expiry_date, date):
            raise InvalidReceiptLine(
                number, f"Medication lot {lot_key.lot_code} requires a valid expiry date"
            )

    return _ReceiptLine(lot_key, quantity, unit_cost, expiry_date)


def _warn_on_expiry_mismatch(line: _ReceiptLine) -> None:
    recorded = (
        StockLot.objects.for_key(line.lot_key)
        .values_list('expiry_date', flat=True)
        .first()
    )
    if recorded != line.expiry_date:
        logger.warning(
            f"Received {line.lot_key} with expiry {line.expiry_date}, "
            f"keeping recorded expiry {recorded}"
        )


def receive_purchase(
    lines: list[dict],
    *,
    supplier_ref: str = '',
    reference: str = '',
    occurred_at=None,
    received_by=None,
) -> PurchaseReceipt:
    """
    Apply a shipment to the ledger and record it.

    Args:
        lines: List of line dicts with keys item_kind, item_id, quantity,
            unit_cost and, for medications, lot_code and expiry_date.
        supplier_ref: Id of the supplier in the purchasing app.
        reference: Supplier invoice / delivery note number.
        occurred_at: When the shipment arrived (defaults to now).
        received_by: Optional user receiving the shipment.

    Returns:
        The PurchaseReceipt, with its lines.

    Raises:
        InvalidQuantity, InvalidLotKey, InvalidReceiptLine: A line is malformed
            (nothing applied).
        PartialBatchFailure: Applying a line or writing the audit records
            failed; every line of the batch is rolled back.

    Usage:
        receipt = receive_purchase([
            {'item_kind': 'medication', 'item_id': 7, 'lot_code': 'L200',
             'expiry_date': date(2099, 1, 1), 'quantity': 20, 'unit_cost': '1.50'},
            {'item_kind': 'supply', 'item_id': 3, 'quantity': 50, 'unit_cost': '0.20'},
        ], supplier_ref='12')
    """
    if not lines:
        raise InvalidReceiptLine(0, "A purchase receipt needs at least one line")

    parsed = [_parse_receipt_line(number, line) for number, line in enumerate(lines, start=1)]
    total_cost = sum((line.line_total for line in parsed), Decimal('0')).quantize(CENTS)
    if total_cost >= MAX_TOTAL_COST:
        raise InvalidReceiptLine(0, f"Receipt total {total_cost} is too large")

    with transaction.atomic():
        for number, line in enumerate(parsed, start=1):
            try:
                apply_delta(
                    line.lot_key,
                    line.quantity,
                    DEFAULT_LOCATION,
                    expiry_date=line.expiry_date,
                )
            except (StockLedgerError, DatabaseError) as e:
                logger.warning(f"Purchase receipt line {number} ({line.lot_key}) failed: {e}")
                raise PartialBatchFailure(number, str(e)) from e

            if line.lot_key.is_medication:
                _warn_on_expiry_mismatch(line)

        try:
            with transaction.atomic():
                receipt_kwargs = {
                    'total_cost': total_cost,
                    'supplier_ref': str(supplier_ref or ''),
                    'reference': reference or '',
                    'received_by': received_by,
                }
                if occurred_at is not None:
                    receipt_kwargs['occurred_at'] = occurred_at
                receipt = PurchaseReceipt.objects.create(**receipt_kwargs)

                PurchaseReceiptLine.objects.bulk_create([
                    PurchaseReceiptLine(
                        receipt=receipt,
                        item_kind=line.lot_key.item_kind,
                        item_id=line.lot_key.item_id,
                        lot_code=line.lot_key.lot_code,
                        quantity=line.quantity,
                        unit_cost=line.unit_cost,
                        expiry_date=line.expiry_date,
                    )
                    for line in parsed
                ])
        except DatabaseError as e:
            logger.warning(f"Purchase receipt audit write failed: {e}")
            raise PartialBatchFailure(None, str(e)) from e

    logger.info(
        f"Received purchase receipt {receipt.pk}: {len(parsed)} lines, total {total_cost}"
    )
    return receipt


# =============================================================================
# Consumption
# =============================================================================

def _select_medication_lot(item_id, quantity: int) -> LotKey:
    """Pick the only in-stock lot of a medication when none was chosen."""
    candidates = list(
        list_lots(ItemKind.MEDICATION, item_id, in_stock_only=True)
        .values_list('lot_code', flat=True)
    )
    item_key = LotKey(ItemKind.MEDICATION.value, str(item_id))

    if len(candidates) > 1:
        raise LotSelectionRequired(str(item_id), candidates)
    if not candidates:
        if StockLot.objects.for_item(ItemKind.MEDICATION, item_id).exists():
            raise InsufficientStock(item_key, requested=quantity, available=0)
        raise UnknownLot(item_key)

    logger.info(f"Auto-selected lot {candidates[0]} for medication {item_id}")
    return LotKey.for_item(ItemKind.MEDICATION, item_id, candidates[0])


@transaction.atomic
def consume(
    encounter_ref,
    item_kind: str,
    item_id,
    lot_code: Optional[str],
    quantity: int,
    note: str = '',
    *,
    occurred_at=None,
    performed_by=None,
) -> ConsumptionRecord:
    """
    Record a dispense and decrement its lot, as one unit.

    Supplies need no lot code. A medication without a lot code is dispensed
    from its only in-stock lot; with several candidates the caller must pick
    one. Whatever lot is chosen, stock is re-checked by the atomic decrement.

    Returns:
        The created ConsumptionRecord.

    Raises:
        InvalidQuantity: If quantity is not a positive integer.
        InvalidLotKey: If item_kind is unknown.
        LotSelectionRequired: Several medication lots qualify.
        InsufficientStock: The lot holds less than quantity.
        UnknownLot: The lot does not exist.
    """
    validate_quantity(quantity)
    encounter_ref = _require_encounter_ref(encounter_ref)

    if item_kind == ItemKind.MEDICATION and not (lot_code or '').strip():
        lot_key = _select_medication_lot(item_id, quantity)
    else:
        lot_key = LotKey.for_item(item_kind, item_id, lot_code)

    remaining = apply_delta(lot_key, -quantity)

    record_kwargs = {
        'encounter_ref': encounter_ref,
        'item_kind': lot_key.item_kind,
        'item_id': lot_key.item_id,
        'lot_code': lot_key.lot_code,
        'quantity': quantity,
        'note': note or '',
        'performed_by': performed_by,
    }
    if occurred_at is not None:
        record_kwargs['occurred_at'] = occurred_at
    record = ConsumptionRecord.objects.create(**record_kwargs)

    logger.info(
        f"Consumption {record.pk}: {quantity}x {lot_key} for encounter {encounter_ref}, "
        f"{remaining} left"
    )
    return record


# =============================================================================
# Reversal
# =============================================================================

def _restore(record: ConsumptionRecord) -> None:
    """Return a record's quantity to its lot, then delete the record."""
    try:
        apply_delta(record.lot_key, record.quantity, create_missing=False)
    except UnknownLot:
        logger.warning(
            f"Consumption {record.pk} not reversed: lot {record.lot_key} no longer exists"
        )
        raise OriginatingLotMissing(record.pk, record.lot_key)

    record_id = record.pk
    record.delete()
    logger.info(f"Reversed consumption {record_id}: {record.quantity}x {record.lot_key}")


@transaction.atomic
def reverse_consumption(consumption_id) -> None:
    """
    Undo a consumption: restore its lot and delete the record.

    The record row is locked for the duration, so two concurrent reversals of
    the same record cannot both restore stock.

    Raises:
        ConsumptionNotFound: The record does not exist or was already reversed.
        OriginatingLotMissing: The lot was removed; the record is kept for
            manual reconciliation.
    """
    try:
        record = ConsumptionRecord.objects.select_for_update().get(pk=consumption_id)
    except ConsumptionRecord.DoesNotExist:
        raise ConsumptionNotFound(consumption_id)

    _restore(record)


@transaction.atomic
def reverse_encounter_consumptions(encounter_ref) -> int:
    """
    Reverse every consumption of one encounter, all or nothing.

    Called by the clinical records app before it deletes an encounter.

    Returns:
        Number of consumption records reversed.
    """
    records = list(
        ConsumptionRecord.objects.select_for_update()
        .filter(encounter_ref=str(encounter_ref))
        .order_by('pk')
    )
    for record in records:
        _restore(record)
    return len(records)


# =============================================================================
# Prescriptions (advisory)
# =============================================================================

def record_prescription(
    encounter_ref,
    item_id,
    quantity: int,
    *,
    dose: str,
    frequency: str,
    duration: str = '',
    instructions: str = '',
    prescribed_at=None,
    prescribed_by=None,
    acknowledge_shortage: bool = False,
) -> PrescriptionRecord:
    """
    Record a prescription with the stock advisory seen at creation time.

    Prescribing is clinical intent: no stock moves, even when the prescriber
    acknowledges a shortage.

    Raises:
        InvalidQuantity: If quantity is not a positive integer.
        ShortageNotAcknowledged: The medication is not stocked, out of stock
            or short, and acknowledge_shortage is False.
    """
    validate_quantity(quantity)
    encounter_ref = _require_encounter_ref(encounter_ref)
    if not (dose or '').strip() or not (frequency or '').strip():
        raise ValueError("Dose and frequency are required")

    availability = evaluate_availability(item_id, quantity)
    if availability.has_warning and not acknowledge_shortage:
        raise ShortageNotAcknowledged(availability)

    record_kwargs = {
        'encounter_ref': encounter_ref,
        'item_id': str(item_id),
        'quantity': quantity,
        'dose': dose.strip(),
        'frequency': frequency.strip(),
        'duration': duration or '',
        'instructions': instructions or '',
        'prescribed_by': prescribed_by,
        'availability_status': availability.status,
        'available_quantity': availability.available_quantity,
        'shortage_acknowledged': availability.has_warning,
    }
    if prescribed_at is not None:
        record_kwargs['prescribed_at'] = prescribed_at
    return PrescriptionRecord.objects.create(**record_kwargs)


# =============================================================================
# Lot metadata
# =============================================================================

@transaction.atomic
def update_lot_details(lot_id, *, location: str = None, expiry_date: date = None) -> StockLot:
    """Edit a lot's location or expiry date. Quantity is not editable here."""
    lot = StockLot.objects.select_for_update().get(pk=lot_id)
    update_fields = []

    if location is not None:
        location = location.strip()
        if not location:
            raise ValueError("Location cannot be blank")
        lot.location = location
        update_fields.append('location')

    if expiry_date is not None:
        if not lot.lot_key.is_medication:
            raise InvalidLotKey(f"Supply {lot.item_id} cannot carry an expiry date")
        lot.expiry_date = expiry_date
        update_fields.append('expiry_date')

    if update_fields:
        lot.save(update_fields=update_fields + ['updated_at'])
        notify_stock_changed(lot.lot_key, lot.quantity)

    return lot
