"""The single stock mutation primitive.

Every change to StockLot.quantity goes through apply_delta. The change is one
conditional UPDATE against the database:

    UPDATE stock_lots SET quantity = quantity + delta
    WHERE <lot key> AND quantity >= -delta

and the affected-row count tells whether the guard held. There is no
read-then-write pair, so two concurrent decrements can never both pass on the
same stock.
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .conf import DEFAULT_LOCATION
from .exceptions import InsufficientStock, InvalidLotKey, InvalidQuantity, UnknownLot
from .keys import ItemKind, LotKey
from .models import StockLot
from .signals import notify_stock_changed

logger = logging.getLogger(__name__)

__all__ = ['ItemKind', 'LotKey', 'apply_delta', 'validate_quantity']


def validate_quantity(quantity) -> int:
    """Return quantity if it is a positive integer, else raise InvalidQuantity."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(quantity)
    return quantity


def _guarded_update(lots, delta: int) -> int:
    """Apply delta with a non-negativity guard; return the affected row count."""
    if delta < 0:
        lots = lots.filter(quantity__gte=-delta)
    return lots.update(quantity=F('quantity') + delta, updated_at=timezone.now())


def apply_delta(
    lot_key: LotKey,
    delta: int,
    location_default: str = DEFAULT_LOCATION,
    *,
    expiry_date=None,
    create_missing: bool = True,
) -> int:
    """
    Atomically add delta to a lot's quantity.

    Args:
        lot_key: The lot to change.
        delta: Positive for receipts and reversals, negative for consumption.
        location_default: Location for a lot created by this call.
        expiry_date: Expiry for a medication lot created by this call.
        create_missing: If False, a missing lot is an error even for delta > 0.

    Returns:
        The lot's new quantity.

    Raises:
        InvalidQuantity: If delta is zero or not an integer.
        InsufficientStock: If the lot exists but holds less than -delta.
        UnknownLot: If the lot does not exist and cannot be created here.
        InvalidLotKey: If an expiry date is given for a supply.

    Usage:
        key = LotKey.for_item('medication', 7, 'L100')
        apply_delta(key, 20, expiry_date=date(2099, 1, 1))  # -> 20
        apply_delta(key, -5)                                 # -> 15
    """
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise InvalidQuantity(delta, f"Delta must be a non-zero integer, got {delta!r}")
    if expiry_date is not None and not lot_key.is_medication:
        raise InvalidLotKey(f"Supply {lot_key.item_id} cannot carry an expiry date")

    lots = StockLot.objects.for_key(lot_key)

    with transaction.atomic():
        if _guarded_update(lots, delta):
            new_quantity = lots.values_list('quantity', flat=True).get()
        else:
            available = lots.values_list('quantity', flat=True).first()
            if available is not None:
                logger.warning(
                    f"Refused decrement of {-delta} on {lot_key}: only {available} on hand"
                )
                raise InsufficientStock(lot_key, requested=-delta, available=available)
            if delta < 0 or not create_missing:
                raise UnknownLot(lot_key)
            new_quantity = _create_lot(lot_key, delta, location_default, expiry_date)

        notify_stock_changed(lot_key, new_quantity)

    return new_quantity


def _create_lot(lot_key: LotKey, quantity: int, location: str, expiry_date) -> int:
    """Create the first row for lot_key, absorbing a concurrent creator."""
    try:
        with transaction.atomic():
            StockLot.objects.create(
                item_kind=lot_key.item_kind,
                item_id=lot_key.item_id,
                lot_code=lot_key.lot_code,
                location=location or DEFAULT_LOCATION,
                quantity=quantity,
                expiry_date=expiry_date,
            )
    except IntegrityError:
        # Another session created the lot first; add to it instead.
        lots = StockLot.objects.for_key(lot_key)
        if not _guarded_update(lots, quantity):
            raise
        return lots.values_list('quantity', flat=True).get()

    logger.info(f"Created stock lot {lot_key} with {quantity} at {location}")
    return quantity
