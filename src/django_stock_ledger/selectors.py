"""Read-only queries over the stock ledger.

Nothing here locks or writes. Results reflect the latest committed state at
query time, which is fine for advisory and alerting use; the consumption path
re-checks stock at its own atomic write.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from .catalog import describe_item
from .conf import get_low_stock_threshold
from .keys import ItemKind, LotKey
from .ledger import validate_quantity
from .models import (
    AvailabilityStatus,
    ConsumptionRecord,
    PurchaseReceipt,
    PurchaseReceiptLine,
    StockLot,
)


# =============================================================================
# Lots and availability
# =============================================================================

def list_lots(item_kind: str, item_id, *, in_stock_only: bool = False):
    """Return the lots of an item, earliest expiry first."""
    lots = StockLot.objects.for_item(item_kind, item_id)
    if in_stock_only:
        lots = lots.in_stock()
    return lots.order_by('expiry_date', 'lot_code', 'pk')


def aggregate_availability(item_kind: str, item_id) -> int:
    """Total quantity of an item across its lots with positive quantity."""
    return list_lots(item_kind, item_id, in_stock_only=True).aggregate(
        total=Coalesce(Sum('quantity'), 0)
    )['total']


@dataclass(frozen=True)
class Availability:
    """Result of a prescription availability check."""

    item_id: str
    status: str
    available_quantity: int
    quantity_requested: int

    @property
    def exceeds_available(self) -> bool:
        return (
            self.status == AvailabilityStatus.DISPONIBLE
            and self.quantity_requested > self.available_quantity
        )

    @property
    def has_warning(self) -> bool:
        return self.status != AvailabilityStatus.DISPONIBLE or self.exceeds_available

    @property
    def warning_message(self) -> str:
        if self.status == AvailabilityStatus.NO_EN_CLINICA:
            return f"Medication {self.item_id} is not stocked at the clinic"
        if self.status == AvailabilityStatus.AGOTADO:
            return f"Medication {self.item_id} is out of stock"
        if self.exceeds_available:
            return (
                f"Prescribed quantity {self.quantity_requested} of medication {self.item_id} "
                f"exceeds available stock {self.available_quantity}"
            )
        return ''


def evaluate_availability(
    item_id,
    quantity_requested: int,
    item_kind: str = ItemKind.MEDICATION,
) -> Availability:
    """
    Classify an item's stock for prescribing.

    NO_EN_CLINICA when no lot was ever created, AGOTADO when every lot is
    depleted, DISPONIBLE otherwise. Never changes stock.
    """
    validate_quantity(quantity_requested)

    lots = StockLot.objects.for_item(item_kind, item_id)
    totals = lots.aggregate(
        lot_count=Count('pk'),
        available=Coalesce(Sum('quantity', filter=Q(quantity__gt=0)), 0),
    )

    if totals['lot_count'] == 0:
        status = AvailabilityStatus.NO_EN_CLINICA
    elif totals['available'] == 0:
        status = AvailabilityStatus.AGOTADO
    else:
        status = AvailabilityStatus.DISPONIBLE

    return Availability(
        item_id=str(item_id),
        status=status,
        available_quantity=totals['available'],
        quantity_requested=quantity_requested,
    )


# =============================================================================
# Alerts
# =============================================================================

@dataclass(frozen=True)
class ItemLevel:
    """Aggregate availability of one item that has at least one lot."""

    item_kind: str
    item_id: str
    available_quantity: int


@dataclass(frozen=True)
class ExpiredLot:
    item_kind: str
    item_id: str
    lot_code: Optional[str]
    location: str
    quantity: int
    expiry_date: date


@dataclass(frozen=True)
class StockAlerts:
    """Low-stock, out-of-stock and expired-lot alert sets."""

    low_stock: tuple
    out_of_stock: tuple
    expired_lots: tuple
    threshold: int
    as_of: date

    @property
    def has_alerts(self) -> bool:
        return bool(self.low_stock or self.out_of_stock or self.expired_lots)


def item_levels() -> list[ItemLevel]:
    """Aggregate availability for every item that has ever had a lot."""
    rows = (
        StockLot.objects.values('item_kind', 'item_id')
        .annotate(available=Coalesce(Sum('quantity', filter=Q(quantity__gt=0)), 0))
        .order_by('item_kind', 'item_id')
    )
    return [
        ItemLevel(row['item_kind'], row['item_id'], row['available'])
        for row in rows
    ]


def derive_alerts(*, today: date = None, threshold: int = None) -> StockAlerts:
    """
    Derive stock alerts from current lots. Recomputed on every call.

    - low_stock: items with 0 < availability <= threshold
    - out_of_stock: items with lots but availability == 0
    - expired_lots: medication lots expired before today that still hold stock
    """
    today = today or timezone.localdate()
    if threshold is None:
        threshold = get_low_stock_threshold()

    levels = item_levels()
    low_stock = tuple(lvl for lvl in levels if 0 < lvl.available_quantity <= threshold)
    out_of_stock = tuple(lvl for lvl in levels if lvl.available_quantity == 0)

    expired = (
        StockLot.objects.expired(today)
        .in_stock()
        .order_by('expiry_date', 'item_id', 'lot_code')
    )
    expired_lots = tuple(
        ExpiredLot(
            item_kind=lot.item_kind,
            item_id=lot.item_id,
            lot_code=lot.lot_code,
            location=lot.location,
            quantity=lot.quantity,
            expiry_date=lot.expiry_date,
        )
        for lot in expired
    )

    return StockAlerts(
        low_stock=low_stock,
        out_of_stock=out_of_stock,
        expired_lots=expired_lots,
        threshold=threshold,
        as_of=today,
    )


EXPIRY_BUCKETS = ('expired', 'within_30_days', 'within_90_days', 'beyond_90_days', 'no_expiry')


def expiry_breakdown(*, today: date = None) -> dict[str, int]:
    """Quantity of medication stock per expiry bucket."""
    today = today or timezone.localdate()
    buckets = dict.fromkeys(EXPIRY_BUCKETS, 0)

    for expiry_date, quantity in StockLot.objects.medications().in_stock().values_list(
        'expiry_date', 'quantity'
    ):
        if expiry_date is None:
            buckets['no_expiry'] += quantity
            continue
        days_left = (expiry_date - today).days
        if days_left < 0:
            buckets['expired'] += quantity
        elif days_left <= 30:
            buckets['within_30_days'] += quantity
        elif days_left <= 90:
            buckets['within_90_days'] += quantity
        else:
            buckets['beyond_90_days'] += quantity

    return buckets


@dataclass(frozen=True)
class InventorySummary:
    lot_count: int
    item_count: int
    total_quantity: int
    expired_lot_count: int


def inventory_summary(*, today: date = None) -> InventorySummary:
    """Headline figures for the inventory dashboard."""
    today = today or timezone.localdate()
    lots = StockLot.objects.all()
    return InventorySummary(
        lot_count=lots.count(),
        item_count=lots.order_by().values('item_kind', 'item_id').distinct().count(),
        total_quantity=lots.aggregate(total=Coalesce(Sum('quantity'), 0))['total'],
        expired_lot_count=lots.expired(today).in_stock().count(),
    )


# =============================================================================
# Change polling
# =============================================================================

def lots_changed_since(since):
    """Return lots written after `since`, oldest change first."""
    return StockLot.objects.filter(updated_at__gt=since).order_by('updated_at', 'pk')


# =============================================================================
# Receipts and consumption history
# =============================================================================

@dataclass(frozen=True)
class ReceiptConfirmationLine:
    """One applied receipt line with the lot's quantity after intake."""

    lot_key: LotKey
    name: str
    unit_of_measure: str
    quantity_received: int
    line_total: Decimal
    quantity_on_hand: int


def receipt_confirmation(receipt: PurchaseReceipt) -> list[ReceiptConfirmationLine]:
    """Per-line confirmation for the purchasing collaborator."""
    confirmation = []
    for line in receipt.lines.order_by('pk'):
        entry = describe_item(line.item_kind, line.item_id)
        on_hand = (
            StockLot.objects.for_key(line.lot_key)
            .values_list('quantity', flat=True)
            .first()
        )
        confirmation.append(
            ReceiptConfirmationLine(
                lot_key=line.lot_key,
                name=entry.name,
                unit_of_measure=entry.unit_of_measure,
                quantity_received=line.quantity,
                line_total=line.line_total,
                quantity_on_hand=on_hand or 0,
            )
        )
    return confirmation


def consumptions_for_encounter(encounter_ref):
    """Live consumption records of one encounter, oldest first."""
    return ConsumptionRecord.objects.filter(encounter_ref=str(encounter_ref)).order_by(
        'occurred_at', 'pk'
    )


# =============================================================================
# Conservation check
# =============================================================================

@dataclass(frozen=True)
class LotDiscrepancy:
    """A lot whose on-hand quantity disagrees with its movements."""

    lot_key: LotKey
    on_hand: Optional[int]
    received: int
    consumed: int

    @property
    def expected(self) -> int:
        return self.received - self.consumed


def _totals_by_lot(queryset) -> dict[LotKey, int]:
    rows = queryset.values('item_kind', 'item_id', 'lot_code').annotate(total=Sum('quantity'))
    return {
        LotKey(row['item_kind'], row['item_id'], row['lot_code']): row['total']
        for row in rows.order_by()
    }


def find_conservation_mismatches() -> list[LotDiscrepancy]:
    """
    Check received - live consumed == on hand for every lot.

    A lot with movements but no row (removed outside the ledger) is reported
    with on_hand=None.
    """
    received = _totals_by_lot(PurchaseReceiptLine.objects.all())
    consumed = _totals_by_lot(ConsumptionRecord.objects.all())
    on_hand = {
        lot.lot_key: lot.quantity
        for lot in StockLot.objects.only('item_kind', 'item_id', 'lot_code', 'quantity')
    }

    mismatches = []
    keys = set(received) | set(consumed) | set(on_hand)
    for lot_key in sorted(keys, key=str):
        discrepancy = LotDiscrepancy(
            lot_key=lot_key,
            on_hand=on_hand.get(lot_key),
            received=received.get(lot_key, 0),
            consumed=consumed.get(lot_key, 0),
        )
        if discrepancy.on_hand != discrepancy.expected:
            mismatches.append(discrepancy)
    return mismatches
