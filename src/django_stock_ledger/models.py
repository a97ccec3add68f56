"""Stock ledger models.

Provides:
- StockLot: Quantity of one catalog item in one lot (the only mutable stock state)
- PurchaseReceipt / PurchaseReceiptLine: Immutable audit of purchase intake
- ConsumptionRecord: Immutable dispense event tied to an encounter
- PrescriptionRecord: Advisory prescribing record, never moves stock

Catalog items, encounters and suppliers belong to other apps and are referenced
by opaque ids only.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .conf import DEFAULT_LOCATION
from .exceptions import ImmutableRecordError
from .keys import ItemKind, LotKey


class AvailabilityStatus(models.TextChoices):
    DISPONIBLE = 'DISPONIBLE', _('Available')
    AGOTADO = 'AGOTADO', _('Out of stock')
    NO_EN_CLINICA = 'NO_EN_CLINICA', _('Not stocked at the clinic')


class ImmutableRecordMixin:
    """Reject updates to rows that have already been written."""

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError(
                f"{type(self).__name__} {self.pk} is immutable once recorded"
            )
        super().save(*args, **kwargs)


# =============================================================================
# StockLot
# =============================================================================

class StockLotQuerySet(models.QuerySet):
    """Custom queryset for StockLot model."""

    def for_key(self, lot_key: LotKey):
        """Return the lot matching a LotKey (zero or one row)."""
        return self.filter(**lot_key.as_filter())

    def for_item(self, item_kind, item_id):
        """Return all lots of one catalog item."""
        return self.filter(item_kind=item_kind, item_id=str(item_id))

    def in_stock(self):
        """Return lots with a positive quantity."""
        return self.filter(quantity__gt=0)

    def medications(self):
        return self.filter(item_kind=ItemKind.MEDICATION)

    def expired(self, as_of):
        """Return medication lots whose expiry date is before as_of."""
        return self.medications().filter(expiry_date__lt=as_of)


class StockLot(models.Model):
    """
    Physical quantity of one catalog item in one lot.

    Quantity only moves through django_stock_ledger.ledger.apply_delta, which
    guards it with a conditional UPDATE; the check constraint below is the
    database backstop. Depleted lots stay as history.

    Usage:
        from django_stock_ledger.ledger import LotKey, apply_delta

        apply_delta(LotKey.for_item('medication', 7, 'L100'), 20, expiry_date=...)
    """

    item_kind = models.CharField(
        _('item kind'),
        max_length=20,
        choices=ItemKind.choices,
    )
    item_id = models.CharField(
        _('item id'),
        max_length=64,
        help_text=_('Catalog id of the item (CharField for UUID support)'),
    )
    lot_code = models.CharField(
        _('lot code'),
        max_length=100,
        null=True,
        blank=True,
        help_text=_('Required for medications, always null for supplies'),
    )
    location = models.CharField(
        _('location'),
        max_length=200,
        default=DEFAULT_LOCATION,
    )
    quantity = models.PositiveIntegerField(
        _('quantity'),
        default=0,
    )
    expiry_date = models.DateField(
        _('expiry date'),
        null=True,
        blank=True,
        help_text=_('Medication lots only'),
    )
    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True, db_index=True)

    objects = StockLotQuerySet.as_manager()

    class Meta:
        db_table = 'stock_lots'
        verbose_name = _('stock lot')
        verbose_name_plural = _('stock lots')
        ordering = ['item_kind', 'item_id', 'expiry_date', 'lot_code']
        indexes = [
            models.Index(fields=['item_kind', 'item_id'], name='stocklot_item_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0),
                name='stocklot_quantity_non_negative',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(item_kind=ItemKind.MEDICATION)
                    | models.Q(lot_code__isnull=True, expiry_date__isnull=True)
                ),
                name='stocklot_supply_untracked',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(item_kind=ItemKind.SUPPLY)
                    | models.Q(lot_code__isnull=False)
                ),
                name='stocklot_medication_has_lot_code',
            ),
            models.UniqueConstraint(
                fields=['item_kind', 'item_id', 'lot_code'],
                condition=models.Q(lot_code__isnull=False),
                name='unique_stocklot_per_lot_code',
            ),
            models.UniqueConstraint(
                fields=['item_kind', 'item_id'],
                condition=models.Q(lot_code__isnull=True),
                name='unique_untracked_stocklot_per_item',
            ),
        ]

    def __str__(self):
        return f"{self.lot_key} @ {self.location}: {self.quantity}"

    @property
    def lot_key(self) -> LotKey:
        return LotKey(self.item_kind, self.item_id, self.lot_code)

    def is_expired(self, as_of=None) -> bool:
        """Check if this lot's expiry date is before as_of (default: today)."""
        if self.expiry_date is None:
            return False
        return self.expiry_date < (as_of or timezone.localdate())


# =============================================================================
# Purchase intake audit
# =============================================================================

class PurchaseReceipt(ImmutableRecordMixin, models.Model):
    """
    Immutable record of one applied shipment.

    Written only after every line has been applied to the ledger, inside the
    same transaction.
    """

    occurred_at = models.DateTimeField(
        _('occurred at'),
        default=timezone.now,
        help_text=_('When the shipment was received (business time)'),
    )
    total_cost = models.DecimalField(
        _('total cost'),
        max_digits=14,
        decimal_places=2,
    )
    supplier_ref = models.CharField(
        _('supplier reference'),
        max_length=64,
        blank=True,
        default='',
        db_index=True,
        help_text=_('Id of the supplier in the purchasing app'),
    )
    reference = models.CharField(
        _('reference'),
        max_length=100,
        blank=True,
        default='',
        help_text=_('Supplier invoice or delivery note number'),
    )
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='stock_receipts',
        verbose_name=_('received by'),
    )
    recorded_at = models.DateTimeField(_('recorded at'), auto_now_add=True)

    class Meta:
        db_table = 'purchase_receipts'
        verbose_name = _('purchase receipt')
        verbose_name_plural = _('purchase receipts')
        ordering = ['-occurred_at', '-pk']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_cost__gte=0),
                name='purchasereceipt_total_non_negative',
            ),
        ]

    def __str__(self):
        return f"Receipt #{self.pk} ({self.occurred_at:%Y-%m-%d}): {self.total_cost}"


class PurchaseReceiptLine(ImmutableRecordMixin, models.Model):
    """One applied line of a purchase receipt."""

    receipt = models.ForeignKey(
        PurchaseReceipt,
        on_delete=models.PROTECT,
        related_name='lines',
        verbose_name=_('receipt'),
    )
    item_kind = models.CharField(_('item kind'), max_length=20, choices=ItemKind.choices)
    item_id = models.CharField(_('item id'), max_length=64)
    quantity = models.PositiveIntegerField(_('quantity'))
    unit_cost = models.DecimalField(_('unit cost'), max_digits=12, decimal_places=2)
    lot_code = models.CharField(_('lot code'), max_length=100, null=True, blank=True)
    expiry_date = models.DateField(_('expiry date'), null=True, blank=True)

    class Meta:
        db_table = 'purchase_receipt_lines'
        verbose_name = _('purchase receipt line')
        verbose_name_plural = _('purchase receipt lines')
        ordering = ['receipt', 'pk']
        indexes = [
            models.Index(fields=['item_kind', 'item_id'], name='receiptline_item_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name='receiptline_quantity_positive',
            ),
            models.CheckConstraint(
                condition=models.Q(unit_cost__gte=0),
                name='receiptline_unit_cost_non_negative',
            ),
        ]

    def __str__(self):
        return f"{self.quantity}x {self.lot_key} @ {self.unit_cost}"

    @property
    def lot_key(self) -> LotKey:
        return LotKey(self.item_kind, self.item_id, self.lot_code)

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_cost


# =============================================================================
# ConsumptionRecord
# =============================================================================

class ConsumptionRecord(ImmutableRecordMixin, models.Model):
    """
    Immutable dispense event.

    Created together with exactly one lot decrement of the same quantity;
    deleted only by reverse_consumption after the quantity is restored.
    """

    encounter_ref = models.CharField(
        _('encounter reference'),
        max_length=64,
        db_index=True,
        help_text=_('Id of the clinical encounter in the clinical records app'),
    )
    item_kind = models.CharField(_('item kind'), max_length=20, choices=ItemKind.choices)
    item_id = models.CharField(_('item id'), max_length=64)
    lot_code = models.CharField(_('lot code'), max_length=100, null=True, blank=True)
    quantity = models.PositiveIntegerField(_('quantity'))
    occurred_at = models.DateTimeField(
        _('occurred at'),
        default=timezone.now,
        help_text=_('When the item was dispensed'),
    )
    note = models.TextField(_('note'), blank=True, default='')
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='stock_consumptions',
        verbose_name=_('performed by'),
    )
    recorded_at = models.DateTimeField(_('recorded at'), auto_now_add=True)

    class Meta:
        db_table = 'consumption_records'
        verbose_name = _('consumption record')
        verbose_name_plural = _('consumption records')
        ordering = ['-occurred_at', '-pk']
        indexes = [
            models.Index(fields=['item_kind', 'item_id'], name='consumption_item_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name='consumption_quantity_positive',
            ),
        ]

    def __str__(self):
        return f"Consumed {self.quantity}x {self.lot_key} (encounter {self.encounter_ref})"

    @property
    def lot_key(self) -> LotKey:
        return LotKey(self.item_kind, self.item_id, self.lot_code)


# =============================================================================
# PrescriptionRecord
# =============================================================================

class PrescriptionRecord(models.Model):
    """
    Clinical intent to administer a medication.

    Advisory only: stores the availability seen at creation time and never
    references or changes a StockLot.
    """

    encounter_ref = models.CharField(_('encounter reference'), max_length=64, db_index=True)
    item_id = models.CharField(_('medication id'), max_length=64, db_index=True)
    quantity = models.PositiveIntegerField(_('quantity prescribed'))

    dose = models.CharField(_('dose'), max_length=100)
    frequency = models.CharField(_('frequency'), max_length=100)
    duration = models.CharField(_('duration'), max_length=100, blank=True, default='')
    instructions = models.TextField(_('additional instructions'), blank=True, default='')

    prescribed_at = models.DateTimeField(_('prescribed at'), default=timezone.now)
    prescribed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='stock_prescriptions',
        verbose_name=_('prescribed by'),
    )

    # Advisory snapshot
    availability_status = models.CharField(
        _('availability status'),
        max_length=20,
        choices=AvailabilityStatus.choices,
    )
    available_quantity = models.PositiveIntegerField(_('available quantity'), default=0)
    shortage_acknowledged = models.BooleanField(
        _('shortage acknowledged'),
        default=False,
        help_text=_('The prescriber confirmed despite a stock warning'),
    )

    class Meta:
        db_table = 'prescription_records'
        verbose_name = _('prescription record')
        verbose_name_plural = _('prescription records')
        ordering = ['-prescribed_at', '-pk']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name='prescription_quantity_positive',
            ),
        ]

    def __str__(self):
        return f"Rx {self.quantity}x medication#{self.item_id} ({self.availability_status})"
