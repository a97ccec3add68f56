"""Tests for stock ledger models."""
import pytest
from datetime import date
from decimal import Decimal

from django.db import IntegrityError, transaction

from django_stock_ledger.conf import DEFAULT_LOCATION
from django_stock_ledger.exceptions import ImmutableRecordError
from django_stock_ledger.keys import LotKey
from django_stock_ledger.models import (
    ConsumptionRecord,
    PurchaseReceipt,
    PurchaseReceiptLine,
    StockLot,
)


@pytest.mark.django_db
class TestStockLotModel:
    """Test suite for StockLot model."""

    def test_defaults(self):
        """A new lot starts empty at the main store."""
        lot = StockLot.objects.create(item_kind='supply', item_id='3')
        assert lot.quantity == 0
        assert lot.location == DEFAULT_LOCATION
        assert lot.lot_code is None

    def test_lot_key(self):
        lot = StockLot.objects.create(
            item_kind='medication', item_id='7', lot_code='L100', expiry_date=date(2099, 1, 1)
        )
        assert lot.lot_key == LotKey.for_item('medication', 7, 'L100')

    def test_quantity_cannot_be_negative(self):
        """The database rejects a negative quantity."""
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                StockLot.objects.create(item_kind='supply', item_id='3', quantity=-1)

    def test_medication_requires_lot_code(self):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                StockLot.objects.create(item_kind='medication', item_id='7')

    def test_supply_cannot_carry_expiry(self):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                StockLot.objects.create(
                    item_kind='supply', item_id='3', expiry_date=date(2099, 1, 1)
                )

    def test_lot_code_unique_per_item(self):
        """The same lot code cannot be recorded twice for one medication."""
        StockLot.objects.create(item_kind='medication', item_id='7', lot_code='L100')
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                StockLot.objects.create(item_kind='medication', item_id='7', lot_code='L100')

    def test_same_lot_code_allowed_for_other_item(self):
        StockLot.objects.create(item_kind='medication', item_id='7', lot_code='L100')
        StockLot.objects.create(item_kind='medication', item_id='8', lot_code='L100')
        assert StockLot.objects.filter(lot_code='L100').count() == 2

    def test_one_untracked_lot_per_supply(self):
        """NULL lot codes still collide for supplies."""
        StockLot.objects.create(item_kind='supply', item_id='3')
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                StockLot.objects.create(item_kind='supply', item_id='3')

    def test_is_expired(self):
        lot = StockLot(item_kind='medication', item_id='7', lot_code='L1', expiry_date=date(2024, 3, 1))
        assert lot.is_expired(date(2024, 3, 2))
        assert not lot.is_expired(date(2024, 3, 1))
        assert not StockLot(item_kind='supply', item_id='3').is_expired(date(2024, 3, 2))


@pytest.mark.django_db
class TestStockLotQuerySet:
    """Test suite for StockLot queryset helpers."""

    @pytest.fixture
    def lots(self):
        return [
            StockLot.objects.create(
                item_kind='medication', item_id='7', lot_code='OLD',
                quantity=5, expiry_date=date(2024, 1, 1),
            ),
            StockLot.objects.create(
                item_kind='medication', item_id='7', lot_code='NEW',
                quantity=0, expiry_date=date(2099, 1, 1),
            ),
            StockLot.objects.create(item_kind='supply', item_id='7', quantity=2),
        ]

    def test_for_item_separates_kinds(self, lots):
        """Medication 7 and supply 7 are different items."""
        assert StockLot.objects.for_item('medication', 7).count() == 2
        assert StockLot.objects.for_item('supply', '7').count() == 1

    def test_for_key(self, lots):
        assert StockLot.objects.for_key(LotKey.for_item('supply', 7)).get() == lots[2]

    def test_in_stock(self, lots):
        assert set(StockLot.objects.in_stock()) == {lots[0], lots[2]}

    def test_expired(self, lots):
        assert list(StockLot.objects.expired(date(2024, 6, 1))) == [lots[0]]


@pytest.mark.django_db
class TestImmutableRecords:
    """Audit records cannot be edited once written."""

    def test_receipt_cannot_be_updated(self):
        receipt = PurchaseReceipt.objects.create(total_cost=Decimal('10.00'))
        receipt.reference = 'changed'
        with pytest.raises(ImmutableRecordError):
            receipt.save()

    def test_receipt_line_cannot_be_updated(self):
        receipt = PurchaseReceipt.objects.create(total_cost=Decimal('10.00'))
        line = PurchaseReceiptLine.objects.create(
            receipt=receipt, item_kind='supply', item_id='3',
            quantity=10, unit_cost=Decimal('1.00'),
        )
        line.quantity = 11
        with pytest.raises(ImmutableRecordError):
            line.save()

    def test_consumption_cannot_be_updated(self):
        record = ConsumptionRecord.objects.create(
            encounter_ref='E1', item_kind='supply', item_id='3', quantity=1
        )
        record.quantity = 2
        with pytest.raises(ImmutableRecordError):
            record.save()

    def test_receipt_line_total(self):
        line = PurchaseReceiptLine(quantity=4, unit_cost=Decimal('1.25'))
        assert line.line_total == Decimal('5.00')
