"""Tests for consumption reversal."""
import pytest

from django_stock_ledger.exceptions import ConsumptionNotFound, OriginatingLotMissing
from django_stock_ledger.models import ConsumptionRecord, StockLot
from django_stock_ledger.services import (
    consume,
    reverse_consumption,
    reverse_encounter_consumptions,
)


@pytest.mark.django_db
class TestReverseConsumption:
    """Test suite for reverse_consumption."""

    def test_round_trip_restores_quantity(self, stock):
        """consume then reverse leaves the lot where it started."""
        lot_key = stock('medication', 7, 'L100', 8)

        record = consume('enc1', 'medication', 7, 'L100', 3)
        reverse_consumption(record.pk)

        assert StockLot.objects.for_key(lot_key).get().quantity == 8
        assert not ConsumptionRecord.objects.exists()

    def test_reverse_into_depleted_lot(self, stock):
        lot_key = stock('supply', 3, None, 2)
        record = consume('enc1', 'supply', 3, None, 2)

        reverse_consumption(record.pk)

        assert StockLot.objects.for_key(lot_key).get().quantity == 2

    def test_unknown_record(self, db):
        with pytest.raises(ConsumptionNotFound) as exc_info:
            reverse_consumption(999)
        assert exc_info.value.consumption_id == 999

    def test_double_reversal_refused(self, stock):
        """A record can only be reversed once."""
        lot_key = stock('supply', 3, None, 5)
        record = consume('enc1', 'supply', 3, None, 2)

        reverse_consumption(record.pk)
        with pytest.raises(ConsumptionNotFound):
            reverse_consumption(record.pk)

        assert StockLot.objects.for_key(lot_key).get().quantity == 5

    def test_missing_lot_keeps_record(self, stock):
        """A lot removed outside the ledger is not recreated."""
        lot_key = stock('medication', 7, 'L100', 5)
        record = consume('enc1', 'medication', 7, 'L100', 2)
        StockLot.objects.for_key(lot_key).delete()

        with pytest.raises(OriginatingLotMissing) as exc_info:
            reverse_consumption(record.pk)

        assert exc_info.value.consumption_id == record.pk
        assert exc_info.value.lot_key == lot_key
        assert ConsumptionRecord.objects.filter(pk=record.pk).exists()
        assert not StockLot.objects.exists()


@pytest.mark.django_db
class TestReverseEncounterConsumptions:
    """Test suite for reverse_encounter_consumptions."""

    def test_reverses_every_record_of_encounter(self, stock):
        med = stock('medication', 7, 'L100', 10)
        supply = stock('supply', 3, None, 10)
        consume('enc1', 'medication', 7, 'L100', 2)
        consume('enc1', 'supply', 3, None, 4)
        other = consume('enc2', 'supply', 3, None, 1)

        assert reverse_encounter_consumptions('enc1') == 2

        assert StockLot.objects.for_key(med).get().quantity == 10
        assert StockLot.objects.for_key(supply).get().quantity == 9
        assert list(ConsumptionRecord.objects.all()) == [other]

    def test_no_records(self, db):
        assert reverse_encounter_consumptions('enc1') == 0

    def test_all_or_nothing(self, stock):
        """One missing lot leaves every record and lot untouched."""
        med = stock('medication', 7, 'L100', 10)
        supply = stock('supply', 3, None, 10)
        consume('enc1', 'supply', 3, None, 4)
        consume('enc1', 'medication', 7, 'L100', 2)
        StockLot.objects.for_key(med).delete()

        with pytest.raises(OriginatingLotMissing):
            reverse_encounter_consumptions('enc1')

        assert StockLot.objects.for_key(supply).get().quantity == 6
        assert ConsumptionRecord.objects.filter(encounter_ref='enc1').count() == 2
