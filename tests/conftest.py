"""Pytest configuration for django-stock-ledger tests."""

from datetime import date

import pytest

FAR_EXPIRY = date(2099, 1, 1)


@pytest.fixture(autouse=True)
def _clear_resolver_cache():
    from django_stock_ledger.conf import clear_catalog_resolver_cache

    clear_catalog_resolver_cache()
    yield
    clear_catalog_resolver_cache()


@pytest.fixture
def user(db, django_user_model):
    """Create a test user."""
    return django_user_model.objects.create_user(
        username="testuser",
        password="testpass123",
    )


@pytest.fixture
def stock(db):
    """Seed a lot: stock('medication', 7, 'L100', 20) or stock('supply', 3, None, 50).

    Medication lots default to a far-future expiry.
    """
    from django_stock_ledger.keys import LotKey
    from django_stock_ledger.ledger import apply_delta

    def _stock(item_kind, item_id, lot_code, quantity, expiry_date=None):
        lot_key = LotKey.for_item(item_kind, item_id, lot_code)
        if lot_key.is_medication and expiry_date is None:
            expiry_date = FAR_EXPIRY
        apply_delta(lot_key, quantity, expiry_date=expiry_date)
        return lot_key

    return _stock
