"""Tests for settings and the catalog hook."""
import pytest
from django.core.exceptions import ImproperlyConfigured

from django_stock_ledger.catalog import DEFAULT_UNIT, describe_item
from django_stock_ledger.conf import (
    DEFAULT_LOW_STOCK_THRESHOLD,
    get_catalog_resolver,
    get_low_stock_threshold,
    load_catalog_resolver,
)
from django_stock_ledger.exceptions import CatalogResolverLoadError


class TestLowStockThreshold:
    """Test suite for get_low_stock_threshold."""

    def test_default(self, settings):
        del settings.STOCK_LEDGER_LOW_STOCK_THRESHOLD
        assert get_low_stock_threshold() == DEFAULT_LOW_STOCK_THRESHOLD

    def test_override(self, settings):
        settings.STOCK_LEDGER_LOW_STOCK_THRESHOLD = 3
        assert get_low_stock_threshold() == 3

    @pytest.mark.parametrize('value', [-1, '10', True, 2.5])
    def test_invalid_values(self, settings, value):
        settings.STOCK_LEDGER_LOW_STOCK_THRESHOLD = value
        with pytest.raises(ImproperlyConfigured):
            get_low_stock_threshold()


class TestCatalogResolver:
    """Test suite for catalog resolver loading."""

    def test_unset(self, settings):
        settings.STOCK_LEDGER_CATALOG_RESOLVER = None
        assert get_catalog_resolver() is None

    def test_loads_callable(self, settings):
        settings.STOCK_LEDGER_CATALOG_RESOLVER = 'tests.catalog_resolver.resolve_item'
        from tests.catalog_resolver import resolve_item
        assert get_catalog_resolver() is resolve_item

    @pytest.mark.parametrize('path', [
        'nodots',
        'tests.no_such_module.resolve_item',
        'tests.catalog_resolver.missing',
        'tests.catalog_resolver.NOT_CALLABLE',
    ])
    def test_bad_paths(self, path):
        with pytest.raises(CatalogResolverLoadError) as exc_info:
            load_catalog_resolver(path)
        assert exc_info.value.path == path


class TestDescribeItem:
    """Test suite for describe_item."""

    def test_placeholder_without_resolver(self, settings):
        settings.STOCK_LEDGER_CATALOG_RESOLVER = None
        entry = describe_item('supply', 3)
        assert entry.name == 'supply #3'
        assert entry.unit_of_measure == DEFAULT_UNIT

    def test_resolved(self, settings):
        settings.STOCK_LEDGER_CATALOG_RESOLVER = 'tests.catalog_resolver.resolve_item'
        entry = describe_item('medication', 7)
        assert entry.name == 'Amoxicilina 250mg'
        assert entry.unit_of_measure == 'tabletas'

    def test_unknown_item_falls_back(self, settings):
        settings.STOCK_LEDGER_CATALOG_RESOLVER = 'tests.catalog_resolver.resolve_item'
        assert describe_item('medication', 99).name == 'medication #99'
