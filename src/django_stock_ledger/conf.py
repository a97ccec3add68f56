"""Django Stock Ledger configuration.

All settings can be overridden in your Django settings.py.

Example:
    # settings.py
    STOCK_LEDGER_LOW_STOCK_THRESHOLD = 10
    STOCK_LEDGER_CATALOG_RESOLVER = 'pharmacy.catalog.resolve_item'
"""

from functools import lru_cache
from importlib import import_module

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .exceptions import CatalogResolverLoadError


# Location label for lots created by purchase intake
DEFAULT_LOCATION = 'Almacén Principal'

DEFAULT_LOW_STOCK_THRESHOLD = 10


def get_setting(name: str, default=None):
    """Get a setting with STOCK_LEDGER_ prefix."""
    return getattr(settings, f"STOCK_LEDGER_{name}", default)


def get_low_stock_threshold() -> int:
    """Return the low-stock threshold, read at call time so overrides apply."""
    value = get_setting('LOW_STOCK_THRESHOLD', DEFAULT_LOW_STOCK_THRESHOLD)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ImproperlyConfigured(
            f"STOCK_LEDGER_LOW_STOCK_THRESHOLD must be a non-negative integer, got {value!r}"
        )
    return value


@lru_cache(maxsize=16)
def load_catalog_resolver(dotted_path: str):
    """
    Import a catalog resolver callable from dotted path.

    Raises CatalogResolverLoadError for bad imports or non-callables.
    """
    try:
        module_path, attr_name = dotted_path.rsplit('.', 1)
    except ValueError:
        raise CatalogResolverLoadError(dotted_path, "Invalid dotted path format")

    try:
        module = import_module(module_path)
    except ImportError as e:
        raise CatalogResolverLoadError(dotted_path, f"Cannot import module: {e}")

    try:
        resolver = getattr(module, attr_name)
    except AttributeError:
        raise CatalogResolverLoadError(dotted_path, f"'{attr_name}' not found in module")

    if not callable(resolver):
        raise CatalogResolverLoadError(dotted_path, f"'{attr_name}' is not callable")

    return resolver


def get_catalog_resolver():
    """Return the configured catalog resolver, or None when not configured."""
    dotted_path = get_setting('CATALOG_RESOLVER')
    if not dotted_path:
        return None
    return load_catalog_resolver(dotted_path)


def clear_catalog_resolver_cache():
    """Clear the resolver loading cache. Useful for testing."""
    load_catalog_resolver.cache_clear()


# =============================================================================
# DEFAULT SETTINGS REFERENCE
# =============================================================================

# STOCK_LEDGER_LOW_STOCK_THRESHOLD = 10  # Items at or below this level are low stock
# STOCK_LEDGER_CATALOG_RESOLVER = None  # Optional - callable(item_kind, item_id) -> CatalogEntry
