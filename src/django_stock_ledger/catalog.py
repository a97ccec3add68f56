"""Catalog Registry collaborator hook.

The ledger stores only (item_kind, item_id). Names, units and prices are looked
up on demand through the callable named by STOCK_LEDGER_CATALOG_RESOLVER, so no
denormalised copy of catalog data can drift.

Example resolver:
    # pharmacy/catalog.py
    from django_stock_ledger.catalog import CatalogEntry

    def resolve_item(item_kind, item_id):
        med = Medication.objects.filter(pk=item_id).first()
        if med is None:
            return None
        return CatalogEntry(
            name=med.generic_name,
            unit_of_measure=med.unit,
            unit_price=med.sale_price,
            controlled_substance=med.is_controlled,
        )
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .conf import get_catalog_resolver

DEFAULT_UNIT = 'unidades'


@dataclass(frozen=True)
class CatalogEntry:
    """Display data for one catalog item."""

    name: str
    unit_of_measure: str = DEFAULT_UNIT
    unit_price: Optional[Decimal] = None
    controlled_substance: bool = False


def placeholder_entry(item_kind: str, item_id) -> CatalogEntry:
    """Entry used when the catalog cannot describe an item."""
    return CatalogEntry(name=f"{item_kind} #{item_id}")


def describe_item(item_kind: str, item_id) -> CatalogEntry:
    """Return catalog display data for an item, or a placeholder."""
    resolver = get_catalog_resolver()
    if resolver is None:
        return placeholder_entry(item_kind, item_id)

    entry = resolver(item_kind, str(item_id))
    return entry or placeholder_entry(item_kind, item_id)
