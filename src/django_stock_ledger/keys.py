"""Lot identity for the stock ledger.

Medications are tracked per lot code; supplies carry no lot identity and have
exactly one untracked lot per item. LotKey.for_item is the only place that
distinction is made.
"""

from dataclasses import dataclass
from typing import Optional

from django.db import models
from django.utils.translation import gettext_lazy as _

from .exceptions import InvalidLotKey


class ItemKind(models.TextChoices):
    MEDICATION = 'medication', _('Medication')
    SUPPLY = 'supply', _('Supply')


@dataclass(frozen=True)
class LotKey:
    """Identity of a stock lot: (item_kind, item_id, lot_code)."""

    item_kind: str
    item_id: str
    lot_code: Optional[str] = None

    @classmethod
    def for_item(cls, item_kind: str, item_id, lot_code: Optional[str] = None) -> 'LotKey':
        """Build a normalised lot key.

        Raises:
            InvalidLotKey: Unknown item kind, or a medication without a lot code.
        """
        if item_kind not in ItemKind.values:
            raise InvalidLotKey(f"Unknown item kind {item_kind!r}")
        if item_id is None or str(item_id).strip() == '':
            raise InvalidLotKey("Item id is required")

        item_id = str(item_id).strip()

        if item_kind == ItemKind.SUPPLY:
            return cls(ItemKind.SUPPLY.value, item_id, None)

        lot_code = (lot_code or '').strip()
        if not lot_code:
            raise InvalidLotKey(f"Medication {item_id} requires a lot code")
        return cls(ItemKind.MEDICATION.value, item_id, lot_code)

    @property
    def is_medication(self) -> bool:
        return self.item_kind == ItemKind.MEDICATION

    def as_filter(self) -> dict:
        """Return ORM lookups matching this key."""
        lookups = {'item_kind': self.item_kind, 'item_id': self.item_id}
        if self.lot_code is None:
            lookups['lot_code__isnull'] = True
        else:
            lookups['lot_code'] = self.lot_code
        return lookups

    def __str__(self):
        if self.lot_code:
            return f"{self.item_kind}#{self.item_id} lot {self.lot_code}"
        return f"{self.item_kind}#{self.item_id}"
