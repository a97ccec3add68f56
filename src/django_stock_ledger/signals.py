"""Change notifications for the stock ledger.

stock_changed is sent once per changed lot, after the surrounding transaction
commits. Receivers get keyword arguments item_kind, item_id, lot_code and
quantity (the lot's quantity as written by that change).

Usage:
    from django.dispatch import receiver
    from django_stock_ledger.signals import stock_changed

    @receiver(stock_changed)
    def refresh_dashboard(sender, item_kind, item_id, **kwargs):
        ...
"""

from django.db import transaction
from django.dispatch import Signal

stock_changed = Signal()


def notify_stock_changed(lot_key, quantity: int) -> None:
    """Schedule a stock_changed signal for when the current transaction commits."""
    from .models import StockLot

    def send():
        stock_changed.send(
            sender=StockLot,
            item_kind=lot_key.item_kind,
            item_id=lot_key.item_id,
            lot_code=lot_key.lot_code,
            quantity=quantity,
        )

    transaction.on_commit(send)
