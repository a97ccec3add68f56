"""Django app configuration for django-stock-ledger."""

from django.apps import AppConfig


class DjangoStockLedgerConfig(AppConfig):
    """App configuration for django-stock-ledger."""

    name = 'django_stock_ledger'
    verbose_name = 'Stock Ledger'
    default_auto_field = 'django.db.models.BigAutoField'
