"""Django Stock Ledger - Lot-level stock and consumption ledger for clinics.

Provides:
- StockLot: Physical quantity of one catalog item, per lot
- PurchaseReceipt / PurchaseReceiptLine: Immutable audit of stock intake
- ConsumptionRecord: Dispense event tied to a clinical encounter
- PrescriptionRecord: Advisory prescribing record (never moves stock)

Usage:
    INSTALLED_APPS = [
        ...
        'django_stock_ledger',
    ]

    # Optional collaborator wiring
    STOCK_LEDGER_CATALOG_RESOLVER = 'pharmacy.catalog.resolve_item'
    STOCK_LEDGER_LOW_STOCK_THRESHOLD = 10

See conf.py for all configuration options.
"""

__version__ = "0.1.0"
