# Generated manually for standalone django-stock-ledger package

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


ITEM_KIND_CHOICES = [("medication", "Medication"), ("supply", "Supply")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="StockLot",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "item_kind",
                    models.CharField(
                        choices=ITEM_KIND_CHOICES,
                        max_length=20,
                        verbose_name="item kind",
                    ),
                ),
                (
                    "item_id",
                    models.CharField(
                        help_text="Catalog id of the item (CharField for UUID support)",
                        max_length=64,
                        verbose_name="item id",
                    ),
                ),
                (
                    "lot_code",
                    models.CharField(
                        blank=True,
                        help_text="Required for medications, always null for supplies",
                        max_length=100,
                        null=True,
                        verbose_name="lot code",
                    ),
                ),
                (
                    "location",
                    models.CharField(
                        default="Almacén Principal",
                        max_length=200,
                        verbose_name="location",
                    ),
                ),
                (
                    "quantity",
                    models.PositiveIntegerField(default=0, verbose_name="quantity"),
                ),
                (
                    "expiry_date",
                    models.DateField(
                        blank=True,
                        help_text="Medication lots only",
                        null=True,
                        verbose_name="expiry date",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(auto_now_add=True, verbose_name="created at"),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True, db_index=True, verbose_name="updated at"
                    ),
                ),
            ],
            options={
                "verbose_name": "stock lot",
                "verbose_name_plural": "stock lots",
                "db_table": "stock_lots",
                "ordering": ["item_kind", "item_id", "expiry_date", "lot_code"],
                "indexes": [
                    models.Index(
                        fields=["item_kind", "item_id"], name="stocklot_item_idx"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 0)),
                        name="stocklot_quantity_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("item_kind", "medication"),
                            models.Q(
                                ("lot_code__isnull", True),
                                ("expiry_date__isnull", True),
                            ),
                            _connector="OR",
                        ),
                        name="stocklot_supply_untracked",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("item_kind", "supply"),
                            ("lot_code__isnull", False),
                            _connector="OR",
                        ),
                        name="stocklot_medication_has_lot_code",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("lot_code__isnull", False)),
                        fields=("item_kind", "item_id", "lot_code"),
                        name="unique_stocklot_per_lot_code",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("lot_code__isnull", True)),
                        fields=("item_kind", "item_id"),
                        name="unique_untracked_stocklot_per_item",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PurchaseReceipt",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "occurred_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="When the shipment was received (business time)",
                        verbose_name="occurred at",
                    ),
                ),
                (
                    "total_cost",
                    models.DecimalField(
                        decimal_places=2, max_digits=14, verbose_name="total cost"
                    ),
                ),
                (
                    "supplier_ref",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Id of the supplier in the purchasing app",
                        max_length=64,
                        verbose_name="supplier reference",
                    ),
                ),
                (
                    "reference",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Supplier invoice or delivery note number",
                        max_length=100,
                        verbose_name="reference",
                    ),
                ),
                (
                    "recorded_at",
                    models.DateTimeField(auto_now_add=True, verbose_name="recorded at"),
                ),
                (
                    "received_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="stock_receipts",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="received by",
                    ),
                ),
            ],
            options={
                "verbose_name": "purchase receipt",
                "verbose_name_plural": "purchase receipts",
                "db_table": "purchase_receipts",
                "ordering": ["-occurred_at", "-pk"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total_cost__gte", 0)),
                        name="purchasereceipt_total_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PurchaseReceiptLine",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "item_kind",
                    models.CharField(
                        choices=ITEM_KIND_CHOICES,
                        max_length=20,
                        verbose_name="item kind",
                    ),
                ),
                ("item_id", models.CharField(max_length=64, verbose_name="item id")),
                ("quantity", models.PositiveIntegerField(verbose_name="quantity")),
                (
                    "unit_cost",
                    models.DecimalField(
                        decimal_places=2, max_digits=12, verbose_name="unit cost"
                    ),
                ),
                (
                    "lot_code",
                    models.CharField(
                        blank=True, max_length=100, null=True, verbose_name="lot code"
                    ),
                ),
                (
                    "expiry_date",
                    models.DateField(blank=True, null=True, verbose_name="expiry date"),
                ),
                (
                    "receipt",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="lines",
                        to="django_stock_ledger.purchasereceipt",
                        verbose_name="receipt",
                    ),
                ),
            ],
            options={
                "verbose_name": "purchase receipt line",
                "verbose_name_plural": "purchase receipt lines",
                "db_table": "purchase_receipt_lines",
                "ordering": ["receipt", "pk"],
                "indexes": [
                    models.Index(
                        fields=["item_kind", "item_id"], name="receiptline_item_idx"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gt", 0)),
                        name="receiptline_quantity_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("unit_cost__gte", 0)),
                        name="receiptline_unit_cost_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ConsumptionRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "encounter_ref",
                    models.CharField(
                        db_index=True,
                        help_text="Id of the clinical encounter in the clinical records app",
                        max_length=64,
                        verbose_name="encounter reference",
                    ),
                ),
                (
                    "item_kind",
                    models.CharField(
                        choices=ITEM_KIND_CHOICES,
                        max_length=20,
                        verbose_name="item kind",
                    ),
                ),
                ("item_id", models.CharField(max_length=64, verbose_name="item id")),
                (
                    "lot_code",
                    models.CharField(
                        blank=True, max_length=100, null=True, verbose_name="lot code"
                    ),
                ),
                ("quantity", models.PositiveIntegerField(verbose_name="quantity")),
                (
                    "occurred_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="When the item was dispensed",
                        verbose_name="occurred at",
                    ),
                ),
                ("note", models.TextField(blank=True, default="", verbose_name="note")),
                (
                    "recorded_at",
                    models.DateTimeField(auto_now_add=True, verbose_name="recorded at"),
                ),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="stock_consumptions",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="performed by",
                    ),
                ),
            ],
            options={
                "verbose_name": "consumption record",
                "verbose_name_plural": "consumption records",
                "db_table": "consumption_records",
                "ordering": ["-occurred_at", "-pk"],
                "indexes": [
                    models.Index(
                        fields=["item_kind", "item_id"], name="consumption_item_idx"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gt", 0)),
                        name="consumption_quantity_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PrescriptionRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "encounter_ref",
                    models.CharField(
                        db_index=True, max_length=64, verbose_name="encounter reference"
                    ),
                ),
                (
                    "item_id",
                    models.CharField(
                        db_index=True, max_length=64, verbose_name="medication id"
                    ),
                ),
                (
                    "quantity",
                    models.PositiveIntegerField(verbose_name="quantity prescribed"),
                ),
                ("dose", models.CharField(max_length=100, verbose_name="dose")),
                ("frequency", models.CharField(max_length=100, verbose_name="frequency")),
                (
                    "duration",
                    models.CharField(
                        blank=True, default="", max_length=100, verbose_name="duration"
                    ),
                ),
                (
                    "instructions",
                    models.TextField(
                        blank=True, default="", verbose_name="additional instructions"
                    ),
                ),
                (
                    "prescribed_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now, verbose_name="prescribed at"
                    ),
                ),
                (
                    "availability_status",
                    models.CharField(
                        choices=[
                            ("DISPONIBLE", "Available"),
                            ("AGOTADO", "Out of stock"),
                            ("NO_EN_CLINICA", "Not stocked at the clinic"),
                        ],
                        max_length=20,
                        verbose_name="availability status",
                    ),
                ),
                (
                    "available_quantity",
                    models.PositiveIntegerField(
                        default=0, verbose_name="available quantity"
                    ),
                ),
                (
                    "shortage_acknowledged",
                    models.BooleanField(
                        default=False,
                        help_text="The prescriber confirmed despite a stock warning",
                        verbose_name="shortage acknowledged",
                    ),
                ),
                (
                    "prescribed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="stock_prescriptions",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="prescribed by",
                    ),
                ),
            ],
            options={
                "verbose_name": "prescription record",
                "verbose_name_plural": "prescription records",
                "db_table": "prescription_records",
                "ordering": ["-prescribed_at", "-pk"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gt", 0)),
                        name="prescription_quantity_positive",
                    ),
                ],
            },
        ),
    ]
