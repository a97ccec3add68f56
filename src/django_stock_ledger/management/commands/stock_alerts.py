"""Management command to print current stock alerts."""

from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_date

from django_stock_ledger.catalog import describe_item
from django_stock_ledger.selectors import derive_alerts


class Command(BaseCommand):
    help = "Print low-stock, out-of-stock and expired-lot alerts"

    def add_arguments(self, parser):
        parser.add_argument(
            "--threshold",
            type=int,
            default=None,
            help="Low-stock threshold (default: STOCK_LEDGER_LOW_STOCK_THRESHOLD)",
        )
        parser.add_argument(
            "--date",
            type=str,
            default=None,
            help="Evaluate expiry as of this date, YYYY-MM-DD (default: today)",
        )

    def handle(self, *args, **options):
        threshold = options["threshold"]
        if threshold is not None and threshold < 0:
            raise CommandError("--threshold must be non-negative")

        today = None
        if options["date"]:
            today = parse_date(options["date"])
            if today is None:
                raise CommandError(f"Invalid date: {options['date']}")

        alerts = derive_alerts(today=today, threshold=threshold)

        self.stdout.write(
            self.style.NOTICE(f"\nStock alerts as of {alerts.as_of} (threshold {alerts.threshold})")
        )

        self.stdout.write(self.style.NOTICE("\n[LOW STOCK]"))
        for level in alerts.low_stock:
            name = describe_item(level.item_kind, level.item_id).name
            self.stdout.write(self.style.WARNING(f"  {name}: {level.available_quantity}"))

        self.stdout.write(self.style.NOTICE("\n[OUT OF STOCK]"))
        for level in alerts.out_of_stock:
            name = describe_item(level.item_kind, level.item_id).name
            self.stdout.write(self.style.ERROR(f"  {name}"))

        self.stdout.write(self.style.NOTICE("\n[EXPIRED LOTS]"))
        for lot in alerts.expired_lots:
            name = describe_item(lot.item_kind, lot.item_id).name
            self.stdout.write(
                self.style.ERROR(
                    f"  {name} lot {lot.lot_code}: {lot.quantity} "
                    f"(expired {lot.expiry_date}, {lot.location})"
                )
            )

        if not alerts.has_alerts:
            self.stdout.write(self.style.SUCCESS("\nNo alerts"))
