"""Management command to verify stock conservation per lot."""

from django.core.management.base import BaseCommand

from django_stock_ledger.models import StockLot
from django_stock_ledger.selectors import find_conservation_mismatches


class Command(BaseCommand):
    help = "Check that received minus consumed equals on-hand quantity for every lot"

    def add_arguments(self, parser):
        parser.add_argument(
            "--detailed",
            action="store_true",
            help="Show received / consumed / on-hand figures for each mismatch",
        )

    def handle(self, *args, **options):
        detailed = options.get("detailed", False)

        self.stdout.write(self.style.NOTICE("\n" + "=" * 70))
        self.stdout.write(self.style.NOTICE("Stock Ledger - Conservation Check"))
        self.stdout.write(self.style.NOTICE("=" * 70 + "\n"))

        lot_count = StockLot.objects.count()
        mismatches = find_conservation_mismatches()

        for discrepancy in mismatches:
            self.stdout.write(f"  {self.style.ERROR('FAIL')} {discrepancy.lot_key}")
            if detailed:
                on_hand = "missing" if discrepancy.on_hand is None else discrepancy.on_hand
                self.stdout.write(
                    f"       received={discrepancy.received} "
                    f"consumed={discrepancy.consumed} "
                    f"expected={discrepancy.expected} on_hand={on_hand}"
                )

        self.stdout.write("\n" + "=" * 70)
        self.stdout.write(f"  Lots checked: {lot_count}")
        self.stdout.write(f"  {self.style.ERROR('FAIL')}: {len(mismatches)}")

        if not mismatches:
            self.stdout.write(self.style.SUCCESS("\nPASS: every lot balances"))
            return

        self.stdout.write(self.style.ERROR(f"\n{len(mismatches)} lot(s) out of balance!"))
        raise SystemExit(1)
