from django.core.management.base import BaseCommand, CommandError

from inventory.services import find_ledger_drift


class Command(BaseCommand):
    help = "Compare stored stock quantities against the movement log. Reports drift, never rewrites data."

    def handle(self, *args, **options):
        drift = find_ledger_drift()
        if not drift:
            self.stdout.write(self.style.SUCCESS("Stock ledger is consistent."))
            return

        for row in drift:
            self.stdout.write(
                f"product={row.product_id} warehouse={row.warehouse_id} "
                f"stored={row.stored_quantity} ledger={row.ledger_quantity} difference={row.difference}"
            )
        raise CommandError(f"{len(drift)} stock bucket(s) disagree with the movement log.")
