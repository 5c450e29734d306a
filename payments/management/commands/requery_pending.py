# payments/management/commands/requery_pending.py
from django.core.management.base import BaseCommand

from payments.services import requery_pending_payments


class Command(BaseCommand):
    help = "Re-verify pending payments with the gateway, expire stale ones and backfill missing votes."

    def add_arguments(self, parser):
        parser.add_argument("--age-mins", type=int, default=2,
                            help="Only requery payments older than N minutes (default: 2)")
        parser.add_argument("--max", type=int, default=200,
                            help="Max payments to process (default: 200)")

    def handle(self, *args, **opts):
        result = requery_pending_payments(age_minutes=opts["age_mins"], limit=opts["max"])

        for err in result["errors"]:
            self.stderr.write(err)

        self.stdout.write(self.style.SUCCESS(
            f"Done. Queried {result['checked']} payment(s). Updated {result['updated']}, "
            f"expired {result['expired']}, backfilled {result['backfilled']} vote(s), "
            f"repaired statistics for {result['repaired']} nominee(s)."
        ))
