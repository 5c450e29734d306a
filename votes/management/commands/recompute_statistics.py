# votes/management/commands/recompute_statistics.py
from django.core.management.base import BaseCommand, CommandError

from nominations.models import Category, Nominee
from votes.statistics import recompute_category


class Command(BaseCommand):
    help = "Rebuild nominee vote statistics and ranks from confirmed votes."

    def add_arguments(self, parser):
        parser.add_argument("--category", type=int, default=None,
                            help="Only recompute nominees in this category id")

    def handle(self, *args, **opts):
        if opts["category"] is not None:
            if not Category.objects.filter(pk=opts["category"]).exists():
                raise CommandError(f"Category {opts['category']} does not exist")
            category_ids = [opts["category"]]
        else:
            category_ids = list(Nominee.objects.values_list("category_id", flat=True).distinct())

        total = 0
        for category_id in category_ids:
            total += recompute_category(category_id)

        self.stdout.write(self.style.SUCCESS(
            f"Done. Recomputed {total} nominee(s) across {len(category_ids)} category(ies)."
        ))
