from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_date

from bookings import services


class Command(BaseCommand):
    help = "Moves CONFIRMED bookings whose start_date has come to ACTIVE, and ACTIVE bookings past end_date to COMPLETED."

    def add_arguments(self, parser):
        parser.add_argument(
            "--batch-size",
            type=int,
            default=500,
            help="Bulk size of the update (default 500).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what will be done without actually updating.",
        )
        parser.add_argument(
            "--today",
            help="Evaluate dates as of this day (YYYY-MM-DD) instead of the current date.",
        )

    def handle(self, *args, **options):
        today = None
        if options["today"]:
            try:
                today = parse_date(options["today"])
            except ValueError:
                today = None
            if today is None:
                raise CommandError(f"Invalid --today value: {options['today']!r}")

        result = services.advance_bookings(
            today=today,
            batch_size=options["batch_size"],
            dry_run=options["dry_run"],
        )

        if options["dry_run"]:
            self.stdout.write(
                f"[DRY RUN] Would activate {result['activated']} and complete {result['completed']} bookings."
            )
            self.stdout.write(self.style.WARNING("Dry run: no updates performed."))
            return

        self.stdout.write(
            self.style.SUCCESS(
                f"Done. Activated {result['activated']}, completed {result['completed']} bookings."
            )
        )
