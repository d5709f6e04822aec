import datetime

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from bookings.services import BookingService


class Command(BaseCommand):
    help = 'Activate approved bookings that have started and complete active bookings that have ended'

    def add_arguments(self, parser):
        parser.add_argument('--date', help='Reference date (YYYY-MM-DD), defaults to today')
        parser.add_argument('--dry-run', action='store_true', help='Only report what would change')

    def handle(self, *args, **options):
        if options['date']:
            try:
                today = datetime.date.fromisoformat(options['date'])
            except ValueError:
                raise CommandError(f"Invalid date: {options['date']}")
        else:
            today = timezone.localdate()

        result = BookingService.advance_by_date(today, dry_run=options['dry_run'])
        prefix = '[dry-run] ' if options['dry_run'] else ''
        for pk in result['activated']:
            self.stdout.write(f"{prefix}Booking #{pk} -> Active")
        for pk in result['completed']:
            self.stdout.write(f"{prefix}Booking #{pk} -> Completed")
        self.stdout.write(self.style.SUCCESS(
            f"{prefix}Activated: {len(result['activated'])}, completed: {len(result['completed'])}"
        ))
