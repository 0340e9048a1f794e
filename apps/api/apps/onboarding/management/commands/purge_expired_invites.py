"""
Management command to purge invite tokens that expired unused.

Usage:
    python manage.py purge_expired_invites                 # dry run
    python manage.py purge_expired_invites --delete
    python manage.py purge_expired_invites --before-days 30 --delete

Consumed invites are never removed; they link every doctor and patient to
the invite they registered with.
"""
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.onboarding.invites import purge_expired_invites


class Command(BaseCommand):
    help = 'Delete invite tokens that expired without being used (dry run by default)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--before-days',
            type=int,
            default=0,
            help='Only invites that expired at least this many days ago',
        )
        parser.add_argument(
            '--delete',
            action='store_true',
            help='Actually delete; without it the command only counts',
        )

    def handle(self, *args, **options):
        before = timezone.now() - timedelta(days=options['before_days'])
        count = purge_expired_invites(before, delete=options['delete'])

        if options['delete']:
            self.stdout.write(self.style.SUCCESS(f'Deleted {count} expired invite(s)'))
        else:
            self.stdout.write(self.style.WARNING(
                f'{count} expired invite(s) would be deleted (dry run, pass --delete)'
            ))
