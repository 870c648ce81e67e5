"""
Management command to run a settlement reconciliation pass.

Intended for cron; the admin list endpoint runs the same pass on demand.

Usage:
    python manage.py reconcile_settlements
    python manage.py reconcile_settlements --dry-run
"""

from django.core.management.base import BaseCommand, CommandError
from apps.settlements.services import SettlementDataUnavailableError, reconcile_settlements


class Command(BaseCommand):
    help = 'Create, update and delete settlements so they match completed transactions'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show computed settlements without writing changes',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']

        try:
            result = reconcile_settlements(dry_run=dry_run)
        except SettlementDataUnavailableError as e:
            raise CommandError(str(e))

        self.stdout.write(f'\n{len(result.periods)} settlement period(s):\n')
        for period in result.periods:
            self.stdout.write(
                f'  - {period.settlement_id or "(not saved)"} | {period.worker_id} | '
                f'{period.start}..{period.end} | {period.total_transactions} tx | '
                f'{period.total_earnings} earned | {period.system_fees} fees | {period.status}'
            )

        if result.deferred:
            self.stdout.write(f'\n{len(result.deferred)} transaction(s) deferred:')
            for item in result.deferred:
                tx = item.transaction
                self.stdout.write(f'  - {tx.kind} {tx.id} ({tx.worker_id}): {item.reason}')

        for warning in result.warnings:
            self.stdout.write(self.style.WARNING(warning))

        if dry_run:
            self.stdout.write(
                self.style.WARNING('\n--dry-run mode: No changes made.')
            )
            return

        self.stdout.write(
            self.style.SUCCESS(
                f'\nCreated {result.created}, updated {result.updated}, '
                f'deleted {result.deleted} settlement(s).'
            )
        )
