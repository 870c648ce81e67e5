"""
Management command for the daily settlement housekeeping.

Marks ended pending settlements overdue, locks runners with long-overdue
settlements and unlocks runners who no longer owe anything.

Usage:
    python manage.py settlement_account_check
"""

from django.core.management.base import BaseCommand
from apps.settlements.services import daily_settlement_account_check, update_overdue_settlements


class Command(BaseCommand):
    help = 'Mark overdue settlements and lock/unlock runner accounts accordingly'

    def handle(self, *args, **options):
        overdue = update_overdue_settlements()
        result = daily_settlement_account_check()

        self.stdout.write(f'Marked {overdue} settlement(s) overdue.')
        self.stdout.write(
            self.style.SUCCESS(
                f"Locked {result['locked']} and unlocked {result['unlocked']} account(s) "
                f"at {result['timestamp']}."
            )
        )
