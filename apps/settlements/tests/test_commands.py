import pytest
from io import StringIO
from datetime import timedelta
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone
from apps.settlements.models import Settlement, SettlementStatus
from apps.settlements.services import SettlementDataUnavailableError


@pytest.mark.django_db
class TestReconcileSettlementsCommand:

    def test_creates_settlements(self, runner, make_errand):
        make_errand(runner, timezone.now().date() - timedelta(days=1), 100)
        out = StringIO()

        call_command('reconcile_settlements', stdout=out)

        assert Settlement.objects.filter(user=runner).count() == 1
        assert 'Created 1' in out.getvalue()

    def test_dry_run_writes_nothing(self, runner, make_errand):
        make_errand(runner, timezone.now().date() - timedelta(days=1), 100)
        out = StringIO()

        call_command('reconcile_settlements', '--dry-run', stdout=out)

        assert not Settlement.objects.exists()
        assert '(not saved)' in out.getvalue()
        assert 'No changes made' in out.getvalue()

    def test_unavailable_data_fails_the_command(self, monkeypatch):
        def unavailable(**kwargs):
            raise SettlementDataUnavailableError('Settlement data is unavailable')

        monkeypatch.setattr(
            'apps.settlements.management.commands.reconcile_settlements.reconcile_settlements',
            unavailable,
        )

        with pytest.raises(CommandError):
            call_command('reconcile_settlements', stdout=StringIO())


@pytest.mark.django_db
class TestSettlementAccountCheckCommand:

    def test_marks_overdue_and_locks(self, runner, make_settlement):
        end = timezone.now().date() - timedelta(days=10)
        settlement = make_settlement(runner, end - timedelta(days=4), end, earnings='10.00')

        call_command('settlement_account_check', stdout=StringIO())

        settlement.refresh_from_db()
        runner.refresh_from_db()
        assert settlement.status == SettlementStatus.OVERDUE
        assert runner.is_blocked is True
