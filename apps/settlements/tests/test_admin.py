import pytest
from datetime import date
from django.contrib import admin, messages
from django.db import DatabaseError
from rest_framework.test import APIRequestFactory
from apps.settlements.admin import SettlementAdmin
from apps.settlements.models import Settlement, SettlementStatus


# =============================================================================
# Mark-as-paid admin action
# =============================================================================

@pytest.mark.django_db
class TestMarkPaidAction:
    """Tests for the SettlementAdmin mark_paid action."""

    @pytest.fixture
    def model_admin(self, monkeypatch):
        model_admin = SettlementAdmin(Settlement, admin.site)
        model_admin.sent = []
        monkeypatch.setattr(
            model_admin, 'message_user',
            lambda request, message, level=messages.INFO, **kwargs: model_admin.sent.append((message, level)),
        )
        return model_admin

    @pytest.fixture
    def request_as_admin(self, admin_user):
        request = APIRequestFactory().post('/')
        request.user = admin_user
        return request

    def test_marks_selected_settlements_paid(self, model_admin, request_as_admin, runner, make_settlement):
        settlement = make_settlement(runner, date(2024, 1, 2), date(2024, 1, 6), earnings='10.00',
                                     total_transactions=1)

        model_admin.mark_paid(request_as_admin, Settlement.objects.all())

        settlement.refresh_from_db()
        assert settlement.status == SettlementStatus.PAID
        assert model_admin.sent[-1] == ('Marked 1 settlement(s) as paid.', messages.INFO)

    def test_database_failure_is_reported_per_row(self, model_admin, request_as_admin, runner,
                                                  make_settlement, monkeypatch):
        """A row that cannot be written is reported and the action carries on."""
        settlement = make_settlement(runner, date(2024, 1, 2), date(2024, 1, 6), earnings='10.00',
                                     total_transactions=1)

        def unavailable(**kwargs):
            raise DatabaseError('connection reset')

        monkeypatch.setattr('apps.settlements.admin.mark_settlement_paid', unavailable)

        model_admin.mark_paid(request_as_admin, Settlement.objects.all())

        assert model_admin.sent[0][1] == messages.ERROR
        assert 'connection reset' in model_admin.sent[0][0]
        assert model_admin.sent[-1] == ('Marked 0 settlement(s) as paid.', messages.INFO)
        settlement.refresh_from_db()
        assert settlement.status == SettlementStatus.PENDING
