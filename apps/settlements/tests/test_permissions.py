import pytest
from rest_framework.test import APIRequestFactory
from django.contrib.auth.models import AnonymousUser
from apps.accounts.models import User, UserRole
from apps.settlements.permissions import IsSettlementAdmin


# =============================================================================
# IsSettlementAdmin Tests
# =============================================================================

@pytest.mark.django_db
class TestIsSettlementAdmin:
    """Tests for IsSettlementAdmin permission class."""

    def _request(self, user):
        request = APIRequestFactory().get('/')
        request.user = user
        return request

    def test_staff_user_is_allowed(self, admin_user):
        """Staff accounts manage settlements."""
        assert IsSettlementAdmin().has_permission(self._request(admin_user), None) is True

    def test_admin_role_without_staff_flag_is_allowed(self, db):
        """Role Admin is enough, whatever its casing."""
        user = User.objects.create_user(email='ops@gobuddy.test', password='x', role=' admin ')
        assert IsSettlementAdmin().has_permission(self._request(user), None) is True

    def test_runner_is_denied(self, runner):
        """BuddyRunners cannot manage settlements."""
        assert IsSettlementAdmin().has_permission(self._request(runner), None) is False

    def test_anonymous_is_denied(self):
        assert IsSettlementAdmin().has_permission(self._request(AnonymousUser()), None) is False

    def test_role_is_not_staff(self, db):
        user = User.objects.create_user(email='c@gobuddy.test', password='x', role=UserRole.BUDDYCALLER)
        assert IsSettlementAdmin().has_permission(self._request(user), None) is False
