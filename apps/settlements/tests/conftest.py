import pytest
from decimal import Decimal
from datetime import datetime, time, timezone as dt_timezone
from django.core.cache import cache
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User, UserRole
from apps.marketplace.models import Commission, Errand, Invoice, InvoiceStatus, TaskStatus
from apps.settlements.models import Settlement, SettlementStatus


def at_noon(day):
    """Aware UTC datetime at noon on ``day``."""
    return datetime.combine(day, time(12, 0), tzinfo=dt_timezone.utc)


@pytest.fixture(autouse=True)
def clear_cache():
    """Processing locks live in the cache; start every test without any."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def admin_user(db):
    """Create and return a settlements admin."""
    return User.objects.create_user(
        email='admin@gobuddy.test',
        password='TestPass123!',
        first_name='Ada',
        last_name='Admin',
        role=UserRole.ADMIN,
        is_staff=True,
    )


@pytest.fixture
def runner(db):
    """Create and return a BuddyRunner."""
    return User.objects.create_user(
        email='juan@gobuddy.test',
        password='TestPass123!',
        first_name='Juan',
        last_name='Dela Cruz',
        student_id_number='2021-00123',
        role=UserRole.BUDDYRUNNER,
    )


@pytest.fixture
def other_runner(db):
    """Create and return a second BuddyRunner."""
    return User.objects.create_user(
        email='maria@gobuddy.test',
        password='TestPass123!',
        first_name='Maria',
        last_name='Santos',
        student_id_number='2022-00456',
        role=UserRole.BUDDYRUNNER,
    )


@pytest.fixture
def caller(db):
    """Create and return a BuddyCaller who posts the work."""
    return User.objects.create_user(
        email='caller@gobuddy.test',
        password='TestPass123!',
        first_name='Carla',
        last_name='Caller',
        role=UserRole.BUDDYCALLER,
    )


@pytest.fixture
def admin_client(api_client, admin_user):
    """Return API client authenticated as admin."""
    refresh = RefreshToken.for_user(admin_user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


@pytest.fixture
def runner_client(api_client, runner):
    """Return API client authenticated as a runner."""
    refresh = RefreshToken.for_user(runner)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


@pytest.fixture
def make_errand(caller):
    """Factory for completed errands."""
    def _make(runner, day, amount, category='Deliver Items', items=None, status=TaskStatus.COMPLETED):
        return Errand.objects.create(
            caller=caller,
            runner=runner,
            title='Errand',
            category=category,
            status=status,
            amount_price=Decimal(str(amount)),
            items=items or [],
            completed_at=at_noon(day),
        )
    return _make


@pytest.fixture
def make_commission(caller):
    """Factory for completed commissions with one accepted invoice."""
    def _make(runner, day, amount, status=TaskStatus.COMPLETED):
        commission = Commission.objects.create(
            caller=caller,
            runner=runner,
            title='Commission',
            status=status,
            completed_at=at_noon(day),
        )
        Invoice.objects.create(
            commission=commission,
            amount=Decimal(str(amount)),
            status=InvoiceStatus.ACCEPTED,
            accepted_at=at_noon(day),
        )
        return commission
    return _make


@pytest.fixture
def make_settlement():
    """Factory for persisted settlement rows."""
    def _make(user, start, end, status=SettlementStatus.PENDING, errands=(), commissions=(),
              earnings='0.00', fees='0.00', **extra):
        errand_ids = [str(e.id) for e in errands]
        commission_ids = [str(c.id) for c in commissions]
        extra.setdefault('total_transactions', len(errand_ids) + len(commission_ids))
        return Settlement.objects.create(
            user=user,
            period_start_date=start,
            period_end_date=end,
            status=status,
            total_earnings=Decimal(earnings),
            system_fees=Decimal(fees),
            errand_ids=errand_ids,
            commission_ids=commission_ids,
            **extra,
        )
    return _make
