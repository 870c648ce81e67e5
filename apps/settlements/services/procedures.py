"""
Scheduled and server-side settlement procedures.

These run outside the reconciliation pass (cron, the account-check
endpoint, the management command) and are also called by it as
courtesy calls. Each procedure is a single atomic unit of work.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from ..models import Settlement, SettlementStatus
from .fees import quantize_money
from .loaders import eligible_transactions
from .period_assignment import COMMISSION

logger = logging.getLogger(__name__)

User = get_user_model()


def _today(today=None):
    return today or timezone.now().date()


@transaction.atomic
def create_or_update_settlement(user_id, start_date, end_date):
    """
    Build the settlement of one worker for ``[start_date, end_date]``.

    Only completed transactions inside the range that no other settlement
    lists are counted. A pending row with these bounds is refreshed; a row
    in any other status is returned unchanged.

    Returns:
        The settlement, or ``None`` when the range holds no countable
        transaction.
    """
    other_settlements = Settlement.objects.filter(user_id=user_id).exclude(
        period_start_date=start_date,
        period_end_date=end_date,
    )
    taken_commissions = set()
    taken_errands = set()
    for commission_ids, errand_ids in other_settlements.values_list('commission_ids', 'errand_ids'):
        taken_commissions.update(str(tx_id) for tx_id in (commission_ids or []))
        taken_errands.update(str(tx_id) for tx_id in (errand_ids or []))

    transactions = [
        tx for tx in eligible_transactions([user_id], start_date, end_date)
        if tx.id not in (taken_commissions if tx.kind == COMMISSION else taken_errands)
    ]
    if not transactions:
        return None

    commission_ids = sorted(tx.id for tx in transactions if tx.kind == COMMISSION)
    errand_ids = sorted(tx.id for tx in transactions if tx.kind != COMMISSION)
    values = {
        'total_earnings': quantize_money(sum((tx.amount for tx in transactions), Decimal('0'))),
        'system_fees': quantize_money(sum((tx.system_fee for tx in transactions), Decimal('0'))),
        'total_transactions': len(transactions),
        'commission_ids': commission_ids,
        'errand_ids': errand_ids,
    }

    settlement = (
        Settlement.objects
        .select_for_update()
        .for_period(user_id, start_date, end_date)
        .first()
    )
    if settlement is None:
        settlement = Settlement.objects.create(
            user_id=user_id,
            period_start_date=start_date,
            period_end_date=end_date,
            status=SettlementStatus.PENDING,
            **values,
        )
        logger.info(f"Created settlement {settlement.id} for {user_id} {start_date}..{end_date}")
        return settlement

    if settlement.status != SettlementStatus.PENDING:
        return settlement

    for name, value in values.items():
        setattr(settlement, name, value)
    settlement.save(update_fields=[*values.keys(), 'updated_at'])
    return settlement


@transaction.atomic
def update_overdue_settlements(today=None) -> int:
    """Flip pending settlements whose period has ended to overdue. Returns the row count."""
    count = Settlement.objects.filter(
        status=SettlementStatus.PENDING,
        period_end_date__lt=_today(today),
    ).update(status=SettlementStatus.OVERDUE, updated_at=timezone.now())
    if count:
        logger.info(f"Marked {count} settlement(s) overdue")
    return count


def _overdue_filter(cutoff):
    """Settlements that are overdue, or still pending although their period ended before ``cutoff``."""
    return (
        Q(status=SettlementStatus.OVERDUE)
        | Q(status=SettlementStatus.PENDING, period_end_date__lt=cutoff)
    )


@transaction.atomic
def lock_accounts_with_overdue_settlements(today=None) -> int:
    """
    Block BuddyRunners holding a settlement unpaid for more than the grace period.

    A settlement counts once its period ended more than
    ``SETTLEMENT_OVERDUE_GRACE_DAYS`` full days ago. Returns the number of
    accounts locked.
    """
    cutoff = _today(today) - timedelta(days=settings.SETTLEMENT_OVERDUE_GRACE_DAYS)
    late_user_ids = Settlement.objects.unpaid().filter(
        period_end_date__lt=cutoff,
    ).values_list('user_id', flat=True)

    count = User.objects.buddyrunners().filter(
        id__in=late_user_ids,
        is_blocked=False,
    ).update(is_blocked=True, is_settlement_blocked=True)
    if count:
        logger.info(f"Locked {count} account(s) with overdue settlements")
    return count


@transaction.atomic
def unlock_accounts_with_paid_settlements(today=None) -> int:
    """
    Unblock BuddyRunners locked for settlements who no longer owe one.

    Only accounts locked by :func:`lock_accounts_with_overdue_settlements`
    (``is_settlement_blocked``) are touched. Returns the number unlocked.
    """
    owing_user_ids = Settlement.objects.filter(
        _overdue_filter(_today(today)),
    ).values_list('user_id', flat=True)

    count = (
        User.objects.buddyrunners()
        .filter(is_settlement_blocked=True)
        .exclude(id__in=owing_user_ids)
        .update(is_blocked=False, is_settlement_blocked=False)
    )
    if count:
        logger.info(f"Unlocked {count} account(s) with settled payments")
    return count


def daily_settlement_account_check(today=None) -> dict:
    """Lock late payers, then unlock accounts that have paid up."""
    locked = lock_accounts_with_overdue_settlements(today)
    unlocked = unlock_accounts_with_paid_settlements(today)
    return {
        'locked': locked,
        'unlocked': unlocked,
        'timestamp': timezone.now().isoformat(),
    }
