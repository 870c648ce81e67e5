"""Marking settlements as paid."""

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError, transaction
from django.utils import timezone

from ..models import Settlement, SettlementStatus, UNPAID_STATUSES
from .exceptions import (
    SettlementAlreadyProcessingError,
    SettlementNotFoundError,
    SettlementNotPersistedError,
    SettlementStatusConflictError,
    SettlementVerificationError,
)
from .fees import to_decimal
from .procedures import unlock_accounts_with_paid_settlements

logger = logging.getLogger(__name__)

EARNINGS_TOLERANCE = Decimal('0.01')


@dataclass
class PaymentResult:
    settlement: Settlement
    already_paid: bool = False
    other_unpaid: List[Settlement] = field(default_factory=list)
    unlocked_accounts: Optional[int] = None

    @property
    def account_still_restricted(self) -> bool:
        return bool(self.other_unpaid)


def processing_lock_key(worker_id, period_start, period_end) -> str:
    return f"settlements:paying:{worker_id}:{period_start}:{period_end}"


def find_settlement(
    *,
    settlement_id=None,
    worker_id=None,
    period_start=None,
    period_end=None,
    total_earnings=None,
    total_transactions=None,
) -> Optional[Settlement]:
    """
    Locate the persisted row for a settlement shown to an admin.

    Tried in order: the row id; the worker and exact period bounds; the
    worker's unpaid row with the same earnings (within one centavo) and the
    same transaction count.
    """
    if settlement_id:
        settlement = Settlement.objects.filter(id=settlement_id).first()
        if settlement is not None:
            return settlement

    if worker_id and period_start and period_end:
        settlement = Settlement.objects.for_period(worker_id, period_start, period_end).first()
        if settlement is not None:
            return settlement

    if worker_id and total_earnings is not None and total_transactions is not None:
        earnings = to_decimal(total_earnings)
        candidates = (
            Settlement.objects
            .unpaid()
            .filter(user_id=worker_id, total_transactions=total_transactions)
            .order_by('-period_start_date')
        )
        for candidate in candidates:
            if abs(candidate.total_earnings - earnings) <= EARNINGS_TOLERANCE:
                logger.info(
                    f"Matched settlement {candidate.id} for worker {worker_id} "
                    f"by earnings and transaction count"
                )
                return candidate

    return None


def mark_settlement_paid(
    *,
    paid_by=None,
    settlement_id=None,
    worker_id=None,
    period_start=None,
    period_end=None,
    total_earnings=None,
    total_transactions=None,
) -> PaymentResult:
    """
    Mark one settlement as paid.

    The settlement is identified by ``settlement_id`` or by ``worker_id`` with
    the period bounds; ``total_earnings`` and ``total_transactions`` allow a
    fuzzy match when the bounds of the row have moved.

    Process:
    1. Take the processing lock for (worker, period)
    2. Resolve the persisted row
    3. Conditionally flip pending/overdue to paid
    4. Wait ``SETTLEMENT_VERIFY_DELAY_SECONDS`` and re-read the row
    5. Unlock the worker's account when nothing else is owed (best-effort)

    Args:
        paid_by: admin recording the payment
        settlement_id: persisted row id; empty for a period never saved

    Returns:
        PaymentResult. Paying an already paid settlement is a no-op that
        returns ``already_paid=True``.

    Raises:
        SettlementAlreadyProcessingError: the same period is being paid right now
        SettlementNotPersistedError: the period has no row (no id was given)
        SettlementNotFoundError: no row matches the given id
        SettlementStatusConflictError: the row left pending/overdue before the write
        SettlementVerificationError: the row is not paid after the write
    """
    lookup = dict(
        settlement_id=settlement_id,
        worker_id=worker_id,
        period_start=period_start,
        period_end=period_end,
        total_earnings=total_earnings,
        total_transactions=total_transactions,
    )
    if not settlement_id and not (worker_id and period_start and period_end):
        raise ValueError("settlement_id, or worker_id with period_start and period_end, is required")

    if not (worker_id and period_start and period_end):
        settlement = find_settlement(**lookup)
        if settlement is None:
            raise SettlementNotFoundError(f"Settlement {settlement_id} not found")
        worker_id = settlement.user_id
        period_start = settlement.period_start_date
        period_end = settlement.period_end_date

    lock_key = processing_lock_key(worker_id, period_start, period_end)
    if not cache.add(lock_key, True, timeout=settings.SETTLEMENT_LOCK_TIMEOUT_SECONDS):
        raise SettlementAlreadyProcessingError(
            f"Settlement for {worker_id} {period_start}..{period_end} is already being processed"
        )

    try:
        settlement = find_settlement(**lookup)
        if settlement is None:
            if settlement_id:
                raise SettlementNotFoundError(f"Settlement {settlement_id} not found")
            raise SettlementNotPersistedError(
                f"Settlement for {worker_id} {period_start}..{period_end} has not been saved yet"
            )

        if settlement.status == SettlementStatus.PAID:
            logger.info(f"Settlement {settlement.id} is already paid")
            return PaymentResult(
                settlement=settlement,
                already_paid=True,
                other_unpaid=_other_unpaid(settlement),
            )

        now = timezone.now()
        with transaction.atomic():
            updated = Settlement.objects.filter(
                id=settlement.id,
                status__in=UNPAID_STATUSES,
            ).update(
                status=SettlementStatus.PAID,
                paid_at=now,
                paid_by=paid_by,
                updated_at=now,
            )
        if not updated:
            raise SettlementStatusConflictError(
                f"Settlement {settlement.id} is no longer pending or overdue"
            )

        delay = settings.SETTLEMENT_VERIFY_DELAY_SECONDS
        if delay:
            time.sleep(delay)

        settlement.refresh_from_db()
        if settlement.status != SettlementStatus.PAID:
            raise SettlementVerificationError(
                f"Settlement {settlement.id} was written as paid but reads back as {settlement.status}"
            )

        logger.info(
            f"Settlement {settlement.id} of {settlement.user_id} marked paid by "
            f"{getattr(paid_by, 'email', None) or 'system'}"
        )
        return PaymentResult(
            settlement=settlement,
            other_unpaid=_other_unpaid(settlement),
            unlocked_accounts=_unlock_accounts(),
        )
    finally:
        cache.delete(lock_key)


def _other_unpaid(settlement: Settlement) -> List[Settlement]:
    return list(
        Settlement.objects
        .unpaid()
        .filter(user_id=settlement.user_id)
        .exclude(id=settlement.id)
        .order_by('period_start_date')
    )


def _unlock_accounts() -> Optional[int]:
    try:
        return unlock_accounts_with_paid_settlements()
    except DatabaseError as e:
        logger.warning(f"unlock_accounts_with_paid_settlements failed: {e}")
        return None
