"""
Settlement reconciliation: make persisted settlements match computed periods.

One pass loads runners, their completed transactions and their settlements,
computes target periods with :func:`assign_periods`, then creates, updates
and deletes rows so the table reflects the computation. Writes are issued
one at a time; a failing write is logged and reported but does not stop the
pass.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from ..models import Settlement, SettlementStatus
from .exceptions import SettlementWriteError
from .loaders import load_settlement_inputs
from .period_assignment import (
    DeferredTransaction,
    PlannedPeriod,
    SettlementSnapshot,
    assign_periods,
)
from .procedures import (
    create_or_update_settlement,
    daily_settlement_account_check,
    update_overdue_settlements,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    periods: List[PlannedPeriod]
    deferred: List[DeferredTransaction] = field(default_factory=list)
    runners: Dict[str, object] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    deleted: int = 0
    dry_run: bool = False

    def counts_by_status(self) -> Dict[str, int]:
        counts = {status: 0 for status in SettlementStatus.values}
        for period in self.periods:
            counts[period.status] = counts.get(period.status, 0) + 1
        return counts

    def warn(self, message: str):
        logger.warning(message)
        self.warnings.append(message)


def _is_empty(snapshot: SettlementSnapshot) -> bool:
    return (
        not snapshot.total_transactions
        and not snapshot.total_earnings
    )


def _period_values(period: PlannedPeriod) -> dict:
    return {
        'period_start_date': period.start,
        'period_end_date': period.end,
        'total_earnings': period.total_earnings,
        'system_fees': period.system_fees,
        'total_transactions': period.total_transactions,
        'commission_ids': list(period.commission_ids),
        'errand_ids': list(period.errand_ids),
    }


def _matches(period: PlannedPeriod, snapshot: SettlementSnapshot) -> bool:
    return (
        period.start == snapshot.start
        and period.end == snapshot.end
        and Decimal(period.total_earnings) == Decimal(snapshot.total_earnings)
        and Decimal(period.system_fees) == Decimal(snapshot.system_fees)
        and period.total_transactions == snapshot.total_transactions
        and list(period.commission_ids) == list(snapshot.commission_ids)
        and list(period.errand_ids) == list(snapshot.errand_ids)
    )


def _adopt(period: PlannedPeriod, settlement_id, status):
    period.settlement_id = str(settlement_id)
    period.status = status


def _update_pending(period: PlannedPeriod, snapshot: SettlementSnapshot, result: ReconciliationResult):
    """Write ``period`` over a pending row, unless the row changed status meanwhile."""
    _adopt(period, snapshot.id, snapshot.status)
    if _matches(period, snapshot):
        return

    try:
        with transaction.atomic():
            count = Settlement.objects.filter(
                id=snapshot.id,
                status=SettlementStatus.PENDING,
            ).update(updated_at=timezone.now(), **_period_values(period))
    except IntegrityError as e:
        result.warn(
            f"Settlement {snapshot.id} could not move to {period.start}..{period.end}: {e}"
        )
        return

    if count:
        result.updated += 1
        return

    # The row left pending between our read and the write; keep its state.
    current = Settlement.objects.filter(id=snapshot.id).values_list('status', flat=True).first()
    if current is None:
        period.settlement_id = None
        period.status = SettlementStatus.PENDING
        result.warn(f"Settlement {snapshot.id} disappeared during reconciliation")
    else:
        period.status = current
        result.warn(f"Settlement {snapshot.id} is {current} now; not updating it")


def _insert(period: PlannedPeriod) -> Settlement:
    """Direct insert used when the create procedure fails. Recovers from a concurrent insert."""
    try:
        with transaction.atomic():
            return Settlement.objects.create(
                user_id=period.worker_id,
                status=SettlementStatus.PENDING,
                **_period_values(period),
            )
    except IntegrityError:
        existing = Settlement.objects.for_period(period.worker_id, period.start, period.end).first()
        if existing is None:
            raise SettlementWriteError(
                f"Settlement for {period.worker_id} {period.start}..{period.end} "
                f"conflicts with a row that cannot be found"
            )
        logger.info(f"Settlement {existing.id} was created concurrently; adopting it")
        return existing


def _create(period: PlannedPeriod, result: ReconciliationResult):
    existed = Settlement.objects.for_period(period.worker_id, period.start, period.end).exists()
    try:
        settlement = create_or_update_settlement(period.worker_id, period.start, period.end)
    except DatabaseError as e:
        logger.warning(
            f"create_or_update_settlement failed for {period.worker_id} "
            f"{period.start}..{period.end}, inserting directly: {e}"
        )
        settlement = _insert(period)
    else:
        if settlement is None:
            logger.info(
                f"No settlement created for {period.worker_id} {period.start}..{period.end}: "
                f"no countable transactions"
            )
            return

    _adopt(period, settlement.id, settlement.status)
    period.created_at = settlement.created_at
    period.updated_at = settlement.updated_at
    if not existed:
        result.created += 1
    elif settlement.status == SettlementStatus.PENDING:
        result.updated += 1


def _reconcile_period(
    period: PlannedPeriod,
    by_id: Dict[str, SettlementSnapshot],
    by_bounds: Dict[tuple, SettlementSnapshot],
    result: ReconciliationResult,
):
    if period.settlement_id:
        snapshot = by_id.get(period.settlement_id)
    else:
        snapshot = by_bounds.get((period.worker_id, period.start, period.end))

    if snapshot is None:
        if not result.dry_run:
            _create(period, result)
        return

    if snapshot.status != SettlementStatus.PENDING:
        _adopt(period, snapshot.id, snapshot.status)
        return

    if result.dry_run:
        _adopt(period, snapshot.id, snapshot.status)
        return
    _update_pending(period, snapshot, result)


def _run_courtesy_calls(today=None):
    """Status and account maintenance that normally runs on a schedule; best-effort here."""
    try:
        update_overdue_settlements(today)
    except DatabaseError as e:
        logger.warning(f"update_overdue_settlements failed: {e}")
    try:
        daily_settlement_account_check(today)
    except DatabaseError as e:
        logger.warning(f"daily_settlement_account_check failed: {e}")


def reconcile_settlements(dry_run: bool = False, today=None) -> ReconciliationResult:
    """
    Run one reconciliation pass.

    Args:
        dry_run: compute and report without writing anything
        today: date used by the scheduled maintenance calls (defaults to today, UTC)

    Returns:
        ReconciliationResult whose ``periods`` hold every computed period plus
        the persisted rows this pass did not touch, newest period first.
        Periods without a row have ``settlement_id`` ``None``.

    Raises:
        SettlementDataUnavailableError: when the inputs cannot be read.
    """
    if not dry_run:
        _run_courtesy_calls(today)

    inputs = load_settlement_inputs()
    assignment = assign_periods(
        inputs.transactions,
        inputs.settlements,
        period_days=settings.SETTLEMENT_PERIOD_DAYS,
    )

    result = ReconciliationResult(
        periods=[],
        deferred=assignment.deferred,
        runners=inputs.runners,
        dry_run=dry_run,
    )

    by_id = {s.id: s for s in inputs.settlements}
    by_bounds = {(s.worker_id, s.start, s.end): s for s in inputs.settlements}

    touched = set()
    for period in assignment.periods.values():
        try:
            _reconcile_period(period, by_id, by_bounds, result)
        except (DatabaseError, SettlementWriteError) as e:
            result.warn(
                f"Could not persist settlement for {period.worker_id} "
                f"{period.start}..{period.end}: {e}"
            )
        if period.settlement_id:
            touched.add(period.settlement_id)
        result.periods.append(period)

    for snapshot in inputs.settlements:
        if snapshot.id in touched:
            continue
        if _is_empty(snapshot):
            if dry_run:
                continue
            try:
                Settlement.objects.filter(id=snapshot.id).delete()
                result.deleted += 1
                logger.info(f"Deleted empty settlement {snapshot.id}")
            except DatabaseError as e:
                result.warn(f"Could not delete empty settlement {snapshot.id}: {e}")
            continue
        result.periods.append(PlannedPeriod.from_snapshot(snapshot))

    result.periods.sort(key=lambda p: (p.start, p.worker_id), reverse=True)

    logger.info(
        f"Settlement reconciliation{' (dry run)' if dry_run else ''}: "
        f"{len(result.periods)} periods, {result.created} created, {result.updated} updated, "
        f"{result.deleted} deleted, {len(result.deferred)} deferred, {len(result.warnings)} warnings"
    )
    return result

