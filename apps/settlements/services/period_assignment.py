"""
Assignment of completed transactions to settlement periods.

Pure computation: no database access and no module state. The caller
passes every eligible transaction and every persisted settlement; the
result describes which period each newly seen transaction belongs to.

Rules, per worker:

* A transaction already listed by any persisted settlement is skipped.
* While the worker has an active (non-paid) period, only transactions
  dated inside it are added; later ones wait for it to be paid.
* Without an active period, a transaction dated after the worker's last
  paid period opens a new one ``[date, date + period_days - 1]``.
* A period always starts on the earliest date of the transactions it holds.

Transactions are processed in ``(date, kind, id)`` order, so the outcome
does not depend on the order they were loaded in.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .fees import calculate_commission_fee, calculate_errand_fee, quantize_money, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_DAYS = 5

COMMISSION = 'commission'
ERRAND = 'errand'

STATUS_PENDING = 'pending'
STATUS_OVERDUE = 'overdue'
STATUS_PAID = 'paid'

# Reasons a transaction is left out of every period on this pass
DEFERRED_OUTSIDE_ACTIVE = 'outside_active_period'
DEFERRED_BEFORE_LAST_PAID = 'on_or_before_last_paid_period'
DEFERRED_MISSING_DATE = 'missing_completion_date'
DEFERRED_CONFLICTING_PERIOD = 'conflicting_period'


def to_utc_date(value) -> Optional[date]:
    """Normalize a completion timestamp (datetime, date or ISO string) to its UTC calendar date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt_timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return to_utc_date(datetime.fromisoformat(text.replace('Z', '+00:00')))
        except ValueError:
            pass
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class Transaction:
    """
    A completed errand or commission, reduced to what settlement needs.

    ``fee_basis`` carries kind-specific fee inputs: ``items`` and
    ``category`` for errands; commissions are charged on ``amount`` alone.
    """
    kind: str
    id: str
    worker_id: str
    completed_on: object
    amount: Decimal
    fee_basis: dict = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.kind, self.id)

    @property
    def completed_date(self) -> Optional[date]:
        return to_utc_date(self.completed_on)

    @property
    def system_fee(self) -> Decimal:
        return FEE_CALCULATORS[self.kind](self)


FEE_CALCULATORS = {
    COMMISSION: lambda tx: calculate_commission_fee(tx.amount),
    ERRAND: lambda tx: calculate_errand_fee(tx.fee_basis.get('items'), tx.fee_basis.get('category')),
}


@dataclass(frozen=True)
class SettlementSnapshot:
    """Read-only view of a persisted settlement row."""
    id: str
    worker_id: str
    start: date
    end: date
    status: str
    total_earnings: Decimal = Decimal('0')
    system_fees: Decimal = Decimal('0')
    total_transactions: int = 0
    commission_ids: Tuple[str, ...] = ()
    errand_ids: Tuple[str, ...] = ()
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status != STATUS_PAID

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass
class PlannedPeriod:
    """
    A settlement period as computed for this pass.

    ``settlement_id`` is the persisted row id, or ``None`` while the period
    only exists in memory.
    """
    worker_id: str
    start: date
    end: date
    status: str = STATUS_PENDING
    settlement_id: Optional[str] = None
    total_earnings: Decimal = Decimal('0')
    system_fees: Decimal = Decimal('0')
    commission_ids: List[str] = field(default_factory=list)
    errand_ids: List[str] = field(default_factory=list)
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    added: List[Transaction] = field(default_factory=list, repr=False, compare=False)

    @classmethod
    def from_snapshot(cls, snapshot: SettlementSnapshot) -> 'PlannedPeriod':
        return cls(
            worker_id=snapshot.worker_id,
            start=snapshot.start,
            end=snapshot.end,
            status=snapshot.status,
            settlement_id=snapshot.id,
            total_earnings=to_decimal(snapshot.total_earnings),
            system_fees=to_decimal(snapshot.system_fees),
            commission_ids=list(snapshot.commission_ids),
            errand_ids=list(snapshot.errand_ids),
            paid_at=snapshot.paid_at,
            created_at=snapshot.created_at,
            updated_at=snapshot.updated_at,
        )

    @property
    def key(self) -> Tuple[str, date]:
        return (self.worker_id, self.start)

    @property
    def total_transactions(self) -> int:
        return len(self.commission_ids) + len(self.errand_ids)

    @property
    def net_amount(self) -> Decimal:
        return self.total_earnings - self.system_fees

    @property
    def is_persisted(self) -> bool:
        return bool(self.settlement_id)

    @property
    def is_active(self) -> bool:
        return self.status != STATUS_PAID

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def holds(self, transaction: Transaction) -> bool:
        ids = self.commission_ids if transaction.kind == COMMISSION else self.errand_ids
        return transaction.id in ids

    def add(self, transaction: Transaction):
        if transaction.kind == COMMISSION:
            self.commission_ids.append(transaction.id)
        else:
            self.errand_ids.append(transaction.id)
        self.added.append(transaction)
        self.total_earnings = quantize_money(self.total_earnings + to_decimal(transaction.amount))
        self.system_fees = quantize_money(self.system_fees + transaction.system_fee)

    def transaction_keys(self):
        return (
            [(COMMISSION, tx_id) for tx_id in self.commission_ids]
            + [(ERRAND, tx_id) for tx_id in self.errand_ids]
        )


@dataclass(frozen=True)
class DeferredTransaction:
    transaction: Transaction
    reason: str


@dataclass
class AssignmentResult:
    periods: Dict[Tuple[str, date], PlannedPeriod]
    deferred: List[DeferredTransaction]
    tracked_commission_ids: Set[str]
    tracked_errand_ids: Set[str]

    def is_tracked(self, transaction: Transaction) -> bool:
        tracked = self.tracked_commission_ids if transaction.kind == COMMISSION else self.tracked_errand_ids
        return transaction.id in tracked


class _WorkerState:
    """Per-worker bookkeeping for one assignment pass."""

    def __init__(self):
        self.last_paid_end: Optional[date] = None
        self.persisted_active: List[SettlementSnapshot] = []
        self.seeded: Dict[str, PlannedPeriod] = {}
        self.created: List[PlannedPeriod] = []

    def has_active(self) -> bool:
        return bool(self.persisted_active or self.created)

    def period_for(self, day: date, transaction: Transaction) -> Optional[PlannedPeriod]:
        """Return the active period that should hold ``transaction``, seeding it if needed."""
        for period in list(self.seeded.values()) + self.created:
            if period.contains(day) or period.holds(transaction):
                return period
        for snapshot in self.persisted_active:
            if snapshot.contains(day) or transaction.id in _snapshot_ids(snapshot, transaction.kind):
                if snapshot.id not in self.seeded:
                    self.seeded[snapshot.id] = PlannedPeriod.from_snapshot(snapshot)
                return self.seeded[snapshot.id]
        return None

    def periods(self) -> List[PlannedPeriod]:
        return list(self.seeded.values()) + self.created


def _snapshot_ids(snapshot: SettlementSnapshot, kind: str) -> Tuple[str, ...]:
    return snapshot.commission_ids if kind == COMMISSION else snapshot.errand_ids


def _sort_key(item: Tuple[date, Transaction]):
    day, transaction = item
    return (day, transaction.kind, transaction.id)


def assign_periods(
    transactions: Iterable[Transaction],
    existing_settlements: Iterable[SettlementSnapshot],
    period_days: int = DEFAULT_PERIOD_DAYS,
) -> AssignmentResult:
    """
    Compute target settlement periods for ``transactions``.

    Args:
        transactions: eligible (completed, amount > 0) transactions of all workers
        existing_settlements: every persisted settlement of those workers
        period_days: length of a newly opened period, both ends inclusive

    Returns:
        AssignmentResult whose ``periods`` map ``(worker_id, start)`` to the
        periods touched by this pass. Periods seeded from a persisted row keep
        its id and start from its totals.
    """
    span = timedelta(days=period_days - 1)
    existing_settlements = list(existing_settlements)

    tracked_commission_ids: Set[str] = set()
    tracked_errand_ids: Set[str] = set()
    workers: Dict[str, _WorkerState] = defaultdict(_WorkerState)

    for snapshot in existing_settlements:
        tracked_commission_ids.update(str(tx_id) for tx_id in snapshot.commission_ids)
        tracked_errand_ids.update(str(tx_id) for tx_id in snapshot.errand_ids)
        state = workers[snapshot.worker_id]
        if snapshot.is_active:
            state.persisted_active.append(snapshot)
        elif state.last_paid_end is None or snapshot.end > state.last_paid_end:
            state.last_paid_end = snapshot.end

    # Oldest active row first so a date covered by two rows lands in the older one.
    for state in workers.values():
        state.persisted_active.sort(key=lambda s: (s.start, s.id))

    known_dates: Dict[Tuple[str, str], date] = {}
    pending: List[Tuple[date, Transaction]] = []
    deferred: List[DeferredTransaction] = []
    seen: Set[Tuple[str, str]] = set()

    for transaction in transactions:
        if transaction.key in seen:
            continue
        seen.add(transaction.key)

        day = transaction.completed_date
        if day is not None:
            known_dates[transaction.key] = day

        tracked = tracked_commission_ids if transaction.kind == COMMISSION else tracked_errand_ids
        if transaction.id in tracked:
            continue
        if to_decimal(transaction.amount) <= 0:
            continue
        if day is None:
            logger.warning(
                f"Deferring {transaction.kind} {transaction.id} of worker {transaction.worker_id}: "
                f"no completion date"
            )
            deferred.append(DeferredTransaction(transaction, DEFERRED_MISSING_DATE))
            continue
        pending.append((day, transaction))

    # Phase 1: place each transaction using the bounds known when the pass started
    for day, transaction in sorted(pending, key=_sort_key):
        state = workers[transaction.worker_id]

        if state.has_active():
            period = state.period_for(day, transaction)
            if period is None:
                logger.info(
                    f"Deferring {transaction.kind} {transaction.id} of worker {transaction.worker_id}: "
                    f"{day} is outside the active settlement period"
                )
                deferred.append(DeferredTransaction(transaction, DEFERRED_OUTSIDE_ACTIVE))
                continue
        elif state.last_paid_end is not None and day <= state.last_paid_end:
            logger.warning(
                f"Deferring {transaction.kind} {transaction.id} of worker {transaction.worker_id}: "
                f"{day} is on or before the last paid period ending {state.last_paid_end}"
            )
            deferred.append(DeferredTransaction(transaction, DEFERRED_BEFORE_LAST_PAID))
            continue
        else:
            period = PlannedPeriod(worker_id=transaction.worker_id, start=day, end=day + span)
            state.created.append(period)

        period.add(transaction)
        if transaction.kind == COMMISSION:
            tracked_commission_ids.add(transaction.id)
        else:
            tracked_errand_ids.add(transaction.id)

    # Phase 2: earliest-date correction and the keyed map
    periods: Dict[Tuple[str, date], PlannedPeriod] = {}
    for worker_id in sorted(workers):
        for period in workers[worker_id].periods():
            dates = [known_dates[k] for k in period.transaction_keys() if k in known_dates]
            earliest = min(dates) if dates else period.start
            if earliest != period.start:
                if (worker_id, earliest) in periods:
                    logger.warning(
                        f"Not moving settlement {period.settlement_id or '(new)'} of worker {worker_id} "
                        f"to {earliest}: another period already starts there"
                    )
                else:
                    logger.info(
                        f"Moving settlement period of worker {worker_id} from {period.start} "
                        f"to start at {earliest}"
                    )
                    period.start = earliest
                    period.end = earliest + span

            if period.key in periods:
                logger.error(
                    f"Settlements {periods[period.key].settlement_id} and {period.settlement_id} "
                    f"of worker {worker_id} both start on {period.start}; leaving the latter unchanged"
                )
                for transaction in period.added:
                    tracked = tracked_commission_ids if transaction.kind == COMMISSION else tracked_errand_ids
                    tracked.discard(transaction.id)
                    deferred.append(DeferredTransaction(transaction, DEFERRED_CONFLICTING_PERIOD))
                continue
            periods[period.key] = period

    return AssignmentResult(
        periods=periods,
        deferred=deferred,
        tracked_commission_ids=tracked_commission_ids,
        tracked_errand_ids=tracked_errand_ids,
    )
