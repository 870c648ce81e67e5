"""Read side of reconciliation: runners, their transactions and their settlements."""

import logging
from dataclasses import dataclass
from typing import Dict, List

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.db.models import Prefetch

from apps.marketplace.models import Commission, Errand, Invoice
from ..models import Settlement
from .exceptions import SettlementDataUnavailableError
from .fees import to_decimal
from .period_assignment import COMMISSION, ERRAND, SettlementSnapshot, Transaction

logger = logging.getLogger(__name__)

User = get_user_model()


@dataclass
class SettlementInputs:
    runners: Dict[str, object]
    transactions: List[Transaction]
    settlements: List[SettlementSnapshot]


def commission_to_transaction(commission: Commission) -> Transaction:
    return Transaction(
        kind=COMMISSION,
        id=str(commission.id),
        worker_id=str(commission.runner_id),
        completed_on=commission.completed_on,
        amount=commission.get_amount(list(commission.invoices.all())),
    )


def errand_to_transaction(errand: Errand) -> Transaction:
    return Transaction(
        kind=ERRAND,
        id=str(errand.id),
        worker_id=str(errand.runner_id),
        completed_on=errand.completed_on,
        amount=to_decimal(errand.amount_price),
        fee_basis={'items': errand.items, 'category': errand.category},
    )


def settlement_to_snapshot(settlement: Settlement) -> SettlementSnapshot:
    return SettlementSnapshot(
        id=str(settlement.id),
        worker_id=str(settlement.user_id),
        start=settlement.period_start_date,
        end=settlement.period_end_date,
        status=(settlement.status or '').strip().lower(),
        total_earnings=to_decimal(settlement.total_earnings),
        system_fees=to_decimal(settlement.system_fees),
        total_transactions=settlement.total_transactions or 0,
        commission_ids=tuple(str(tx_id) for tx_id in (settlement.commission_ids or [])),
        errand_ids=tuple(str(tx_id) for tx_id in (settlement.errand_ids or [])),
        paid_at=settlement.paid_at,
        created_at=settlement.created_at,
        updated_at=settlement.updated_at,
    )


def eligible_transactions(runner_ids, start_date=None, end_date=None) -> List[Transaction]:
    """
    Completed errands and commissions of ``runner_ids`` with a positive amount,
    optionally restricted to those completed within ``[start_date, end_date]``.
    """
    commissions = (
        Commission.objects
        .completed()
        .for_runners(runner_ids)
        .prefetch_related(Prefetch('invoices', queryset=Invoice.objects.order_by('-created_at')))
        .order_by('-created_at')
    )
    errands = Errand.objects.completed().for_runners(runner_ids).order_by('-created_at')
    if start_date is not None and end_date is not None:
        commissions = commissions.completed_between(start_date, end_date)
        errands = errands.completed_between(start_date, end_date)

    transactions = [commission_to_transaction(c) for c in commissions]
    transactions += [errand_to_transaction(e) for e in errands]
    return [tx for tx in transactions if tx.amount > 0]


def load_settlement_inputs() -> SettlementInputs:
    """
    Load everything a reconciliation pass reads.

    Raises:
        SettlementDataUnavailableError: if any of the reads fails. Nothing
            has been written at that point.
    """
    limit = settings.SETTLEMENT_RUNNER_QUERY_LIMIT
    try:
        runners = list(User.objects.buddyrunners().order_by('-created_at')[:limit])
        runner_ids = [runner.id for runner in runners]

        transactions = eligible_transactions(runner_ids)
        settlements = [
            settlement_to_snapshot(s)
            for s in Settlement.objects.filter(user_id__in=runner_ids).order_by('-updated_at')
        ]
    except DatabaseError as e:
        logger.error(f"Could not load settlement inputs: {e}")
        raise SettlementDataUnavailableError(f"Settlement data is unavailable: {e}") from e

    logger.debug(
        f"Loaded {len(runners)} runners, {len(transactions)} transactions, "
        f"{len(settlements)} settlements"
    )
    return SettlementInputs(
        runners={str(runner.id): runner for runner in runners},
        transactions=transactions,
        settlements=settlements,
    )
