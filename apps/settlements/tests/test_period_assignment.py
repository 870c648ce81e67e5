from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from apps.settlements.services.period_assignment import (
    COMMISSION,
    DEFERRED_BEFORE_LAST_PAID,
    DEFERRED_MISSING_DATE,
    DEFERRED_OUTSIDE_ACTIVE,
    ERRAND,
    SettlementSnapshot,
    Transaction,
    assign_periods,
    to_utc_date,
)

WORKER = 'worker-1'
OTHER_WORKER = 'worker-2'


def errand(tx_id, day, amount, worker=WORKER, category='Deliver Items', items=None):
    return Transaction(
        kind=ERRAND,
        id=tx_id,
        worker_id=worker,
        completed_on=day,
        amount=Decimal(str(amount)),
        fee_basis={'items': items or [], 'category': category},
    )


def commission(tx_id, day, amount, worker=WORKER):
    return Transaction(
        kind=COMMISSION,
        id=tx_id,
        worker_id=worker,
        completed_on=day,
        amount=Decimal(str(amount)),
    )


def snapshot(row_id, start, end, status='pending', worker=WORKER, errands=(), commissions=(),
             earnings='0', fees='0'):
    return SettlementSnapshot(
        id=row_id,
        worker_id=worker,
        start=start,
        end=end,
        status=status,
        total_earnings=Decimal(earnings),
        system_fees=Decimal(fees),
        total_transactions=len(errands) + len(commissions),
        errand_ids=tuple(errands),
        commission_ids=tuple(commissions),
    )


class TestToUtcDate:

    def test_aware_datetime_is_converted_to_utc(self):
        manila_evening = datetime(2024, 1, 2, 23, 30, tzinfo=dt_timezone(timedelta(hours=-8)))
        assert to_utc_date(manila_evening) == date(2024, 1, 3)

    def test_iso_strings(self):
        assert to_utc_date('2024-01-02T10:00:00Z') == date(2024, 1, 2)
        assert to_utc_date('2024-01-02 10:00:00+00:00') == date(2024, 1, 2)
        assert to_utc_date('2024-01-02') == date(2024, 1, 2)

    def test_unusable_values(self):
        assert to_utc_date(None) is None
        assert to_utc_date('') is None
        assert to_utc_date('yesterday') is None
        assert to_utc_date(12345) is None


class TestNewPeriods:

    def test_two_errands_share_one_period(self):
        transactions = [
            errand('e1', date(2024, 1, 2), 100, category='School Materials', items=[{'name': 'Ballpen', 'qty': 1}]),
            errand('e2', date(2024, 1, 4), 50, category='School Materials', items=[{'name': 'Yellowpad', 'qty': 1}]),
        ]

        result = assign_periods(transactions, [])

        assert list(result.periods) == [(WORKER, date(2024, 1, 2))]
        period = result.periods[(WORKER, date(2024, 1, 2))]
        assert period.start == date(2024, 1, 2)
        assert period.end == date(2024, 1, 6)
        assert period.total_earnings == Decimal('150.00')
        # 5 + 12% x (10 item + 10 delivery) per errand
        assert period.system_fees == Decimal('14.80')
        assert period.total_transactions == 2
        assert period.status == 'pending'
        assert period.settlement_id is None
        assert sorted(period.errand_ids) == ['e1', 'e2']

    def test_new_period_spans_five_days(self):
        result = assign_periods([errand('e1', date(2024, 2, 27), 40)], [])

        period = result.periods[(WORKER, date(2024, 2, 27))]
        assert (period.end - period.start).days == 4
        assert period.end == date(2024, 3, 2)

    def test_fees_follow_transaction_kind(self):
        result = assign_periods([
            commission('c1', date(2024, 1, 2), 117),
            errand('e1', date(2024, 1, 3), 50, category='Food Delivery', items=[
                {'name': 'Waffles', 'qty': 1},
                {'name': 'Biscuits', 'qty': 1, 'price': 15},
            ]),
        ], [])

        period = result.periods[(WORKER, date(2024, 1, 2))]
        assert period.system_fees == Decimal('30.40')
        assert period.commission_ids == ['c1']
        assert period.errand_ids == ['e1']
        assert period.net_amount == Decimal('136.60')

    def test_workers_are_independent(self):
        result = assign_periods([
            errand('e1', date(2024, 1, 2), 10),
            errand('e2', date(2024, 1, 9), 10, worker=OTHER_WORKER),
        ], [])

        assert set(result.periods) == {
            (WORKER, date(2024, 1, 2)),
            (OTHER_WORKER, date(2024, 1, 9)),
        }

    def test_input_order_does_not_matter(self):
        transactions = [
            errand('e1', date(2024, 1, 2), 100),
            commission('c1', date(2024, 1, 4), 60),
            errand('e2', date(2024, 1, 8), 30),
            errand('e3', date(2024, 1, 6), 20),
        ]

        forward = assign_periods(transactions, [])
        backward = assign_periods(list(reversed(transactions)), [])

        assert forward.periods.keys() == backward.periods.keys()
        for key, period in forward.periods.items():
            other = backward.periods[key]
            assert (period.start, period.end) == (other.start, other.end)
            assert sorted(period.errand_ids) == sorted(other.errand_ids)
            assert period.total_earnings == other.total_earnings
        assert {d.transaction.id for d in forward.deferred} == {d.transaction.id for d in backward.deferred}

    def test_transaction_after_new_period_is_deferred(self):
        result = assign_periods([
            errand('e1', date(2024, 1, 2), 100),
            errand('e2', date(2024, 1, 8), 30),
        ], [])

        assert len(result.periods) == 1
        assert [(d.transaction.id, d.reason) for d in result.deferred] == [
            ('e2', DEFERRED_OUTSIDE_ACTIVE),
        ]
        assert 'e2' not in result.tracked_errand_ids

    def test_missing_date_is_deferred(self):
        result = assign_periods([errand('e1', None, 100)], [])

        assert result.periods == {}
        assert result.deferred[0].reason == DEFERRED_MISSING_DATE

    def test_non_positive_amounts_are_ignored(self):
        result = assign_periods([errand('e1', date(2024, 1, 2), 0)], [])

        assert result.periods == {}
        assert result.deferred == []


class TestExistingSettlements:

    def test_tracked_transactions_are_not_assigned_again(self):
        existing = [snapshot('s1', date(2024, 1, 2), date(2024, 1, 6), errands=['e1'], earnings='100')]

        result = assign_periods([errand('e1', date(2024, 1, 2), 100)], existing)

        assert result.periods == {}
        assert result.tracked_errand_ids == {'e1'}

    def test_commission_and_errand_ids_are_tracked_separately(self):
        existing = [snapshot('s1', date(2024, 1, 2), date(2024, 1, 6), errands=['x1'], earnings='10')]

        result = assign_periods([commission('x1', date(2024, 1, 2), 20)], existing)

        period = result.periods[(WORKER, date(2024, 1, 2))]
        assert period.commission_ids == ['x1']
        assert period.errand_ids == ['x1']

    def test_transaction_inside_active_period_joins_it(self):
        existing = [snapshot('s1', date(2024, 1, 2), date(2024, 1, 6), errands=['e1'],
                             earnings='100.00', fees='19.40')]

        result = assign_periods([
            errand('e1', date(2024, 1, 2), 100),
            errand('e2', date(2024, 1, 5), 50),
        ], existing)

        period = result.periods[(WORKER, date(2024, 1, 2))]
        assert period.settlement_id == 's1'
        assert period.errand_ids == ['e1', 'e2']
        assert period.total_earnings == Decimal('150.00')
        assert period.total_transactions == 2

    def test_transaction_outside_active_period_is_deferred(self):
        existing = [snapshot('s1', date(2024, 1, 2), date(2024, 1, 6), errands=['e1'], earnings='100')]

        result = assign_periods([
            errand('e1', date(2024, 1, 2), 100),
            errand('e2', date(2024, 1, 9), 50),
        ], existing)

        assert result.periods == {}
        assert [(d.transaction.id, d.reason) for d in result.deferred] == [
            ('e2', DEFERRED_OUTSIDE_ACTIVE),
        ]

    def test_overdue_settlement_is_still_active(self):
        existing = [snapshot('s1', date(2024, 1, 2), date(2024, 1, 6), status='overdue',
                             errands=['e1'], earnings='100')]

        result = assign_periods([errand('e2', date(2024, 1, 20), 50)], existing)

        assert result.periods == {}
        assert result.deferred[0].reason == DEFERRED_OUTSIDE_ACTIVE

    def test_transaction_on_or_before_last_paid_period_is_deferred(self):
        existing = [snapshot('s1', date(2024, 1, 2), date(2024, 1, 6), status='paid',
                             errands=['e1'], earnings='100')]

        result = assign_periods([errand('e2', date(2024, 1, 6), 50)], existing)

        assert result.periods == {}
        assert result.deferred[0].reason == DEFERRED_BEFORE_LAST_PAID

    def test_transaction_after_paid_period_opens_new_one(self):
        existing = [snapshot('s1', date(2024, 1, 2), date(2024, 1, 6), status='paid',
                             errands=['e1'], earnings='100')]

        result = assign_periods([
            errand('e1', date(2024, 1, 2), 100),
            errand('e2', date(2024, 1, 7), 50),
        ], existing)

        period = result.periods[(WORKER, date(2024, 1, 7))]
        assert period.settlement_id is None
        assert period.end == date(2024, 1, 11)
        assert period.errand_ids == ['e2']

    def test_period_start_moves_to_earliest_transaction(self):
        # Row starts after one of its own transactions.
        existing = [snapshot('s1', date(2024, 1, 5), date(2024, 1, 9), errands=['e1'], earnings='100')]

        result = assign_periods([
            errand('e1', date(2024, 1, 3), 100),
            errand('e2', date(2024, 1, 6), 50),
        ], existing)

        assert list(result.periods) == [(WORKER, date(2024, 1, 3))]
        period = result.periods[(WORKER, date(2024, 1, 3))]
        assert period.settlement_id == 's1'
        assert period.start == date(2024, 1, 3)
        assert period.end == date(2024, 1, 7)

    def test_no_transaction_id_is_assigned_twice(self):
        existing = [
            snapshot('s1', date(2024, 1, 2), date(2024, 1, 6), status='paid', errands=['e1'], earnings='10'),
        ]
        transactions = [
            errand('e1', date(2024, 1, 2), 10),
            errand('e2', date(2024, 1, 8), 10),
            errand('e2', date(2024, 1, 8), 10),
            commission('c1', date(2024, 1, 9), 30),
        ]

        result = assign_periods(transactions, existing)

        seen = []
        for period in result.periods.values():
            seen += [(COMMISSION, i) for i in period.commission_ids]
            seen += [(ERRAND, i) for i in period.errand_ids]
        assert len(seen) == len(set(seen))
        assert (ERRAND, 'e1') not in seen
