"""
Property-based tests for the accrual arithmetic, the schedule and the
balance ledger.

Uses Hypothesis to generate amounts, rates, time offsets and operation
sequences, then checks the invariants that must hold for every input:
- A period amount is cent-precise and within half a cent of the exact product
- Missing periods plus recorded periods always cover exactly the elapsed ones
- total always equals the sum of its components, and no component goes negative
- The stored balance always equals the sum of the transaction log
- Crediting periods in any order, with repeats, credits each one once
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from accrual_kernel.db.types import ZERO
from accrual_kernel.domain.accrual import expected_total, period_profit
from accrual_kernel.domain.schedule import period_slots, resolve_schedule
from accrual_kernel.domain.values import (
    BalanceComponent,
    ContractClass,
    Direction,
    PeriodUnit,
)
from accrual_kernel.exceptions import DuplicatePeriodError, InsufficientFundsError
from accrual_kernel.selectors.balance_selector import BalanceSelector
from accrual_kernel.services.contract_service import ContractService
from accrual_kernel.services.ledger_writer import LedgerWriter

DB_SETTINGS = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)

money = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("1000000.00"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
rates = st.decimals(
    min_value=Decimal("0.0001"),
    max_value=Decimal("0.5"),
    places=4,
    allow_nan=False,
    allow_infinity=False,
)
starts = st.datetimes(
    min_value=datetime(2020, 1, 1),
    max_value=datetime(2030, 1, 1),
    timezones=st.just(timezone.utc),
)
units = st.sampled_from(list(PeriodUnit))


class TestAccrualArithmetic:
    @given(principal=money, rate=rates)
    @settings(max_examples=300)
    def test_period_amount_is_cent_precise(self, principal, rate):
        amount = period_profit(principal, rate)
        assert amount == amount.quantize(Decimal("0.01"))
        assert amount >= ZERO
        assert abs(amount - principal * rate) <= Decimal("0.005")

    @given(principal=money, rate=rates, periods=st.integers(min_value=0, max_value=400))
    @settings(max_examples=200)
    def test_total_is_sum_of_periods(self, principal, rate, periods):
        per_period = period_profit(principal, rate)
        assert expected_total(principal, rate, periods) == sum(
            (per_period for _ in range(periods)), ZERO
        )


class TestScheduleProperties:
    @given(
        start=starts,
        unit=units,
        duration=st.integers(min_value=1, max_value=60),
        offset_minutes=st.integers(min_value=-600, max_value=60 * 24 * 90),
        data=st.data(),
    )
    @settings(max_examples=300)
    def test_missing_and_recorded_partition_elapsed(
        self, start, unit, duration, offset_minutes, data
    ):
        now = start + timedelta(minutes=offset_minutes)
        elapsed_slots = period_slots(start, unit, duration)
        recorded = data.draw(st.sets(st.sampled_from([s.key for s in elapsed_slots])))

        state = resolve_schedule(start, now, unit, duration, recorded)

        assert 0 <= state.elapsed <= duration
        owed = {s.key for s in elapsed_slots[: state.elapsed]}
        missing = [s.key for s in state.missing]
        assert set(missing) == owed - recorded
        assert missing == sorted(missing)
        assert [s.number for s in state.missing] == sorted(s.number for s in state.missing)
        assert state.ready_to_complete == (state.elapsed == duration and not state.missing)

    @given(start=starts, unit=units, duration=st.integers(min_value=1, max_value=200))
    def test_keys_are_distinct_and_truncated(self, start, unit, duration):
        keys = [s.key for s in period_slots(start, unit, duration)]
        assert len(set(keys)) == duration
        assert all(k.minute == 0 and k.second == 0 and k.microsecond == 0 for k in keys)
        if unit is PeriodUnit.DAY:
            assert all(k.hour == 0 for k in keys)


operations = st.lists(
    st.tuples(
        st.sampled_from(
            [
                BalanceComponent.DEPOSIT,
                BalanceComponent.PROFIT,
                BalanceComponent.BONUS,
                BalanceComponent.CARD,
                BalanceComponent.CREDIT_SCORE,
            ]
        ),
        st.sampled_from(list(Direction)),
        st.decimals(
            min_value=Decimal("0.01"),
            max_value=Decimal("500.00"),
            places=2,
            allow_nan=False,
            allow_infinity=False,
        ),
    ),
    min_size=1,
    max_size=25,
)


class TestLedgerProperties:
    @given(ops=operations)
    @DB_SETTINGS
    def test_balance_matches_log_after_any_sequence(self, session, policy, clock, ops):
        owner_id = uuid4()
        writer = LedgerWriter(session, policy, clock)

        for component, direction, amount in ops:
            try:
                writer.adjust_balance(owner_id, component, amount, direction)
            except InsufficientFundsError:
                pass

            snapshot = BalanceSelector(session).get_balance(owner_id)
            assert all(v >= ZERO for v in snapshot.as_dict().values())
            assert snapshot.total == sum(
                (snapshot.get(c) for c in policy.total_components), ZERO
            )

        derived = {c: ZERO for c in BalanceComponent}
        for txn in BalanceSelector(session).completed_transactions(owner_id):
            derived[txn.component] += txn.amount if txn.direction is Direction.CREDIT else -txn.amount
        snapshot = BalanceSelector(session).get_balance(owner_id)
        for component in BalanceComponent:
            if component is not BalanceComponent.TOTAL:
                assert snapshot.get(component) == derived[component]

    @given(
        principal=money,
        rate=rates,
        duration=st.integers(min_value=1, max_value=10),
        data=st.data(),
    )
    @DB_SETTINGS
    def test_backfill_credits_each_period_once(
        self, session, policy, clock, principal, rate, duration, data
    ):
        owner_id = uuid4()
        contract = ContractService(session, policy, clock).create_contract(
            owner_id, ContractClass.INVESTMENT, principal, rate, duration, fund_from_deposit=False
        )
        clock.advance(days=duration)
        slots = period_slots(contract.start_at, contract.period_unit, duration)
        attempts = data.draw(st.lists(st.sampled_from(slots), min_size=1, max_size=3 * duration))
        writer = LedgerWriter(session, policy, clock)

        for slot in attempts:
            try:
                writer.apply_accrual(contract.id, slot, period_profit(principal, rate))
            except DuplicatePeriodError:
                pass

        credited = len({s.number for s in attempts})
        balance = BalanceSelector(session).get_balance(owner_id)
        assert balance.profit == expected_total(principal, rate, credited)
