"""
Tests for ScheduleResolver against stored contracts.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from accrual_kernel.domain.values import ContractClass
from accrual_kernel.exceptions import ContractNotFoundError
from accrual_kernel.services.contract_service import ContractService
from accrual_kernel.services.ledger_writer import LedgerWriter
from accrual_kernel.services.schedule_resolver import ScheduleResolver


@pytest.fixture
def resolver(session, clock):
    return ScheduleResolver(session, clock)


def _open(session, policy, clock, owner_id, **overrides):
    terms = dict(
        owner_id=owner_id,
        contract_class=ContractClass.INVESTMENT,
        principal=Decimal("1000.00"),
        rate=Decimal("0.02"),
        duration_periods=5,
        fund_from_deposit=False,
    )
    terms.update(overrides)
    return ContractService(session, policy, clock).create_contract(**terms)


class TestScheduleResolver:
    def test_new_contract_owes_nothing(self, session, resolver, policy, clock, owner_id):
        contract = _open(session, policy, clock, owner_id)
        schedule = resolver.resolve(contract.id)
        assert schedule.elapsed == 0
        assert schedule.missing == ()
        assert schedule.period_amount == Decimal("20.00")

    def test_missing_periods_after_time_passes(self, session, resolver, policy, clock, owner_id):
        contract = _open(session, policy, clock, owner_id)
        clock.advance(days=3)
        schedule = resolver.resolve(contract.id)
        assert schedule.elapsed == 3
        assert [s.number for s in schedule.missing] == [1, 2, 3]

    def test_recorded_periods_not_missing(self, session, resolver, policy, clock, owner_id):
        contract = _open(session, policy, clock, owner_id)
        clock.advance(days=3)
        first = resolver.resolve(contract.id).missing[0]
        LedgerWriter(session, policy, clock).apply_accrual(contract.id, first, Decimal("20.00"))

        schedule = resolver.resolve(contract.id)
        assert [s.number for s in schedule.missing] == [2, 3]

    def test_live_trade_is_hourly(self, session, resolver, policy, clock, owner_id):
        contract = _open(
            session, policy, clock, owner_id,
            contract_class=ContractClass.LIVE_TRADE, duration_periods=24,
        )
        schedule = resolver.resolve(contract.id, clock.now() + timedelta(hours=5, minutes=30))
        assert schedule.elapsed == 5

    def test_unknown_contract(self, resolver):
        with pytest.raises(ContractNotFoundError):
            resolver.resolve(uuid4())
