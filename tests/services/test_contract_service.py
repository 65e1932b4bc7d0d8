"""
Tests for ContractService: funding, completion and operator status changes.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from accrual_kernel.domain.values import (
    ContractClass,
    ContractStatus,
    PeriodUnit,
    TransactionKind,
)
from accrual_kernel.exceptions import (
    InsufficientFundsError,
    InvalidStatusTransitionError,
    PlanLimitError,
    PlanNotFoundError,
    ValidationError,
)
from accrual_kernel.selectors.balance_selector import BalanceSelector
from accrual_kernel.selectors.contract_selector import ContractSelector
from accrual_kernel.services.contract_service import ContractService
from accrual_kernel.services.ledger_writer import LedgerWriter
from accrual_kernel.services.plan_service import PlanService


@pytest.fixture
def contracts(session, policy, clock):
    return ContractService(session, policy, clock)


@pytest.fixture
def plan(session, clock):
    return PlanService(session, clock).create_plan(
        contract_class="investment",
        name="Starter",
        min_amount="100.00",
        max_amount="5000.00",
        rate="0.02",
        duration_periods=5,
    )


def _deposit(session, policy, clock, owner_id, amount):
    LedgerWriter(session, policy, clock).adjust_balance(owner_id, "deposit", amount, "credit")


class TestOpenContract:
    def test_debits_deposit_with_investment_transaction(
        self, session, contracts, plan, policy, clock, owner_id
    ):
        _deposit(session, policy, clock, owner_id, "1500.00")

        info = contracts.open_contract(owner_id, plan.id, "1000.00")

        assert info.status is ContractStatus.ACTIVE
        assert info.period_unit is PeriodUnit.DAY
        assert info.rate == Decimal("0.02")
        assert info.plan_id == plan.id

        selector = BalanceSelector(session)
        assert selector.get_balance(owner_id).deposit == Decimal("500.00")
        [txn] = selector.transactions_for_reference(info.id)
        assert txn.kind is TransactionKind.INVESTMENT
        assert txn.amount == Decimal("1000.00")

    def test_insufficient_deposit(self, session, contracts, plan, policy, clock, owner_id):
        _deposit(session, policy, clock, owner_id, "50.00")
        with pytest.raises(InsufficientFundsError):
            contracts.open_contract(owner_id, plan.id, "100.00")

    @pytest.mark.parametrize("amount", ["99.99", "5000.01"])
    def test_amount_outside_plan_bounds(self, contracts, plan, owner_id, amount):
        with pytest.raises(PlanLimitError):
            contracts.open_contract(owner_id, plan.id, amount)

    def test_inactive_plan(self, session, contracts, plan, clock, owner_id):
        PlanService(session, clock).deactivate_plan(plan.id)
        with pytest.raises(PlanLimitError) as exc_info:
            contracts.open_contract(owner_id, plan.id, "500.00")
        assert "not active" in exc_info.value.reason

    def test_unknown_plan(self, contracts, owner_id):
        with pytest.raises(PlanNotFoundError):
            contracts.open_contract(owner_id, uuid4(), "500.00")


class TestCreateContract:
    def test_live_trade_accrues_hourly(self, contracts, owner_id):
        info = contracts.create_contract(
            owner_id, "live-trade", "200.00", "0.001", 24, fund_from_deposit=False
        )
        assert info.contract_class is ContractClass.LIVE_TRADE
        assert info.period_unit is PeriodUnit.HOUR

    @pytest.mark.parametrize("duration", [0, -1, 2.5, True])
    def test_bad_duration(self, contracts, owner_id, duration):
        with pytest.raises(ValidationError):
            contracts.create_contract(
                owner_id, "investment", "100.00", "0.01", duration, fund_from_deposit=False
            )

    def test_naive_start_rejected(self, contracts, owner_id, clock):
        with pytest.raises(ValidationError):
            contracts.create_contract(
                owner_id, "investment", "100.00", "0.01", 3,
                start_at=clock.now().replace(tzinfo=None),
                fund_from_deposit=False,
            )


class TestLifecycle:
    @pytest.fixture
    def contract(self, contracts, owner_id):
        return contracts.create_contract(
            owner_id, ContractClass.INVESTMENT, "1000.00", "0.02", 5, fund_from_deposit=False
        )

    def test_complete_returns_principal(self, session, contracts, contract, clock):
        clock.advance(days=6)
        info = contracts.complete_contract(contract.id)

        assert info.status is ContractStatus.COMPLETED
        assert info.end_at == clock.now()
        assert info.periods_distributed == 5
        balance = BalanceSelector(session).get_balance(contract.owner_id)
        assert balance.deposit == Decimal("1000.00")
        assert balance.profit == Decimal("100.00")
        kinds = [t.kind for t in BalanceSelector(session).transactions_for_reference(contract.id)]
        assert kinds.count(TransactionKind.PROFIT) == 5
        assert kinds.count(TransactionKind.PRINCIPAL_RETURN) == 1

    def test_complete_without_principal_return(self, session, policy, clock, contract):
        clock.advance(days=5)
        service = ContractService(session, policy, clock, return_principal_on_completion=False)
        service.complete_contract(contract.id)
        balance = BalanceSelector(session).get_balance(contract.owner_id)
        assert balance.deposit == Decimal("0.00")
        assert balance.profit == Decimal("100.00")

    def test_complete_refused_before_last_period_elapses(
        self, session, contracts, contract, clock
    ):
        clock.advance(days=3)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            contracts.complete_contract(contract.id)

        assert exc_info.value.reason == "3 of 5 periods elapsed"
        info = ContractSelector(session).get_contract(contract.id)
        assert info.status is ContractStatus.ACTIVE
        assert info.periods_distributed == 0
        assert BalanceSelector(session).transactions_for_reference(contract.id) == []

    def test_suspended_contract_cannot_complete(self, session, contracts, contract, clock):
        """Owed periods of a suspended contract stay owed until it resumes."""
        contracts.suspend_contract(contract.id)
        clock.advance(days=6)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            contracts.complete_contract(contract.id)
        assert exc_info.value.current == "suspended"

        contracts.resume_contract(contract.id)
        info = contracts.complete_contract(contract.id)
        assert info.periods_distributed == 5
        assert info.accumulated_profit == Decimal("100.00")

    def test_complete_if_fully_distributed_waits(self, contracts, contract):
        assert contracts.complete_if_fully_distributed(contract.id) is None

    def test_suspend_and_resume(self, contracts, contract):
        assert contracts.suspend_contract(contract.id).status is ContractStatus.SUSPENDED
        assert contracts.resume_contract(contract.id).status is ContractStatus.ACTIVE

    def test_cancel_moves_no_money(self, session, contracts, contract):
        info = contracts.cancel_contract(contract.id)
        assert info.status is ContractStatus.CANCELLED
        assert info.end_at is not None
        assert BalanceSelector(session).transactions_for_reference(contract.id) == []

    def test_terminal_states_are_final(self, contracts, contract):
        contracts.cancel_contract(contract.id)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            contracts.resume_contract(contract.id)
        assert exc_info.value.current == "cancelled"
        assert exc_info.value.requested == "active"
