"""
Tests for PlanService.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from accrual_kernel.domain.values import ContractClass
from accrual_kernel.exceptions import (
    InvalidAmountError,
    InvalidContractClassError,
    PlanNotFoundError,
    ValidationError,
)
from accrual_kernel.services.plan_service import PlanService


@pytest.fixture
def plans(session, clock):
    return PlanService(session, clock)


class TestPlanService:
    def test_create_and_get(self, plans):
        created = plans.create_plan("investment", "  Gold  ", "500", "0.015", 30)
        fetched = plans.get_plan(created.id)
        assert fetched == created
        assert fetched.name == "Gold"
        assert fetched.min_amount == Decimal("500.00")
        assert fetched.max_amount is None
        assert fetched.is_active

    def test_list_filters_by_class_and_activity(self, plans):
        daily = plans.create_plan("investment", "Daily", "100", "0.01", 10)
        hourly = plans.create_plan("liveTrade", "Hourly", "50", "0.001", 48)
        plans.deactivate_plan(daily.id)

        assert [p.id for p in plans.list_plans()] == [hourly.id]
        assert plans.list_plans(ContractClass.INVESTMENT) == []
        assert {p.id for p in plans.list_plans(active_only=False)} == {daily.id, hourly.id}

    def test_list_orders_by_min_amount(self, plans):
        big = plans.create_plan("investment", "Big", "1000", "0.02", 5)
        small = plans.create_plan("investment", "Small", "10", "0.01", 5)
        assert [p.id for p in plans.list_plans()] == [small.id, big.id]

    def test_max_below_min(self, plans):
        with pytest.raises(ValidationError):
            plans.create_plan("investment", "Bad", "100", "0.01", 5, max_amount="50")

    def test_empty_name(self, plans):
        with pytest.raises(ValidationError):
            plans.create_plan("investment", "   ", "100", "0.01", 5)

    def test_negative_minimum(self, plans):
        with pytest.raises(InvalidAmountError):
            plans.create_plan("investment", "Neg", "-1", "0.01", 5)

    def test_unknown_class(self, plans):
        with pytest.raises(InvalidContractClassError):
            plans.create_plan("savings", "X", "100", "0.01", 5)

    def test_missing_plan(self, plans):
        with pytest.raises(PlanNotFoundError):
            plans.get_plan(uuid4())
