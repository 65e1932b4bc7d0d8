"""Contract, distribution record and withdrawal reads."""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from accrual_kernel.domain.dtos import ContractInfo, WithdrawalInfo
from accrual_kernel.domain.values import ContractClass, ContractStatus, WithdrawalStatus
from accrual_kernel.exceptions import ContractNotFoundError, WithdrawalNotFoundError
from accrual_kernel.models.contract import Contract
from accrual_kernel.models.distribution import ProfitDistributionRecord
from accrual_kernel.models.withdrawal import WithdrawalRequest
from accrual_kernel.selectors.base import BaseSelector


class ContractSelector(BaseSelector):
    def get_contract(self, contract_id: UUID) -> ContractInfo:
        contract = self.session.get(Contract, contract_id, populate_existing=True)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract.to_dto()

    def list_for_owner(self, owner_id: UUID) -> list[ContractInfo]:
        rows = self.session.execute(
            select(Contract)
            .where(Contract.owner_id == owner_id)
            .order_by(Contract.start_at.desc(), Contract.id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def active_contracts(self, contract_class: ContractClass) -> list[ContractInfo]:
        rows = self.session.execute(
            select(Contract)
            .where(
                Contract.contract_class == contract_class,
                Contract.status == ContractStatus.ACTIVE,
            )
            .order_by(Contract.start_at, Contract.id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def all_contract_ids(self) -> list[UUID]:
        return list(self.session.execute(select(Contract.id).order_by(Contract.id)).scalars())

    def distribution_totals(self, contract_id: UUID) -> tuple[int, Decimal]:
        """(record count, summed amount) from the distribution records."""
        count, total = self.session.execute(
            select(
                func.count(ProfitDistributionRecord.id),
                func.coalesce(func.sum(ProfitDistributionRecord.amount), 0),
            ).where(ProfitDistributionRecord.contract_id == contract_id)
        ).one()
        return int(count), total

    def distributed_period_numbers(self, contract_id: UUID) -> list[int]:
        return list(
            self.session.execute(
                select(ProfitDistributionRecord.period_number)
                .where(ProfitDistributionRecord.contract_id == contract_id)
                .order_by(ProfitDistributionRecord.period_number)
            ).scalars()
        )


class WithdrawalSelector(BaseSelector):
    def get_request(self, request_id: UUID) -> WithdrawalInfo:
        request = self.session.get(WithdrawalRequest, request_id, populate_existing=True)
        if request is None:
            raise WithdrawalNotFoundError(str(request_id))
        return request.to_dto()

    def list_for_owner(
        self,
        owner_id: UUID,
        status: WithdrawalStatus | None = None,
    ) -> list[WithdrawalInfo]:
        stmt = select(WithdrawalRequest).where(WithdrawalRequest.owner_id == owner_id)
        if status is not None:
            stmt = stmt.where(WithdrawalRequest.status == status)
        stmt = stmt.order_by(WithdrawalRequest.created_at.desc(), WithdrawalRequest.id)
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]
