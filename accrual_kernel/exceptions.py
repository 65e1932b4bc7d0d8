"""
Typed Exception Hierarchy for the Accrual Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (the HTTP layer, the CLI, the distribution scheduler)
must react to failures by category, never by parsing message text:
  - a rejected trigger inside its cooldown window is reported with the
    remaining wait, not retried;
  - a duplicate period credit is an expected outcome of overlapping runs;
  - an insufficient-funds settlement must leave no partial state.

Every exception therefore has:
  1. A TYPED class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        settlement.transition(request_id, WithdrawalStatus.APPROVED, actor_id)
    except InsufficientFundsError as e:
        api_response(code=e.code, requested=e.requested, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AccrualLedgerError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- UnknownComponentError
    |   +-- ComponentNotMutableError
    |   +-- InvalidStatusTransitionError
    |   +-- InvalidContractClassError
    |   +-- PlanLimitError
    |
    +-- NotFoundError
    |   +-- ContractNotFoundError
    |   +-- WithdrawalNotFoundError
    |   +-- PlanNotFoundError
    |
    +-- InsufficientFundsError
    +-- DuplicatePeriodError
    +-- ContractNotActiveError
    +-- OnCooldownError
    +-- PersistenceError
    +-- ImmutabilityViolationError
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                        | When Raised
----------------------------|-----------------------------------------------
VALIDATION_ERROR            | Malformed amount, status, component or class
INVALID_AMOUNT              | Non-positive, float or over-precise amount
UNKNOWN_COMPONENT           | Name outside the balance component enum
COMPONENT_NOT_MUTABLE       | Component outside the deployment's mutable set
INVALID_STATUS_TRANSITION   | Withdrawal or contract state machine violation
INVALID_CONTRACT_CLASS      | Unknown class, or class/period-unit mismatch
PLAN_LIMIT                  | Funding amount outside a plan's [min, max]
NOT_FOUND                   | Generic unknown entity
CONTRACT_NOT_FOUND          | Contract id doesn't exist
WITHDRAWAL_NOT_FOUND        | Withdrawal request id doesn't exist
PLAN_NOT_FOUND              | Plan id doesn't exist
INSUFFICIENT_FUNDS          | Debit would leave a component (or total) < 0
DUPLICATE_PERIOD            | Period already credited (idempotency anchor)
CONTRACT_NOT_ACTIVE         | Accrual attempted on a non-active contract
ON_COOLDOWN                 | Distribution trigger inside the cooldown window
PERSISTENCE_ERROR           | Store failure for one unit of work
IMMUTABILITY_VIOLATION      | UPDATE/DELETE of a ledger or distribution row
CONFIGURATION_ERROR         | Invalid settings file

===============================================================================
PROPAGATION
===============================================================================

DuplicatePeriodError, ContractNotActiveError and per-contract
PersistenceError stop at the distribution orchestrator and are folded into
the run summary. Everything else surfaces to the caller of the operation
that raised it.
"""

from datetime import datetime
from decimal import Decimal


class AccrualLedgerError(Exception):
    """Base exception for all accrual ledger errors."""

    code: str = "ACCRUAL_LEDGER_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# Validation


class ValidationError(AccrualLedgerError):
    """Malformed input at an operation boundary."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Amount is not a positive, cent-precise decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: object, reason: str):
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class UnknownComponentError(ValidationError):
    """Balance component name is not part of the component enum."""

    code: str = "UNKNOWN_COMPONENT"

    def __init__(self, component: str):
        self.component = component
        super().__init__(f"Unknown balance component: {component!r}")


class ComponentNotMutableError(ValidationError):
    """Component exists but may not be adjusted directly in this deployment."""

    code: str = "COMPONENT_NOT_MUTABLE"

    def __init__(self, component: str):
        self.component = component
        super().__init__(f"Balance component {component!r} cannot be adjusted directly")


class InvalidStatusTransitionError(ValidationError):
    """State machine transition that is not allowed."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current: str,
        requested: str,
        reason: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current = current
        self.requested = requested
        self.reason = reason
        message = f"{entity_type} {entity_id} cannot move from {current!r} to {requested!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidContractClassError(ValidationError):
    """Unknown contract class or a class/period-unit mismatch."""

    code: str = "INVALID_CONTRACT_CLASS"

    def __init__(self, contract_class: str, reason: str = "unknown contract class"):
        self.contract_class = contract_class
        self.reason = reason
        super().__init__(f"Invalid contract class {contract_class!r}: {reason}")


class PlanLimitError(ValidationError):
    """Funding amount is outside the plan's bounds, or the plan is inactive."""

    code: str = "PLAN_LIMIT"

    def __init__(self, plan_id: str, amount: Decimal, reason: str):
        self.plan_id = plan_id
        self.amount = str(amount)
        self.reason = reason
        super().__init__(f"Plan {plan_id} rejects amount {amount}: {reason}")


# Not found


class NotFoundError(AccrualLedgerError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"


class ContractNotFoundError(NotFoundError):
    code: str = "CONTRACT_NOT_FOUND"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Contract not found: {contract_id}")


class WithdrawalNotFoundError(NotFoundError):
    code: str = "WITHDRAWAL_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Withdrawal request not found: {request_id}")


class PlanNotFoundError(NotFoundError):
    code: str = "PLAN_NOT_FOUND"

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Plan not found: {plan_id}")


# Ledger


class InsufficientFundsError(AccrualLedgerError):
    """A debit would leave a component (or the total) negative."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        owner_id: str,
        component: str,
        requested: Decimal,
        available: Decimal,
    ):
        self.owner_id = owner_id
        self.component = component
        self.requested = str(requested)
        self.available = str(available)
        super().__init__(
            f"Insufficient funds for owner {owner_id}: requested {requested} "
            f"from {component}, available {available}"
        )


class DuplicatePeriodError(AccrualLedgerError):
    """The period was already credited for this contract."""

    code: str = "DUPLICATE_PERIOD"

    def __init__(self, contract_id: str, period_key: datetime):
        self.contract_id = contract_id
        self.period_key = period_key.isoformat()
        super().__init__(
            f"Period {self.period_key} already credited for contract {contract_id}"
        )


class ContractNotActiveError(AccrualLedgerError):
    """Accrual attempted on a contract that is not active."""

    code: str = "CONTRACT_NOT_ACTIVE"

    def __init__(self, contract_id: str, status: str):
        self.contract_id = contract_id
        self.status = status
        super().__init__(f"Contract {contract_id} is {status}, not active")


class OnCooldownError(AccrualLedgerError):
    """Distribution trigger arrived inside the class's cooldown window."""

    code: str = "ON_COOLDOWN"

    def __init__(
        self,
        contract_class: str,
        remaining_seconds: int,
        next_allowed_at: datetime,
    ):
        self.contract_class = contract_class
        self.remaining_seconds = remaining_seconds
        self.next_allowed_at = next_allowed_at.isoformat()
        super().__init__(
            f"{contract_class} distribution on cooldown for "
            f"{remaining_seconds}s (next allowed at {self.next_allowed_at})"
        )


class PersistenceError(AccrualLedgerError):
    """Store-level failure; the unit of work was rolled back."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")


class ImmutabilityViolationError(AccrualLedgerError):
    """Attempted UPDATE or DELETE of an append-only row."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


class ConfigurationError(AccrualLedgerError):
    """Settings file is missing, malformed or inconsistent."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid configuration in {source}: {reason}")
