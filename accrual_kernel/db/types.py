"""
Module: accrual_kernel.db.types
Responsibility: Fixed-point money and rate handling.  Column types that
    store money as integer minor units and rates as lossless strings, plus
    the sanctioned parsing and rounding helpers.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.

Invariants enforced:
    - No floats anywhere: parse_money() and parse_rate() reject them, and
      the column types refuse to bind them.
    - Money is always quantized to MONEY_DECIMAL_PLACES with ROUND_HALF_UP
      before it reaches the store; round_money() is the only rounding path.

Failure modes:
    - InvalidAmountError on float input, non-numeric text, non-finite values
      or amounts with more precision than a cent.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import BigInteger, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.types import TypeDecorator

from accrual_kernel.exceptions import InvalidAmountError

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
_MINOR_UNIT = Decimal(10) ** MONEY_DECIMAL_PLACES
_CENT = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)

ZERO = Decimal("0.00")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a monetary value; the only sanctioned rounding function."""
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def _to_decimal(value: object) -> Decimal:
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(value, "floats are not accepted for money")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmountError(value, "not a number") from None
    else:
        raise InvalidAmountError(value, f"unsupported type {type(value).__name__}")
    if not result.is_finite():
        raise InvalidAmountError(value, "not finite")
    return result


def parse_money(value: object, *, allow_zero: bool = False) -> Decimal:
    """
    Parse a caller-supplied amount into a cent-precise Decimal.

    Accepts Decimal, int or numeric strings.  Amounts with sub-cent
    precision are rejected rather than silently rounded.
    """
    amount = _to_decimal(value)
    if amount != round_money(amount):
        raise InvalidAmountError(value, "more precise than one cent")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidAmountError(value, "must be positive")
    return round_money(amount)


def parse_rate(value: object) -> Decimal:
    """Parse a per-period rate.  Must be a positive, finite decimal."""
    try:
        rate = _to_decimal(value)
    except InvalidAmountError as exc:
        raise InvalidAmountError(value, f"invalid rate: {exc.reason}") from None
    if rate <= 0:
        raise InvalidAmountError(value, "rate must be positive")
    return rate


def money_to_minor(value: Decimal) -> int:
    """Decimal("10.50") -> 1050."""
    return int(round_money(value) * _MINOR_UNIT)


def money_from_minor(value: int) -> Decimal:
    """1050 -> Decimal("10.50")."""
    return (Decimal(value) * _CENT).quantize(_CENT)


class MinorUnits(TypeDecorator):
    """Money column stored as a BigInteger count of cents."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError("float money values cannot be stored")
        return money_to_minor(Decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return money_from_minor(int(value))


class DecimalString(TypeDecorator):
    """Decimal stored as its exact string form (rates)."""

    impl = String(40)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError("float rates cannot be stored")
        return str(Decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


def enum_type(enum_cls, length: int = 30) -> SAEnum:
    """
    Portable column type for a str Enum.

    Stores the member value (not the name) as VARCHAR and loads it back as
    the enum member.
    """
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
