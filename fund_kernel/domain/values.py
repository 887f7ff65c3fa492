"""
Values -- money and date coercion at the domain boundary.

Every amount that enters the kernel passes through parse_money(): floats
are refused, more than two decimal places are refused, and the result is a
Decimal quantized to cents.  Nothing is rounded silently.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from fund_kernel.db.types import MONEY_DECIMAL_PLACES
from fund_kernel.exceptions import InvalidAmountError, ValidationError

_CENT = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)


def parse_money(value: object, field: str = "amount", *, allow_zero: bool = False) -> Decimal:
    """
    Coerce ``value`` to a two-place Decimal.

    Accepts Decimal, int and numeric strings.

    Raises:
        InvalidAmountError: float/bool input, unparseable text, more than two
            decimal places, or a value that is not strictly positive (not
            negative when ``allow_zero``).
    """
    if isinstance(value, (bool, float)):
        raise InvalidAmountError(field, value, f"{type(value).__name__} is not accepted")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise InvalidAmountError(field, value, "not a number") from None
    else:
        raise InvalidAmountError(field, value, "expected a decimal amount")

    if not amount.is_finite():
        raise InvalidAmountError(field, value, "not a finite number")
    if amount != amount.quantize(_CENT):
        raise InvalidAmountError(
            field, value, f"more than {MONEY_DECIMAL_PLACES} decimal places"
        )
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidAmountError(field, value, "must be greater than zero")
    return amount.quantize(_CENT)


def parse_date(value: object, field: str) -> date:
    """Coerce a date or an ISO-8601 string to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise ValidationError(f"{field} is not an ISO-8601 date: {value!r}", field) from None
    raise ValidationError(f"{field} must be a date", field)


def require_text(value: object, field: str, max_length: int | None = None) -> str:
    """Strip and return a non-empty string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field)
    text = value.strip()
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} is longer than {max_length} characters", field)
    return text
