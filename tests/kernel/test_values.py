"""Money and date coercion at the domain boundary; pure, no database."""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from fund_kernel.db.types import MinorUnits
from fund_kernel.domain.references import (
    AllocationRef,
    ExpenseRef,
    FundingRef,
    from_columns,
    to_columns,
)
from fund_kernel.domain.values import parse_date, parse_money, require_text
from fund_kernel.exceptions import InvalidAmountError, ValidationError
from fund_kernel.models.transaction import ReferenceType


class TestParseMoney:

    @pytest.mark.parametrize("value, expected", [
        ("10", Decimal("10.00")),
        ("10.5", Decimal("10.50")),
        (" 0.01 ", Decimal("0.01")),
        (Decimal("1234.56"), Decimal("1234.56")),
        (42, Decimal("42.00")),
    ])
    def test_accepted(self, value, expected):
        result = parse_money(value)
        assert result == expected
        assert result.as_tuple().exponent == -2

    @pytest.mark.parametrize("value", [0.1, True, "1e", "10.001", "-1", "0", "NaN", None])
    def test_rejected(self, value):
        with pytest.raises(InvalidAmountError):
            parse_money(value)

    def test_zero_allowed_when_asked(self):
        assert parse_money("0", allow_zero=True) == Decimal("0.00")

    def test_error_names_field(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_money("-3", "entries[2].amount")
        assert exc_info.value.field == "entries[2].amount"
        assert exc_info.value.code == "INVALID_AMOUNT"


class TestParseDate:

    def test_iso_string(self):
        assert parse_date("2024-02-29", "d") == date(2024, 2, 29)

    def test_datetime_truncated(self):
        assert parse_date(datetime(2024, 5, 1, 23, 59), "d") == date(2024, 5, 1)

    @pytest.mark.parametrize("value", ["2024-02-30", "yesterday", 20240101])
    def test_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_date(value, "expense_date")
        assert exc_info.value.field == "expense_date"


class TestRequireText:

    def test_strips(self):
        assert require_text("  Clean Water ", "name") == "Clean Water"

    def test_too_long(self):
        with pytest.raises(ValidationError):
            require_text("x" * 11, "name", max_length=10)


class TestMinorUnits:

    def test_binds_cents(self):
        assert MinorUnits().process_bind_param(Decimal("10.50"), None) == 1050

    def test_loads_decimal(self):
        assert MinorUnits().process_result_value(1050, None) == Decimal("10.50")

    def test_refuses_sub_cent(self):
        with pytest.raises(ValueError):
            MinorUnits().process_bind_param(Decimal("0.005"), None)

    def test_refuses_float(self):
        with pytest.raises(ValueError):
            MinorUnits().process_bind_param(0.5, None)


class TestReferences:

    @pytest.mark.parametrize("ref_cls, reference_type", [
        (FundingRef, ReferenceType.FUNDING),
        (AllocationRef, ReferenceType.ALLOCATION),
        (ExpenseRef, ReferenceType.EXPENSE),
    ])
    def test_columns_round_trip(self, ref_cls, reference_type):
        ref = ref_cls(uuid4())
        columns = to_columns(ref)
        assert columns == (reference_type, ref.reference_id)
        assert from_columns(*columns) == ref

    def test_no_reference(self):
        assert to_columns(None) == (None, None)
        assert from_columns(None, None) is None
