"""
Hypothesis property tests for the pure statement functions and money
parsing.

Properties:
- Any set of balanced transactions yields a balanced trial balance.
- An account's balance moves by debit - credit (Asset/Expense) or
  credit - debit (Liability/Equity/Income), regardless of posting order.
- Each statement total equals the sum of its own lines.
- Transactions dated before an income statement window never change it.
- parse_money accepts exactly the positive two-place decimals.
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from fund_kernel.domain.dtos import AccountInfo, LedgerLine
from fund_kernel.domain.values import parse_money
from fund_kernel.exceptions import InvalidAmountError
from fund_kernel.models.account import AccountType
from fund_kernel.models.transaction import EntryType
from fund_modules.reporting.statements import (
    build_balance_sheet,
    build_income_statement,
    build_trial_balance,
    closing_balances,
)

ACCOUNTS = [
    AccountInfo(uuid4(), "1000", "Cash", AccountType.ASSET),
    AccountInfo(uuid4(), "2000", "Payable", AccountType.LIABILITY),
    AccountInfo(uuid4(), "3000", "Net Assets", AccountType.EQUITY),
    AccountInfo(uuid4(), "4000", "Income", AccountType.INCOME),
    AccountInfo(uuid4(), "5000", "Expenses", AccountType.EXPENSE),
]
START = date(2024, 1, 1)

amounts = st.decimals(
    min_value=Decimal("0.01"), max_value=Decimal("1000000.00"), places=2,
    allow_nan=False, allow_infinity=False,
)
transactions = st.lists(
    st.tuples(
        st.integers(min_value=0, max_value=365),
        st.sampled_from(ACCOUNTS),
        st.sampled_from(ACCOUNTS),
        amounts,
    ),
    max_size=25,
)


def _lines(specs):
    lines = []
    for seq, (offset, debit, credit, amount) in enumerate(specs, start=1):
        tx_id = uuid4()
        for line_seq, (acct, side) in enumerate(
            [(debit, EntryType.DEBIT), (credit, EntryType.CREDIT)]
        ):
            lines.append(
                LedgerLine(
                    transaction_id=tx_id,
                    seq=seq,
                    line_seq=line_seq,
                    transaction_date=START + timedelta(days=offset),
                    description="generated",
                    account_id=acct.account_id,
                    account_code=acct.code,
                    account_name=acct.name,
                    account_type=acct.account_type,
                    entry_type=side,
                    amount=amount,
                )
            )
    lines.sort(key=lambda line: line.sort_key)
    return lines


@settings(max_examples=75, deadline=None)
@given(transactions)
def test_trial_balance_always_balanced(specs):
    report = build_trial_balance(_lines(specs), ACCOUNTS, date(2025, 12, 31))
    assert report.is_balanced
    assert report.total_debits == sum((amount for *_, amount in specs), Decimal("0.00"))


@settings(max_examples=75, deadline=None)
@given(transactions)
def test_balance_follows_sign_convention(specs):
    balances = closing_balances(_lines(specs))
    for acct in ACCOUNTS:
        debits = sum((a for _, d, _, a in specs if d == acct), Decimal("0.00"))
        credits = sum((a for _, _, c, a in specs if c == acct), Decimal("0.00"))
        expected = debits - credits if acct.is_debit_normal else credits - debits
        assert balances.get(acct.account_id, Decimal("0.00")) == expected


@settings(max_examples=75, deadline=None)
@given(transactions)
def test_statement_totals_equal_their_lines(specs):
    sheet = build_balance_sheet(_lines(specs), ACCOUNTS, date(2025, 12, 31))
    assert sheet.total_assets == sum((i.balance for i in sheet.assets), Decimal("0.00"))
    assert sheet.total_liabilities == sum(
        (i.balance for i in sheet.liabilities), Decimal("0.00")
    )
    assert sheet.total_equity == sum((i.balance for i in sheet.equity), Decimal("0.00"))


@settings(max_examples=75, deadline=None)
@given(transactions, transactions)
def test_earlier_postings_do_not_change_window(window_specs, earlier_specs):
    window_start = START + timedelta(days=400)
    shifted = [(offset + 400, d, c, a) for offset, d, c, a in window_specs]
    before = build_income_statement(
        _lines(shifted), ACCOUNTS, window_start, window_start + timedelta(days=365),
    )
    after = build_income_statement(
        _lines(earlier_specs + shifted), ACCOUNTS,
        window_start, window_start + timedelta(days=365),
    )
    assert (before.total_income, before.total_expenses) == (
        after.total_income, after.total_expenses,
    )


@given(amounts)
def test_parse_money_accepts_two_place_positives(amount):
    assert parse_money(str(amount)) == amount


@given(st.decimals(max_value=Decimal("0"), places=2, allow_nan=False, allow_infinity=False))
def test_parse_money_rejects_non_positive(amount):
    with pytest.raises(InvalidAmountError):
        parse_money(amount)
