"""
Pure financial statement transformation functions.

These functions turn ledger lines (``LedgerLine``) and account metadata
(``AccountInfo``) into running ledgers and financial statements.  ZERO I/O.
ZERO side effects.

Sign convention:

    Asset, Expense (debit-normal):           balance += debit - credit
    Liability, Equity, Income (credit-normal): balance += credit - debit

Functions in this module follow the kernel domain purity convention:
- No database access
- No clock access
- No file I/O
- Deterministic: same inputs always produce same outputs
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from fund_kernel.db.types import ZERO
from fund_kernel.domain.dtos import AccountInfo, LedgerLine
from fund_kernel.exceptions import InvalidDateRangeError
from fund_kernel.models.account import AccountType
from fund_modules.reporting.models import (
    BalanceSheetReport,
    IncomeStatementReport,
    LedgerRow,
    StatementLine,
    TrialBalanceLine,
    TrialBalanceReport,
)

# =========================================================================
# Helpers
# =========================================================================


def natural_change(
    account_type: AccountType,
    debit: Decimal,
    credit: Decimal,
) -> Decimal:
    """
    Effect of a debit/credit pair on an account balance.

    Positive when the account moves in its normal direction.
    """
    if account_type.is_debit_normal:
        return debit - credit
    return credit - debit


def _in_window(line: LedgerLine, start: date | None, end: date | None) -> bool:
    if start is not None and line.transaction_date < start:
        return False
    if end is not None and line.transaction_date > end:
        return False
    return True


def _totals_by_account(
    lines: Iterable[LedgerLine],
    start: date | None = None,
    end: date | None = None,
) -> dict[UUID, tuple[Decimal, Decimal]]:
    """(debit_total, credit_total) per account for lines inside the window."""
    totals: dict[UUID, tuple[Decimal, Decimal]] = {}
    for line in lines:
        if not _in_window(line, start, end):
            continue
        debit, credit = totals.get(line.account_id, (ZERO, ZERO))
        totals[line.account_id] = (
            debit + line.debit_amount,
            credit + line.credit_amount,
        )
    return totals


def _statement_lines(
    accounts: Iterable[AccountInfo],
    totals: Mapping[UUID, tuple[Decimal, Decimal]],
    account_type: AccountType,
) -> tuple[StatementLine, ...]:
    """One line per account of ``account_type``, zero balances included."""
    items = []
    for acct in accounts:
        if acct.account_type != account_type:
            continue
        debit, credit = totals.get(acct.account_id, (ZERO, ZERO))
        items.append(
            StatementLine(
                account_id=acct.account_id,
                account_code=acct.code,
                account_name=acct.name,
                account_type=acct.account_type.value,
                balance=natural_change(acct.account_type, debit, credit),
            )
        )
    return tuple(sorted(items, key=lambda x: x.account_code))


def _sum(items: Iterable[StatementLine]) -> Decimal:
    return sum((item.balance for item in items), ZERO)


# =========================================================================
# Running ledger
# =========================================================================


def compute_running_ledger(
    lines: Iterable[LedgerLine],
    opening_balances: Mapping[UUID, Decimal] | None = None,
) -> dict[UUID, list[LedgerRow]]:
    """
    Partition lines by account and fold each partition left to right.

    ``lines`` must already be in ledger order (date, seq, line_seq).  Each
    account's running balance starts at its ``opening_balances`` entry
    (zero when absent).
    """
    opening = opening_balances or {}
    balances: dict[UUID, Decimal] = {}
    result: dict[UUID, list[LedgerRow]] = {}

    for line in lines:
        balance = balances.get(line.account_id, opening.get(line.account_id, ZERO))
        balance += natural_change(
            line.account_type, line.debit_amount, line.credit_amount,
        )
        balances[line.account_id] = balance

        reference = line.reference
        result.setdefault(line.account_id, []).append(
            LedgerRow(
                transaction_id=line.transaction_id,
                date=line.transaction_date,
                account_code=line.account_code,
                account_name=line.account_name,
                description=line.description,
                debit_amount=line.debit_amount,
                credit_amount=line.credit_amount,
                running_balance=balance,
                reference_type=reference.reference_type if reference else None,
                reference_id=reference.reference_id if reference else None,
                notes=line.notes,
            )
        )

    return result


def closing_balances(
    lines: Iterable[LedgerLine],
    end: date | None = None,
) -> dict[UUID, Decimal]:
    """Natural balance per account over lines dated on or before ``end``."""
    result: dict[UUID, Decimal] = {}
    for line in lines:
        if end is not None and line.transaction_date > end:
            continue
        result[line.account_id] = result.get(line.account_id, ZERO) + natural_change(
            line.account_type, line.debit_amount, line.credit_amount,
        )
    return result


# =========================================================================
# Statements
# =========================================================================


def build_balance_sheet(
    lines: Iterable[LedgerLine],
    accounts: Iterable[AccountInfo],
    as_of_date: date,
) -> BalanceSheetReport:
    """
    Cumulative balance of every Asset, Liability and Equity account.

    Lines dated after ``as_of_date`` are ignored.  Accounts without
    postings appear with a zero balance.
    """
    accounts = list(accounts)
    totals = _totals_by_account(lines, end=as_of_date)

    assets = _statement_lines(accounts, totals, AccountType.ASSET)
    liabilities = _statement_lines(accounts, totals, AccountType.LIABILITY)
    equity = _statement_lines(accounts, totals, AccountType.EQUITY)

    return BalanceSheetReport(
        as_of_date=as_of_date,
        assets=assets,
        liabilities=liabilities,
        equity=equity,
        total_assets=_sum(assets),
        total_liabilities=_sum(liabilities),
        total_equity=_sum(equity),
    )


def build_income_statement(
    lines: Iterable[LedgerLine],
    accounts: Iterable[AccountInfo],
    start_date: date,
    end_date: date,
) -> IncomeStatementReport:
    """
    Income and expense activity inside ``[start_date, end_date]``.

    A period statement: lines outside the window contribute nothing.

    Raises:
        InvalidDateRangeError: end_date before start_date.
    """
    if end_date < start_date:
        raise InvalidDateRangeError(str(start_date), str(end_date))

    accounts = list(accounts)
    totals = _totals_by_account(lines, start=start_date, end=end_date)

    income = _statement_lines(accounts, totals, AccountType.INCOME)
    expenses = _statement_lines(accounts, totals, AccountType.EXPENSE)
    total_income = _sum(income)
    total_expenses = _sum(expenses)

    return IncomeStatementReport(
        start_date=start_date,
        end_date=end_date,
        income=income,
        expenses=expenses,
        total_income=total_income,
        total_expenses=total_expenses,
        net_income=total_income - total_expenses,
    )


def build_trial_balance(
    lines: Iterable[LedgerLine],
    accounts: Iterable[AccountInfo],
    as_of_date: date,
) -> TrialBalanceReport:
    """Debit/credit totals of every account up to ``as_of_date``."""
    totals = _totals_by_account(lines, end=as_of_date)

    items: list[TrialBalanceLine] = []
    for acct in accounts:
        debit, credit = totals.get(acct.account_id, (ZERO, ZERO))
        items.append(
            TrialBalanceLine(
                account_id=acct.account_id,
                account_code=acct.code,
                account_name=acct.name,
                account_type=acct.account_type.value,
                debit_total=debit,
                credit_total=credit,
                balance=natural_change(acct.account_type, debit, credit),
            )
        )
    items.sort(key=lambda x: x.account_code)

    total_debits = sum((i.debit_total for i in items), ZERO)
    total_credits = sum((i.credit_total for i in items), ZERO)
    return TrialBalanceReport(
        as_of_date=as_of_date,
        lines=tuple(items),
        total_debits=total_debits,
        total_credits=total_credits,
        is_balanced=total_debits == total_credits,
    )


# =========================================================================
# Rendering
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to plain data for JSON serialization.

    Handles:
    - Decimal -> str (preserving precision)
    - UUID -> str
    - date -> ISO format string
    - Enum -> .value
    - Nested frozen dataclasses -> nested dicts
    - Tuples -> lists
    - None preserved
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
