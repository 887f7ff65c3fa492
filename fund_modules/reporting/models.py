"""
Financial Reporting Domain Models (``fund_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects for report inputs (filters, reporting
periods) and outputs: running ledger rows, balance sheet, income statement
and trial balance.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by the
functions in ``statements.py`` and returned by ``ReportingService``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Every statement total is the exact sum of its own line items.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from fund_kernel.models.transaction import ReferenceType


# =========================================================================
# Inputs
# =========================================================================


@dataclass(frozen=True)
class ReportingPeriod:
    """A named, stored date range used to parametrize reports."""

    id: UUID
    name: str
    start_date: date
    end_date: date
    is_active: bool = True


@dataclass(frozen=True)
class ReportFilter:
    """
    Ledger report parameters.

    ``reporting_period_id`` overrides ``start_date``/``end_date`` when both
    are given.  ``sub_project_id`` narrows ``project_id``.
    """

    account_id: UUID | None = None
    project_id: UUID | None = None
    sub_project_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    reporting_period_id: UUID | None = None


# =========================================================================
# Running ledger
# =========================================================================


@dataclass(frozen=True)
class LedgerRow:
    """One entry of an account's ledger with the balance after it."""

    transaction_id: UUID
    date: date
    account_code: str
    account_name: str
    description: str
    debit_amount: Decimal
    credit_amount: Decimal
    running_balance: Decimal
    reference_type: ReferenceType | None = None
    reference_id: UUID | None = None
    notes: str | None = None


# =========================================================================
# Statements
# =========================================================================


@dataclass(frozen=True)
class StatementLine:
    """Final balance of one account, in its natural sign."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    balance: Decimal


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Cumulative balances of Asset, Liability and Equity accounts.

    Assets = Liabilities + Equity is NOT enforced: income and expense
    accounts are never closed into equity.
    """

    as_of_date: date
    assets: tuple[StatementLine, ...]
    liabilities: tuple[StatementLine, ...]
    equity: tuple[StatementLine, ...]
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal


@dataclass(frozen=True)
class IncomeStatementReport:
    """Income and expenses of a date window; resets outside it."""

    start_date: date
    end_date: date
    income: tuple[StatementLine, ...]
    expenses: tuple[StatementLine, ...]
    total_income: Decimal
    total_expenses: Decimal
    net_income: Decimal  # total_income - total_expenses


@dataclass(frozen=True)
class TrialBalanceLine:
    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal


@dataclass(frozen=True)
class TrialBalanceReport:
    """Debit and credit totals of every account up to a date."""

    as_of_date: date
    lines: tuple[TrialBalanceLine, ...]
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool  # total_debits == total_credits
