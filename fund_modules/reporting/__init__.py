"""
Financial Reporting Module (``fund_modules.reporting``).

Responsibility
--------------
Read-only statements derived from the ledger: running ledgers per account,
balance sheet, income statement and trial balance; plus the stored
reporting periods that parametrize them.

Architecture position
---------------------
**Modules layer**.  Statement computation is implemented as pure functions
in ``statements.py``; ``ReportingService`` loads ledger lines and resolves
report parameters.

Invariants enforced
-------------------
* No ledger transactions are created by this module.
* Statements derive entirely from the immutable ledger (no stored
  balances).
"""

from fund_modules.reporting.config import ReportingConfig
from fund_modules.reporting.models import (
    BalanceSheetReport,
    IncomeStatementReport,
    LedgerRow,
    ReportFilter,
    ReportingPeriod,
    StatementLine,
    TrialBalanceLine,
    TrialBalanceReport,
)
from fund_modules.reporting.statements import render_to_dict

__all__ = [
    "BalanceSheetReport",
    "IncomeStatementReport",
    "LedgerRow",
    "ReportFilter",
    "ReportingConfig",
    "ReportingPeriod",
    "StatementLine",
    "TrialBalanceLine",
    "TrialBalanceReport",
    "render_to_dict",
]
