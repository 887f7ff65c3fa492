"""
Pure domain layer.

Data transfer objects, references, value coercion and the chart-of-accounts
arena.  Nothing here touches a database session or the wall clock.
"""

from fund_kernel.domain.chart import ChartOfAccounts
from fund_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fund_kernel.domain.dtos import AccountInfo, LedgerLine, LineSpec
from fund_kernel.domain.references import (
    AllocationRef,
    ExpenseRef,
    FundingRef,
    Reference,
)
from fund_kernel.domain.values import parse_date, parse_money

__all__ = [
    "ChartOfAccounts",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "AccountInfo",
    "LedgerLine",
    "LineSpec",
    "AllocationRef",
    "ExpenseRef",
    "FundingRef",
    "Reference",
    "parse_date",
    "parse_money",
]
