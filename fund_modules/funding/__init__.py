"""
Funding Module (``fund_modules.funding``).

Donor funding, allocations of that funding to projects, and expenses spent
against allocations.  Every record is mirrored by a balanced ledger
transaction written in the same database transaction, and expenses are
gated on the remaining budget of their allocation.
"""

from fund_modules.funding.config import FundingConfig
from fund_modules.funding.models import (
    Allocation,
    AllocationState,
    Expense,
    Funding,
    FundingSummary,
    ProjectAllocationBudget,
    TaxCategory,
)

__all__ = [
    "Allocation",
    "AllocationState",
    "Expense",
    "Funding",
    "FundingConfig",
    "FundingSummary",
    "ProjectAllocationBudget",
    "TaxCategory",
]
