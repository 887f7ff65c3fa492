"""
Funding Domain Models (``fund_modules.funding.models``).

Responsibility
--------------
Frozen dataclass value objects for donor funding, allocations of that
funding to projects, expenses spent against allocations, and the derived
per-allocation budget view.

Invariants enforced
-------------------
* All monetary fields are ``Decimal`` quantized to cents -- NEVER ``float``.
* ``ProjectAllocationBudget.available_amount`` is always
  ``allocated_amount - spent_amount`` and never negative.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class AllocationState(str, Enum):
    """Spend state of an allocation, derived from spent vs. allocated."""

    OPEN = "open"
    PARTIALLY_SPENT = "partially_spent"
    EXHAUSTED = "exhausted"

    @classmethod
    def derive(cls, allocated: Decimal, spent: Decimal) -> AllocationState:
        if spent <= 0:
            return cls.OPEN
        if spent >= allocated:
            return cls.EXHAUSTED
        return cls.PARTIALLY_SPENT


class TaxCategory(str, Enum):
    """Tax treatment of an expense."""

    VAT = "VAT"
    SERVICE = "Service"
    NONE = "None"


@dataclass(frozen=True)
class Funding:
    """Money received from a donor into an asset account."""
    id: UUID
    donor_name: str
    amount: Decimal
    date_received: date
    account_id: UUID
    donor_type: str | None = None
    tax_deductible: bool = False
    notes: str | None = None
    transaction_id: UUID | None = None


@dataclass(frozen=True)
class Allocation:
    """A slice of one funding earmarked for a project."""
    id: UUID
    funding_id: UUID
    project_id: UUID
    amount: Decimal
    sub_project_id: UUID | None = None
    notes: str | None = None
    transaction_id: UUID | None = None


@dataclass(frozen=True)
class Expense:
    """Money spent against an allocation."""
    id: UUID
    project_allocation_id: UUID
    amount: Decimal
    expense_date: date
    category: str
    description: str
    account_id: UUID
    paid_from_account_id: UUID
    sub_project_id: UUID | None = None
    vendor_name: str | None = None
    invoice_number: str | None = None
    payment_mode: str | None = None
    voucher_reference: str | None = None
    tax_category: TaxCategory | None = None
    tax_deductible: bool = False
    transaction_id: UUID | None = None


@dataclass(frozen=True)
class ProjectAllocationBudget:
    """
    Allocated, spent and available amounts of one allocation.

    Build with ``compute()`` so the derived fields stay consistent.
    """
    allocation_id: UUID
    project_id: UUID
    project_name: str
    funding_id: UUID
    funding_donor: str
    allocated_amount: Decimal
    spent_amount: Decimal
    available_amount: Decimal
    state: AllocationState
    sub_project_id: UUID | None = None

    @classmethod
    def compute(
        cls,
        *,
        allocation_id: UUID,
        project_id: UUID,
        project_name: str,
        funding_id: UUID,
        funding_donor: str,
        allocated_amount: Decimal,
        spent_amount: Decimal,
        sub_project_id: UUID | None = None,
    ) -> ProjectAllocationBudget:
        return cls(
            allocation_id=allocation_id,
            project_id=project_id,
            project_name=project_name,
            funding_id=funding_id,
            funding_donor=funding_donor,
            allocated_amount=allocated_amount,
            spent_amount=spent_amount,
            available_amount=allocated_amount - spent_amount,
            state=AllocationState.derive(allocated_amount, spent_amount),
            sub_project_id=sub_project_id,
        )


@dataclass(frozen=True)
class FundingSummary:
    """How much of a funding has been allocated and spent."""
    funding_id: UUID
    donor_name: str
    amount: Decimal
    allocated_amount: Decimal
    unallocated_amount: Decimal
    spent_amount: Decimal
    allocation_count: int
