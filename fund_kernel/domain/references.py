"""
References -- what business record a ledger transaction mirrors.

A transaction points at nothing, at a funding, at an allocation, or at an
expense.  In the database this is the (reference_type, reference_id) column
pair; in Python it is one of the frozen reference classes below.
"""

from dataclasses import dataclass
from uuid import UUID

from fund_kernel.models.transaction import ReferenceType


@dataclass(frozen=True)
class FundingRef:
    funding_id: UUID

    reference_type = ReferenceType.FUNDING

    @property
    def reference_id(self) -> UUID:
        return self.funding_id


@dataclass(frozen=True)
class AllocationRef:
    allocation_id: UUID

    reference_type = ReferenceType.ALLOCATION

    @property
    def reference_id(self) -> UUID:
        return self.allocation_id


@dataclass(frozen=True)
class ExpenseRef:
    expense_id: UUID

    reference_type = ReferenceType.EXPENSE

    @property
    def reference_id(self) -> UUID:
        return self.expense_id


Reference = FundingRef | AllocationRef | ExpenseRef


def to_columns(ref: Reference | None) -> tuple[ReferenceType | None, UUID | None]:
    """Split a reference into its (reference_type, reference_id) columns."""
    if ref is None:
        return None, None
    return ref.reference_type, ref.reference_id


def from_columns(
    reference_type: ReferenceType | None,
    reference_id: UUID | None,
) -> Reference | None:
    """Rebuild a reference from its column pair."""
    if reference_type is None or reference_id is None:
        return None
    if reference_type == ReferenceType.FUNDING:
        return FundingRef(reference_id)
    if reference_type == ReferenceType.ALLOCATION:
        return AllocationRef(reference_id)
    return ExpenseRef(reference_id)
