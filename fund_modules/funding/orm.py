"""
SQLAlchemy ORM persistence models for the budget tracker
(``fund_modules.funding.orm``).

Responsibility
--------------
Database-backed persistence for fundings, allocations and expenses.  Each
row is written in the same database transaction as the ledger transaction
that mirrors it (``transaction_id``).

Invariants enforced
-------------------
* All monetary fields are ``Money`` (integer minor units) -- NEVER float.
* ``FundingModel.allocated_amount`` and ``AllocationModel.spent_amount``
  are reservation counters.  They only move through the conditional
  UPDATE statements in ``FundingService`` and never exceed ``amount``
  (CHECK constraints back this up in the database).
* Only funding metadata (``notes``, ``tax_deductible``, ``donor_type``) is
  editable; allocations and expenses are immutable, and none of the three
  can be deleted.  ORM listeners registered by ``register_funding_listeners``
  raise ``ImmutabilityViolationError`` otherwise.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from fund_kernel.db.base import TrackedBase, UUIDString
from fund_kernel.db.immutability import (
    blocked_delete,
    blocked_update,
    changed_fields,
    register_delete_guard,
    register_update_guard,
)
from fund_kernel.db.types import Money
from fund_modules.funding.models import TaxCategory

FUNDING_METADATA_FIELDS = frozenset({"notes", "tax_deductible", "donor_type"})


class FundingModel(TrackedBase):
    """Maps to the ``Funding`` DTO in ``fund_modules.funding.models``."""

    __tablename__ = "fundings"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_funding_amount_positive"),
        CheckConstraint(
            "allocated_amount >= 0 AND allocated_amount <= amount",
            name="ck_funding_allocated_within_amount",
        ),
        Index("idx_funding_date", "date_received"),
    )

    donor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    donor_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    amount: Mapped[Money] = mapped_column(nullable=False)
    allocated_amount: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0.00"))
    date_received: Mapped[date] = mapped_column(nullable=False)
    account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=False,
    )
    tax_deductible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("transactions.id"), nullable=True,
    )

    def to_dto(self):
        from fund_modules.funding.models import Funding

        return Funding(
            id=self.id,
            donor_name=self.donor_name,
            amount=self.amount,
            date_received=self.date_received,
            account_id=self.account_id,
            donor_type=self.donor_type,
            tax_deductible=self.tax_deductible,
            notes=self.notes,
            transaction_id=self.transaction_id,
        )

    def __repr__(self) -> str:
        return f"<FundingModel {self.donor_name} {self.amount}>"


class AllocationModel(TrackedBase):
    """Maps to the ``Allocation`` DTO in ``fund_modules.funding.models``."""

    __tablename__ = "allocations"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_allocation_amount_positive"),
        CheckConstraint(
            "spent_amount >= 0 AND spent_amount <= amount",
            name="ck_allocation_spent_within_amount",
        ),
        Index("idx_allocation_funding", "funding_id"),
        Index("idx_allocation_project", "project_id"),
    )

    funding_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("fundings.id"), nullable=False,
    )
    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False,
    )
    sub_project_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("sub_projects.id"), nullable=True,
    )
    amount: Mapped[Money] = mapped_column(nullable=False)
    spent_amount: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0.00"))
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("transactions.id"), nullable=True,
    )

    def to_dto(self):
        from fund_modules.funding.models import Allocation

        return Allocation(
            id=self.id,
            funding_id=self.funding_id,
            project_id=self.project_id,
            amount=self.amount,
            sub_project_id=self.sub_project_id,
            notes=self.notes,
            transaction_id=self.transaction_id,
        )

    def __repr__(self) -> str:
        return f"<AllocationModel {self.id} {self.amount}>"


class ExpenseModel(TrackedBase):
    """Maps to the ``Expense`` DTO in ``fund_modules.funding.models``."""

    __tablename__ = "expenses"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expense_amount_positive"),
        Index("idx_expense_allocation", "project_allocation_id"),
        Index("idx_expense_date", "expense_date"),
    )

    project_allocation_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("allocations.id"), nullable=False,
    )
    sub_project_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("sub_projects.id"), nullable=True,
    )
    amount: Mapped[Money] = mapped_column(nullable=False)
    expense_date: Mapped[date] = mapped_column(nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=False,
    )
    paid_from_account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=False,
    )
    vendor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    invoice_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_mode: Mapped[str | None] = mapped_column(String(50), nullable=True)
    voucher_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tax_category: Mapped[TaxCategory | None] = mapped_column(
        SAEnum(
            TaxCategory,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=True,
    )
    tax_deductible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("transactions.id"), nullable=True,
    )

    def to_dto(self):
        from fund_modules.funding.models import Expense

        return Expense(
            id=self.id,
            project_allocation_id=self.project_allocation_id,
            amount=self.amount,
            expense_date=self.expense_date,
            category=self.category,
            description=self.description,
            account_id=self.account_id,
            paid_from_account_id=self.paid_from_account_id,
            sub_project_id=self.sub_project_id,
            vendor_name=self.vendor_name,
            invoice_number=self.invoice_number,
            payment_mode=self.payment_mode,
            voucher_reference=self.voucher_reference,
            tax_category=self.tax_category,
            tax_deductible=self.tax_deductible,
            transaction_id=self.transaction_id,
        )

    def __repr__(self) -> str:
        return f"<ExpenseModel {self.id} {self.amount}>"


# ---------------------------------------------------------------------------
# Immutability guards
# ---------------------------------------------------------------------------


def _check_funding_update(mapper, connection, target):
    fields = [f for f in changed_fields(target) if f not in FUNDING_METADATA_FIELDS]
    if fields:
        raise blocked_update(
            "Funding", target, fields,
            f"Only {sorted(FUNDING_METADATA_FIELDS)} may change on a recorded funding",
        )


def _check_allocation_update(mapper, connection, target):
    fields = changed_fields(target)
    if fields:
        raise blocked_update("Allocation", target, fields, "Allocations are immutable")


def _check_expense_update(mapper, connection, target):
    fields = changed_fields(target)
    if fields:
        raise blocked_update("Expense", target, fields, "Expenses are immutable")


def _check_delete(mapper, connection, target):
    raise blocked_delete(
        type(target).__name__.removesuffix("Model"),
        target,
        "Budget records cannot be deleted",
    )


def register_funding_listeners() -> None:
    """Attach the budget-record immutability guards (idempotent)."""
    register_update_guard(FundingModel, _check_funding_update)
    register_update_guard(AllocationModel, _check_allocation_update)
    register_update_guard(ExpenseModel, _check_expense_update)
    for model in (FundingModel, AllocationModel, ExpenseModel):
        register_delete_guard(model, _check_delete)
