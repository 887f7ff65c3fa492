"""
Budget Tracker Service (``fund_modules.funding.service``).

Responsibility
--------------
Records donor funding, allocates it to projects, and records expenses
against allocations.  Every business row is written in the same database
transaction as the balanced ledger transaction that mirrors it:

* funding:    Dr destination asset            / Cr donation income
* allocation: Dr unallocated funds (equity)   / Cr allocated funds (equity)
* expense:    Dr expense account              / Cr paid-from asset

Architecture position
---------------------
**Modules layer**.  Sole writer of ``FundingModel``, ``AllocationModel`` and
``ExpenseModel`` and of their ledger postings (through the kernel
``LedgerService``).  Flushes only; the caller owns commit/rollback.

Invariants enforced
-------------------
* Sum of allocations of a funding never exceeds the funding amount.
* Sum of expenses of an allocation never exceeds the allocation amount.
  Both are enforced by one conditional UPDATE of a reservation counter::

      UPDATE allocations SET spent_amount = spent_amount + :amount
       WHERE id = :id AND spent_amount + :amount <= amount

  Zero rows updated means the budget is insufficient.  The database row
  lock makes concurrent reservations against one allocation serialize,
  while expenses against different allocations never contend.
* All-or-nothing: reservation, ledger posting and business row share one
  savepoint.

Failure modes
-------------
* ``InvalidAmountError`` / ``ValidationError`` on malformed input.
* ``FundingNotFoundError``, ``AllocationNotFoundError``,
  ``ProjectNotFoundError``, ``SubProjectNotFoundError``,
  ``AccountNotFoundError`` on unknown ids or unconfigured account codes.
* ``InvalidAccountTypeError`` when a destination/paid-from account is not an
  Asset or an expense account is not an Expense account.
* ``InvalidProjectLinkError`` for a sub-project outside the project.
* ``OverAllocationError`` / ``InsufficientBudgetError`` carrying
  ``available_amount``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from fund_kernel.db.types import ZERO
from fund_kernel.domain.dtos import LineSpec
from fund_kernel.domain.references import AllocationRef, ExpenseRef, FundingRef
from fund_kernel.domain.values import parse_date, parse_money, require_text
from fund_kernel.exceptions import (
    AllocationNotFoundError,
    FundingNotFoundError,
    InsufficientBudgetError,
    InvalidAccountTypeError,
    OverAllocationError,
    ValidationError,
)
from fund_kernel.logging_config import LogContext, get_logger
from fund_kernel.models.account import Account, AccountType
from fund_kernel.models.transaction import EntryType
from fund_kernel.services.account_registry import AccountRegistry
from fund_kernel.services.ledger_service import LedgerService
from fund_modules.funding.config import FundingConfig
from fund_modules.funding.models import (
    Allocation,
    Expense,
    Funding,
    FundingSummary,
    ProjectAllocationBudget,
    TaxCategory,
)
from fund_modules.funding.orm import AllocationModel, ExpenseModel, FundingModel
from fund_modules.project.orm import ProjectModel
from fund_modules.project.service import ProjectService

logger = get_logger("modules.funding.service")


def _coerce_tax_category(value: TaxCategory | str | None) -> TaxCategory | None:
    if value is None or isinstance(value, TaxCategory):
        return value
    for member in TaxCategory:
        if member.value.lower() == str(value).strip().lower():
            return member
    raise ValidationError(f"Unknown tax category: {value!r}", "tax_category")


class FundingService:
    """
    Funding, allocation and expense recording with budget enforcement.

    Contract
    --------
    * Write methods return the recorded DTO; nothing is committed.
    * Read methods recompute budgets from allocation and expense rows.
    """

    def __init__(self, session: Session, config: FundingConfig | None = None):
        self._session = session
        self._config = config or FundingConfig.with_defaults()
        self._accounts = AccountRegistry(session)
        self._ledger = LedgerService(session)
        self._projects = ProjectService(session)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _account_of_type(self, account_id: UUID, account_type: AccountType) -> Account:
        account = self._accounts.get_account(account_id)
        if account.account_type != account_type:
            raise InvalidAccountTypeError(
                str(account_id), account_type.value, account.account_type.value
            )
        return account

    def _configured_account(self, code: str) -> Account:
        return self._accounts.get_account_by_code(code)

    def _get_funding_model(self, funding_id: UUID) -> FundingModel:
        model = self._session.get(FundingModel, funding_id)
        if model is None:
            raise FundingNotFoundError(str(funding_id))
        return model

    def _get_allocation_model(self, allocation_id: UUID) -> AllocationModel:
        model = self._session.get(AllocationModel, allocation_id)
        if model is None:
            raise AllocationNotFoundError(str(allocation_id))
        return model

    def _spent_by_allocation(self, allocation_ids: list[UUID]) -> dict[UUID, Decimal]:
        if not allocation_ids:
            return {}
        rows = self._session.execute(
            select(
                ExpenseModel.project_allocation_id,
                func.sum(ExpenseModel.amount).label("spent"),
            )
            .where(ExpenseModel.project_allocation_id.in_(allocation_ids))
            .group_by(ExpenseModel.project_allocation_id)
        ).all()
        return {row.project_allocation_id: row.spent or ZERO for row in rows}

    # =========================================================================
    # Funding
    # =========================================================================

    def record_funding(
        self,
        donor_name: str,
        amount: Decimal | int | str,
        date_received: date | str,
        account_id: UUID,
        actor_id: UUID,
        donor_type: str | None = None,
        tax_deductible: bool = False,
        notes: str | None = None,
    ) -> Funding:
        """
        Record money received from a donor.

        Posts Dr ``account_id`` (must be an Asset) / Cr the configured
        donation income account.
        """
        donor_name = require_text(donor_name, "donor_name", max_length=255)
        amount = parse_money(amount)
        received = parse_date(date_received, "date_received")
        destination = self._account_of_type(account_id, AccountType.ASSET)
        income = self._configured_account(self._config.donation_income_code)

        funding_id = uuid4()
        with self._session.begin_nested():
            transaction = self._ledger.post_mirrored(
                transaction_date=received,
                description=f"Funding received from {donor_name}",
                entries=[
                    LineSpec(destination.id, EntryType.DEBIT, amount),
                    LineSpec(income.id, EntryType.CREDIT, amount),
                ],
                actor_id=actor_id,
                reference=FundingRef(funding_id),
            )
            model = FundingModel(
                id=funding_id,
                donor_name=donor_name,
                donor_type=donor_type,
                amount=amount,
                allocated_amount=ZERO,
                date_received=received,
                account_id=destination.id,
                tax_deductible=bool(tax_deductible),
                notes=notes,
                transaction_id=transaction.id,
                created_by_id=actor_id,
            )
            self._session.add(model)
            self._session.flush()

        logger.info(
            "funding_recorded",
            extra={
                "funding_id": str(funding_id),
                "amount": amount,
                "account_id": str(destination.id),
            },
        )
        return model.to_dto()

    def get_funding(self, funding_id: UUID) -> Funding:
        return self._get_funding_model(funding_id).to_dto()

    def list_fundings(self) -> list[Funding]:
        """Newest first."""
        models = self._session.execute(
            select(FundingModel).order_by(
                FundingModel.date_received.desc(), FundingModel.created_at.desc()
            )
        ).scalars()
        return [m.to_dto() for m in models]

    def update_funding_metadata(
        self,
        funding_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
        tax_deductible: bool | None = None,
        donor_type: str | None = None,
    ) -> Funding:
        """Change notes, tax_deductible or donor_type; None leaves a field as is."""
        model = self._get_funding_model(funding_id)
        if notes is not None:
            model.notes = notes
        if tax_deductible is not None:
            model.tax_deductible = bool(tax_deductible)
        if donor_type is not None:
            model.donor_type = donor_type
        model.updated_by_id = actor_id
        self._session.flush()
        logger.info("funding_metadata_updated", extra={"funding_id": str(funding_id)})
        return model.to_dto()

    def get_funding_summary(self, funding_id: UUID) -> FundingSummary:
        funding = self._get_funding_model(funding_id)
        allocations = self._session.execute(
            select(AllocationModel.id, AllocationModel.amount)
            .where(AllocationModel.funding_id == funding_id)
        ).all()
        allocated = sum((row.amount for row in allocations), ZERO)
        spent = sum(self._spent_by_allocation([row.id for row in allocations]).values(), ZERO)
        return FundingSummary(
            funding_id=funding.id,
            donor_name=funding.donor_name,
            amount=funding.amount,
            allocated_amount=allocated,
            unallocated_amount=funding.amount - allocated,
            spent_amount=spent,
            allocation_count=len(allocations),
        )

    # =========================================================================
    # Allocations
    # =========================================================================

    def allocate_to_project(
        self,
        funding_id: UUID,
        project_id: UUID,
        amount: Decimal | int | str,
        actor_id: UUID,
        sub_project_id: UUID | None = None,
        notes: str | None = None,
        allocation_date: date | str | None = None,
    ) -> Allocation:
        """
        Earmark part of a funding for a project.

        The ledger transaction is dated ``allocation_date`` (default: the
        funding's date_received).

        Raises:
            OverAllocationError: the allocations of the funding would exceed
                its amount.  ``available_amount`` is the unallocated rest.
        """
        amount = parse_money(amount)
        funding = self._get_funding_model(funding_id)
        project = self._projects.get_project(project_id)
        self._projects.require_link(project.id, sub_project_id)
        posting_date = (
            parse_date(allocation_date, "allocation_date")
            if allocation_date is not None
            else funding.date_received
        )
        unallocated = self._configured_account(self._config.unallocated_funds_code)
        allocated = self._configured_account(self._config.allocated_funds_code)

        allocation_id = uuid4()
        with LogContext.bind(allocation_id=str(allocation_id)):
            with self._session.begin_nested():
                self._reserve_on_funding(funding, amount)
                transaction = self._ledger.post_mirrored(
                    transaction_date=posting_date,
                    description=(
                        f"Allocation of {funding.donor_name} funding to {project.name}"
                    ),
                    entries=[
                        LineSpec(unallocated.id, EntryType.DEBIT, amount),
                        LineSpec(allocated.id, EntryType.CREDIT, amount),
                    ],
                    actor_id=actor_id,
                    reference=AllocationRef(allocation_id),
                )
                model = AllocationModel(
                    id=allocation_id,
                    funding_id=funding.id,
                    project_id=project.id,
                    sub_project_id=sub_project_id,
                    amount=amount,
                    spent_amount=ZERO,
                    notes=notes,
                    transaction_id=transaction.id,
                    created_by_id=actor_id,
                )
                self._session.add(model)
                self._session.flush()

            logger.info(
                "allocation_recorded",
                extra={
                    "funding_id": str(funding.id),
                    "project_id": str(project.id),
                    "amount": amount,
                },
            )
        return model.to_dto()

    def _reserve_on_funding(self, funding: FundingModel, amount: Decimal) -> None:
        result = self._session.execute(
            update(FundingModel)
            .where(
                FundingModel.id == funding.id,
                FundingModel.allocated_amount + amount <= FundingModel.amount,
            )
            .values(allocated_amount=FundingModel.allocated_amount + amount)
            .execution_options(synchronize_session=False)
        )
        self._session.expire(funding, ["allocated_amount"])
        if result.rowcount == 0:
            available = funding.amount - funding.allocated_amount
            logger.warning(
                "over_allocation_rejected",
                extra={
                    "funding_id": str(funding.id),
                    "requested": amount,
                    "available_amount": available,
                },
            )
            raise OverAllocationError(str(funding.id), amount, available)

    def get_allocation(self, allocation_id: UUID) -> Allocation:
        return self._get_allocation_model(allocation_id).to_dto()

    def get_allocation_budget(self, allocation_id: UUID) -> ProjectAllocationBudget:
        self._get_allocation_model(allocation_id)
        budgets = self._budgets(AllocationModel.id == allocation_id)
        return budgets[0]

    def get_project_allocations_with_budget(
        self, project_id: UUID | None = None
    ) -> list[ProjectAllocationBudget]:
        """
        Budget of every allocation (of one project, when given).

        Recomputed from allocation and expense rows on every call; ordered by
        project name, then allocation creation.
        """
        if project_id is None:
            return self._budgets()
        self._projects.get_project(project_id)
        return self._budgets(AllocationModel.project_id == project_id)

    def _budgets(self, *criteria) -> list[ProjectAllocationBudget]:
        rows = self._session.execute(
            select(
                AllocationModel.id,
                AllocationModel.project_id,
                AllocationModel.sub_project_id,
                AllocationModel.funding_id,
                AllocationModel.amount,
                ProjectModel.name.label("project_name"),
                FundingModel.donor_name,
            )
            .join(ProjectModel, AllocationModel.project_id == ProjectModel.id)
            .join(FundingModel, AllocationModel.funding_id == FundingModel.id)
            .where(*criteria)
            .order_by(ProjectModel.name, AllocationModel.created_at, AllocationModel.id)
        ).all()
        spent = self._spent_by_allocation([row.id for row in rows])
        return [
            ProjectAllocationBudget.compute(
                allocation_id=row.id,
                project_id=row.project_id,
                project_name=row.project_name,
                funding_id=row.funding_id,
                funding_donor=row.donor_name,
                allocated_amount=row.amount,
                spent_amount=spent.get(row.id, ZERO),
                sub_project_id=row.sub_project_id,
            )
            for row in rows
        ]

    # =========================================================================
    # Expenses
    # =========================================================================

    def record_expense(
        self,
        allocation_id: UUID,
        amount: Decimal | int | str,
        expense_date: date | str,
        category: str,
        actor_id: UUID,
        description: str | None = None,
        sub_project_id: UUID | None = None,
        account_id: UUID | None = None,
        paid_from_account_id: UUID | None = None,
        vendor_name: str | None = None,
        invoice_number: str | None = None,
        payment_mode: str | None = None,
        voucher_reference: str | None = None,
        tax_category: TaxCategory | str | None = None,
        tax_deductible: bool = False,
    ) -> Expense:
        """
        Spend against an allocation.

        ``account_id`` defaults to the configured expense account and
        ``paid_from_account_id`` to the funding's destination account.
        ``sub_project_id`` defaults to the allocation's sub-project.

        Raises:
            InsufficientBudgetError: ``amount`` exceeds what is still
                available on the allocation; ``available_amount`` says how
                much is.
        """
        amount = parse_money(amount)
        spent_on = parse_date(expense_date, "expense_date")
        category = require_text(category, "category", max_length=100)
        description = (
            require_text(description, "description", max_length=1000)
            if description is not None
            else category
        )
        tax = _coerce_tax_category(tax_category)

        allocation = self._get_allocation_model(allocation_id)
        funding = self._get_funding_model(allocation.funding_id)
        if sub_project_id is None:
            sub_project_id = allocation.sub_project_id
        self._projects.require_link(allocation.project_id, sub_project_id)

        if account_id is not None:
            expense_account = self._account_of_type(account_id, AccountType.EXPENSE)
        else:
            expense_account = self._configured_account(self._config.default_expense_code)
        paid_from = self._account_of_type(
            paid_from_account_id if paid_from_account_id is not None else funding.account_id,
            AccountType.ASSET,
        )

        expense_id = uuid4()
        with LogContext.bind(allocation_id=str(allocation.id)):
            with self._session.begin_nested():
                self._reserve_on_allocation(allocation, amount)
                transaction = self._ledger.post_mirrored(
                    transaction_date=spent_on,
                    description=f"Expense: {description}",
                    entries=[
                        LineSpec(expense_account.id, EntryType.DEBIT, amount),
                        LineSpec(paid_from.id, EntryType.CREDIT, amount),
                    ],
                    actor_id=actor_id,
                    reference=ExpenseRef(expense_id),
                )
                model = ExpenseModel(
                    id=expense_id,
                    project_allocation_id=allocation.id,
                    sub_project_id=sub_project_id,
                    amount=amount,
                    expense_date=spent_on,
                    category=category,
                    description=description,
                    account_id=expense_account.id,
                    paid_from_account_id=paid_from.id,
                    vendor_name=vendor_name,
                    invoice_number=invoice_number,
                    payment_mode=payment_mode,
                    voucher_reference=voucher_reference,
                    tax_category=tax,
                    tax_deductible=bool(tax_deductible),
                    transaction_id=transaction.id,
                    created_by_id=actor_id,
                )
                self._session.add(model)
                self._session.flush()

            logger.info(
                "expense_recorded",
                extra={
                    "expense_id": str(expense_id),
                    "amount": amount,
                    "category": category,
                },
            )
        return model.to_dto()

    def _reserve_on_allocation(self, allocation: AllocationModel, amount: Decimal) -> None:
        result = self._session.execute(
            update(AllocationModel)
            .where(
                AllocationModel.id == allocation.id,
                AllocationModel.spent_amount + amount <= AllocationModel.amount,
            )
            .values(spent_amount=AllocationModel.spent_amount + amount)
            .execution_options(synchronize_session=False)
        )
        self._session.expire(allocation, ["spent_amount"])
        if result.rowcount == 0:
            available = allocation.amount - allocation.spent_amount
            logger.warning(
                "insufficient_budget_rejected",
                extra={
                    "requested": amount,
                    "available_amount": available,
                },
            )
            raise InsufficientBudgetError(str(allocation.id), amount, available)

    def list_expenses(
        self,
        allocation_id: UUID | None = None,
        project_id: UUID | None = None,
    ) -> list[Expense]:
        """Expenses in date order, filtered by allocation and/or project."""
        query = select(ExpenseModel).order_by(
            ExpenseModel.expense_date, ExpenseModel.created_at, ExpenseModel.id
        )
        if allocation_id is not None:
            query = query.where(ExpenseModel.project_allocation_id == allocation_id)
        if project_id is not None:
            query = query.join(
                AllocationModel, ExpenseModel.project_allocation_id == AllocationModel.id
            ).where(AllocationModel.project_id == project_id)
        return [m.to_dto() for m in self._session.execute(query).scalars()]

    # =========================================================================
    # Report filters
    # =========================================================================

    def reference_ids_for_project(
        self,
        project_id: UUID | None = None,
        sub_project_id: UUID | None = None,
    ) -> list[UUID]:
        """
        Ids of the allocations and expenses whose ledger transactions belong
        to a project (or to one sub-project).
        """
        alloc_query = select(AllocationModel.id)
        expense_query = select(ExpenseModel.id).join(
            AllocationModel, ExpenseModel.project_allocation_id == AllocationModel.id
        )
        if project_id is not None:
            self._projects.get_project(project_id)
            alloc_query = alloc_query.where(AllocationModel.project_id == project_id)
            expense_query = expense_query.where(AllocationModel.project_id == project_id)
        if sub_project_id is not None:
            self._projects.get_sub_project(sub_project_id)
            alloc_query = alloc_query.where(AllocationModel.sub_project_id == sub_project_id)
            expense_query = expense_query.where(ExpenseModel.sub_project_id == sub_project_id)

        ids = list(self._session.execute(alloc_query).scalars())
        ids.extend(self._session.execute(expense_query).scalars())
        return ids
