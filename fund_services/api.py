"""
fund_services.api -- FundLedgerAPI, the request-served facade.

Responsibility:
    The one entry point a transport (HTTP handler, RPC server, CLI) calls.
    Each method:

        1. checks the caller's permission      -> PermissionDeniedError
        2. opens its own session_scope()       -> commit, or rollback + raise
        3. delegates to a kernel/module service
        4. renders the result as plain data    (render_to_dict)

    No session is opened for a caller that fails the permission check.

Architecture position:
    Services layer.  May import kernel, modules and config.

Failure modes:
    Every FundLedgerError propagates unchanged after rollback.
    ``render_error`` turns one into a transport-neutral payload.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from fund_config import get_active_config
from fund_config.schema import FundLedgerConfig
from fund_kernel.db.engine import session_scope
from fund_kernel.domain.clock import Clock, SystemClock
from fund_kernel.domain.dtos import AccountInfo, LineSpec
from fund_kernel.exceptions import (
    FundLedgerError,
    InvalidEntryError,
    PermissionDeniedError,
    ValidationError,
)
from fund_kernel.logging_config import LogContext, get_logger
from fund_kernel.models.transaction import Transaction
from fund_kernel.services.account_registry import AccountRegistry
from fund_kernel.services.ledger_service import LedgerService
from fund_modules._orm_registry import register_module_listeners
from fund_modules.funding.config import FundingConfig
from fund_modules.funding.service import FundingService
from fund_modules.project.service import ProjectService
from fund_modules.reporting.config import ReportingConfig
from fund_modules.reporting.models import ReportFilter
from fund_modules.reporting.service import ReportingService
from fund_modules.reporting.statements import render_to_dict
from fund_services.rbac_authority import RbacAuthority, get_permission_for_action

logger = get_logger("services.api")


@dataclass(frozen=True)
class Caller:
    """An authenticated user acting under one role."""

    user_id: UUID
    role: str


def render_error(exc: FundLedgerError) -> dict[str, Any]:
    """
    Transport-neutral error payload.

    ``{"error": code, "message": str(exc), **attributes}``; attribute values
    are rendered like report payloads (Decimal -> str, ...).
    """
    payload: dict[str, Any] = {"error": exc.code, "message": str(exc)}
    for key, value in vars(exc).items():
        if not key.startswith("_"):
            payload[key] = render_to_dict(value)
    return payload


def _as_uuid(value: UUID | str | None, field: str) -> UUID | None:
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(f"{field} is not a valid id: {value!r}", field) from None


def _line_spec(entry: LineSpec | dict[str, Any], index: int) -> LineSpec:
    if isinstance(entry, LineSpec):
        return entry
    if not isinstance(entry, dict):
        raise InvalidEntryError("entry must be a mapping", index)
    side = entry.get("entry_type", entry.get("side"))
    if "account_id" not in entry or side is None or "amount" not in entry:
        raise InvalidEntryError("entry needs account_id, entry_type and amount", index)
    return LineSpec(
        account_id=_as_uuid(entry["account_id"], f"entries[{index}].account_id"),
        side=side,
        amount=entry["amount"],
        notes=entry.get("notes"),
    )


def _transaction_payload(transaction: Transaction) -> dict[str, Any]:
    return render_to_dict({
        "id": transaction.id,
        "seq": transaction.seq,
        "transaction_date": transaction.transaction_date,
        "description": transaction.description,
        "reference_type": transaction.reference_type,
        "reference_id": transaction.reference_id,
        "reversal_of_id": transaction.reversal_of_id,
        "entries": [
            {
                "account_id": e.account_id,
                "entry_type": e.entry_type,
                "amount": e.amount,
                "notes": e.notes,
            }
            for e in transaction.entries
        ],
    })


class FundLedgerAPI:
    """
    Permission-checked, transaction-scoped operations of the fund ledger.

    Contract:
        * Every method takes the ``Caller`` first.
        * Every method runs in its own database transaction.
        * Return values are plain dicts/lists of str, int, bool and None.
    """

    def __init__(
        self,
        config: FundLedgerConfig | None = None,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
    ):
        self._config = config or get_active_config()
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._rbac = RbacAuthority(self._config.rbac)
        accounts = self._config.posting_accounts
        self._funding_config = FundingConfig(
            donation_income_code=accounts.donation_income_code,
            unallocated_funds_code=accounts.unallocated_funds_code,
            allocated_funds_code=accounts.allocated_funds_code,
            default_expense_code=accounts.default_expense_code,
        )
        self._reporting_config = ReportingConfig(
            fiscal_year_start_month=self._config.reporting.fiscal_year_start_month,
            carry_opening_balance=self._config.reporting.carry_opening_balance,
        )
        register_module_listeners()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _authorize(self, caller: Caller | None, action: str) -> None:
        if caller is None:
            logger.warning("permission_denied", extra={"action": action, "role": None})
            raise PermissionDeniedError(
                get_permission_for_action(action) or action, None, "no authenticated caller"
            )
        self._rbac.require(action, caller.role)

    @contextmanager
    def _request(self, caller: Caller | None, action: str) -> Iterator[Session]:
        self._authorize(caller, action)
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(caller.user_id),
            actor_role=caller.role,
        ):
            logger.info("request_started", extra={"action": action})
            with session_scope(self._session_factory) as session:
                yield session

    def _funding(self, session: Session) -> FundingService:
        return FundingService(session, self._funding_config)

    def _reporting(self, session: Session) -> ReportingService:
        return ReportingService(session, self._clock, self._reporting_config)

    # ------------------------------------------------------------------
    # Chart of accounts
    # ------------------------------------------------------------------

    def create_account(
        self,
        caller: Caller,
        code: str,
        name: str,
        account_type: str,
        parent_id: UUID | str | None = None,
        description: str | None = None,
    ) -> dict[str, Any]:
        with self._request(caller, "create_account") as session:
            account = AccountRegistry(session).create_account(
                code=code,
                name=name,
                account_type=account_type,
                actor_id=caller.user_id,
                parent_id=_as_uuid(parent_id, "parent_id"),
                description=description,
            )
            return render_to_dict(AccountInfo.from_model(account))

    def update_account(
        self,
        caller: Caller,
        account_id: UUID | str,
        name: str | None = None,
        description: str | None = None,
        account_type: str | None = None,
    ) -> dict[str, Any]:
        with self._request(caller, "update_account") as session:
            account = AccountRegistry(session).update_account(
                _as_uuid(account_id, "account_id"),
                caller.user_id,
                name=name,
                description=description,
                account_type=account_type,
            )
            return render_to_dict(AccountInfo.from_model(account))

    def delete_account(self, caller: Caller, account_id: UUID | str) -> None:
        with self._request(caller, "delete_account") as session:
            AccountRegistry(session).delete_account(_as_uuid(account_id, "account_id"))

    def list_accounts(
        self, caller: Caller, account_type: str | None = None
    ) -> list[dict[str, Any]]:
        with self._request(caller, "list_accounts") as session:
            accounts = AccountRegistry(session).list_accounts(account_type)
            return [render_to_dict(AccountInfo.from_model(a)) for a in accounts]

    def get_account_tree(self, caller: Caller) -> list[dict[str, Any]]:
        """Root accounts with nested ``children``, each level sorted by code."""
        with self._request(caller, "get_account_tree") as session:
            chart = AccountRegistry(session).chart()

            def node(info: AccountInfo) -> dict[str, Any]:
                payload = render_to_dict(info)
                payload["children"] = [node(c) for c in chart.children(info.account_id)]
                return payload

            return [node(root) for root in chart.roots()]

    def seed_chart_of_accounts(self, caller: Caller) -> list[str]:
        """
        Create every configured seed account whose code is missing.

        Returns the codes created, parents before children.
        """
        with self._request(caller, "seed_chart_of_accounts") as session:
            registry = AccountRegistry(session)
            existing = {a.code: a.id for a in registry.list_accounts()}
            pending = [s for s in self._config.chart_of_accounts if s.code not in existing]
            created: list[str] = []
            while pending:
                ready = [
                    s for s in pending
                    if s.parent_code is None or s.parent_code in existing
                ]
                if not ready:
                    raise ValidationError(
                        "chart_of_accounts parents cannot be resolved: "
                        + ", ".join(s.code for s in pending),
                        "chart_of_accounts",
                    )
                for seed in ready:
                    account = registry.create_account(
                        code=seed.code,
                        name=seed.name,
                        account_type=seed.account_type,
                        actor_id=caller.user_id,
                        parent_id=existing.get(seed.parent_code) if seed.parent_code else None,
                        description=seed.description,
                    )
                    existing[seed.code] = account.id
                    created.append(seed.code)
                pending = [s for s in pending if s not in ready]
            logger.info("chart_of_accounts_seeded", extra={"created_count": len(created)})
            return created

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def post_transaction(
        self,
        caller: Caller,
        transaction_date: date | str,
        description: str,
        entries: Sequence[LineSpec | dict[str, Any]],
    ) -> dict[str, Any]:
        """Post a manual transaction; it never carries a budget reference."""
        with self._request(caller, "post_transaction") as session:
            specs = [_line_spec(entry, i) for i, entry in enumerate(entries)]
            transaction = LedgerService(session).post_transaction(
                transaction_date=transaction_date,
                description=description,
                entries=specs,
                actor_id=caller.user_id,
            )
            return _transaction_payload(transaction)

    def reverse_transaction(
        self,
        caller: Caller,
        transaction_id: UUID | str,
        reversal_date: date | str,
        reason: str | None = None,
    ) -> dict[str, Any]:
        with self._request(caller, "reverse_transaction") as session:
            reversal = LedgerService(session).reverse_transaction(
                _as_uuid(transaction_id, "transaction_id"),
                reversal_date,
                caller.user_id,
                reason=reason,
            )
            return _transaction_payload(reversal)

    def get_ledger(
        self,
        caller: Caller,
        account_id: UUID | str | None = None,
        project_id: UUID | str | None = None,
        sub_project_id: UUID | str | None = None,
        reporting_period_id: UUID | str | None = None,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
    ) -> dict[str, Any]:
        """``{account_id: [ledger rows]}`` in ledger order."""
        with self._request(caller, "get_ledger") as session:
            service = self._reporting(session)
            start, end = service.resolve_window(
                start_date, end_date, _as_uuid(reporting_period_id, "reporting_period_id"),
            )
            ledger = service.ledger(
                ReportFilter(
                    account_id=_as_uuid(account_id, "account_id"),
                    project_id=_as_uuid(project_id, "project_id"),
                    sub_project_id=_as_uuid(sub_project_id, "sub_project_id"),
                    start_date=start,
                    end_date=end,
                )
            )
            return render_to_dict(ledger)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(
        self, caller: Caller, name: str, description: str | None = None
    ) -> dict[str, Any]:
        with self._request(caller, "create_project") as session:
            project = ProjectService(session).create_project(
                name, caller.user_id, description=description,
            )
            return render_to_dict(project)

    def create_sub_project(
        self,
        caller: Caller,
        project_id: UUID | str,
        name: str,
        description: str | None = None,
    ) -> dict[str, Any]:
        with self._request(caller, "create_sub_project") as session:
            sub_project = ProjectService(session).create_sub_project(
                _as_uuid(project_id, "project_id"), name, caller.user_id,
                description=description,
            )
            return render_to_dict(sub_project)

    def list_projects(self, caller: Caller) -> list[dict[str, Any]]:
        with self._request(caller, "list_projects") as session:
            return render_to_dict(ProjectService(session).list_projects())

    def list_sub_projects(
        self, caller: Caller, project_id: UUID | str | None = None
    ) -> list[dict[str, Any]]:
        with self._request(caller, "list_sub_projects") as session:
            return render_to_dict(
                ProjectService(session).list_sub_projects(_as_uuid(project_id, "project_id"))
            )

    # ------------------------------------------------------------------
    # Budget tracker
    # ------------------------------------------------------------------

    def record_funding(
        self,
        caller: Caller,
        donor_name: str,
        amount: Decimal | int | str,
        date_received: date | str,
        account_id: UUID | str,
        donor_type: str | None = None,
        tax_deductible: bool = False,
        notes: str | None = None,
    ) -> dict[str, Any]:
        with self._request(caller, "record_funding") as session:
            funding = self._funding(session).record_funding(
                donor_name=donor_name,
                amount=amount,
                date_received=date_received,
                account_id=_as_uuid(account_id, "account_id"),
                actor_id=caller.user_id,
                donor_type=donor_type,
                tax_deductible=tax_deductible,
                notes=notes,
            )
            return render_to_dict(funding)

    def update_funding_metadata(
        self,
        caller: Caller,
        funding_id: UUID | str,
        notes: str | None = None,
        tax_deductible: bool | None = None,
        donor_type: str | None = None,
    ) -> dict[str, Any]:
        with self._request(caller, "update_funding_metadata") as session:
            funding = self._funding(session).update_funding_metadata(
                _as_uuid(funding_id, "funding_id"),
                caller.user_id,
                notes=notes,
                tax_deductible=tax_deductible,
                donor_type=donor_type,
            )
            return render_to_dict(funding)

    def list_fundings(self, caller: Caller) -> list[dict[str, Any]]:
        with self._request(caller, "list_fundings") as session:
            return render_to_dict(self._funding(session).list_fundings())

    def get_funding_summary(self, caller: Caller, funding_id: UUID | str) -> dict[str, Any]:
        with self._request(caller, "get_funding_summary") as session:
            return render_to_dict(
                self._funding(session).get_funding_summary(_as_uuid(funding_id, "funding_id"))
            )

    def allocate_to_project(
        self,
        caller: Caller,
        funding_id: UUID | str,
        project_id: UUID | str,
        amount: Decimal | int | str,
        sub_project_id: UUID | str | None = None,
        notes: str | None = None,
    ) -> dict[str, Any]:
        with self._request(caller, "allocate_to_project") as session:
            allocation = self._funding(session).allocate_to_project(
                funding_id=_as_uuid(funding_id, "funding_id"),
                project_id=_as_uuid(project_id, "project_id"),
                amount=amount,
                actor_id=caller.user_id,
                sub_project_id=_as_uuid(sub_project_id, "sub_project_id"),
                notes=notes,
            )
            return render_to_dict(allocation)

    def record_expense(
        self,
        caller: Caller,
        allocation_id: UUID | str,
        amount: Decimal | int | str,
        expense_date: date | str,
        category: str,
        description: str | None = None,
        sub_project_id: UUID | str | None = None,
        account_id: UUID | str | None = None,
        paid_from_account_id: UUID | str | None = None,
        vendor_name: str | None = None,
        invoice_number: str | None = None,
        payment_mode: str | None = None,
        voucher_reference: str | None = None,
        tax_category: str | None = None,
        tax_deductible: bool = False,
    ) -> dict[str, Any]:
        with self._request(caller, "record_expense") as session:
            expense = self._funding(session).record_expense(
                allocation_id=_as_uuid(allocation_id, "allocation_id"),
                amount=amount,
                expense_date=expense_date,
                category=category,
                actor_id=caller.user_id,
                description=description,
                sub_project_id=_as_uuid(sub_project_id, "sub_project_id"),
                account_id=_as_uuid(account_id, "account_id"),
                paid_from_account_id=_as_uuid(paid_from_account_id, "paid_from_account_id"),
                vendor_name=vendor_name,
                invoice_number=invoice_number,
                payment_mode=payment_mode,
                voucher_reference=voucher_reference,
                tax_category=tax_category,
                tax_deductible=tax_deductible,
            )
            return render_to_dict(expense)

    def list_expenses(
        self,
        caller: Caller,
        allocation_id: UUID | str | None = None,
        project_id: UUID | str | None = None,
    ) -> list[dict[str, Any]]:
        with self._request(caller, "list_expenses") as session:
            return render_to_dict(
                self._funding(session).list_expenses(
                    allocation_id=_as_uuid(allocation_id, "allocation_id"),
                    project_id=_as_uuid(project_id, "project_id"),
                )
            )

    def get_project_allocations_with_budget(
        self, caller: Caller, project_id: UUID | str | None = None
    ) -> list[dict[str, Any]]:
        with self._request(caller, "get_project_allocations_with_budget") as session:
            return render_to_dict(
                self._funding(session).get_project_allocations_with_budget(
                    _as_uuid(project_id, "project_id")
                )
            )

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def create_reporting_period(
        self,
        caller: Caller,
        name: str,
        start_date: date | str,
        end_date: date | str,
        is_active: bool = True,
    ) -> dict[str, Any]:
        with self._request(caller, "create_reporting_period") as session:
            period = self._reporting(session).create_reporting_period(
                name, start_date, end_date, caller.user_id, is_active=is_active,
            )
            return render_to_dict(period)

    def list_reporting_periods(
        self, caller: Caller, active_only: bool = False
    ) -> list[dict[str, Any]]:
        with self._request(caller, "list_reporting_periods") as session:
            return render_to_dict(
                self._reporting(session).list_reporting_periods(active_only=active_only)
            )

    def get_balance_sheet(
        self,
        caller: Caller,
        reporting_period_id: UUID | str | None = None,
        as_of_date: date | str | None = None,
    ) -> dict[str, Any]:
        with self._request(caller, "get_balance_sheet") as session:
            report = self._reporting(session).balance_sheet(
                as_of_date=as_of_date,
                reporting_period_id=_as_uuid(reporting_period_id, "reporting_period_id"),
            )
            return render_to_dict(report)

    def get_income_statement(
        self,
        caller: Caller,
        reporting_period_id: UUID | str | None = None,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
    ) -> dict[str, Any]:
        with self._request(caller, "get_income_statement") as session:
            report = self._reporting(session).income_statement(
                start_date=start_date,
                end_date=end_date,
                reporting_period_id=_as_uuid(reporting_period_id, "reporting_period_id"),
            )
            return render_to_dict(report)

    def get_trial_balance(
        self,
        caller: Caller,
        as_of_date: date | str | None = None,
        reporting_period_id: UUID | str | None = None,
    ) -> dict[str, Any]:
        with self._request(caller, "get_trial_balance") as session:
            report = self._reporting(session).trial_balance(
                as_of_date=as_of_date,
                reporting_period_id=_as_uuid(reporting_period_id, "reporting_period_id"),
            )
            return render_to_dict(report)
