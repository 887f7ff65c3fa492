"""
Reporting Module Service (``fund_modules.reporting.service``).

Responsibility
--------------
The report query layer.  Resolves report parameters (account, project,
sub-project, date range, named reporting period) and feeds ledger lines
from ``LedgerSelector`` to the pure functions in ``statements.py``.  Also
owns the stored reporting periods.

Architecture position
---------------------
**Modules layer** -- thin glue.  Reads the kernel ledger; asks the funding
module which allocations and expenses belong to a project.  Constructor:
``session`` + ``clock`` + ``config``.

Invariants enforced
-------------------
* Read-only over the ledger: no transaction is posted here.
* A reporting period's dates override explicit dates.
* ``end_date < start_date`` is rejected before any query runs.
* Default dates come from the injected clock, never ``date.today()``.

Failure modes
-------------
* ``InvalidDateRangeError`` on an inverted window.
* ``ReportingPeriodNotFoundError``, ``ProjectNotFoundError``,
  ``SubProjectNotFoundError``, ``AccountNotFoundError`` on unknown ids.
* ``ValidationError`` on an empty or duplicate period name.
"""

from __future__ import annotations

from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from fund_kernel.domain.clock import Clock, SystemClock
from fund_kernel.domain.values import parse_date, require_text
from fund_kernel.exceptions import (
    InvalidDateRangeError,
    ReportingPeriodNotFoundError,
    ValidationError,
)
from fund_kernel.logging_config import get_logger
from fund_kernel.selectors.ledger_selector import LedgerSelector
from fund_kernel.services.account_registry import AccountRegistry
from fund_modules.funding.service import FundingService
from fund_modules.reporting.config import ReportingConfig
from fund_modules.reporting.models import (
    BalanceSheetReport,
    IncomeStatementReport,
    LedgerRow,
    ReportFilter,
    ReportingPeriod,
    TrialBalanceReport,
)
from fund_modules.reporting.orm import ReportingPeriodModel
from fund_modules.reporting.statements import (
    build_balance_sheet,
    build_income_statement,
    build_trial_balance,
    closing_balances,
    compute_running_ledger,
)

logger = get_logger("modules.reporting.service")


class ReportingService:
    """
    Financial statement generation and reporting periods.

    Contract
    --------
    * Every report method returns a typed report DTO.
    * Report methods never write; reporting-period methods flush only.

    Non-goals
    ---------
    * Does NOT render CSV/PDF/XLSX; ``render_to_dict`` produces plain data.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()
        self._ledger = LedgerSelector(session)
        self._accounts = AccountRegistry(session)

    # =========================================================================
    # Reporting periods
    # =========================================================================

    def create_reporting_period(
        self,
        name: str,
        start_date: date | str,
        end_date: date | str,
        actor_id: UUID,
        is_active: bool = True,
    ) -> ReportingPeriod:
        name = require_text(name, "name", max_length=255)
        start = parse_date(start_date, "start_date")
        end = parse_date(end_date, "end_date")
        if end < start:
            raise InvalidDateRangeError(start, end)
        if self._session.execute(
            select(exists().where(ReportingPeriodModel.name == name))
        ).scalar():
            raise ValidationError(f"Reporting period name already exists: {name}", "name")

        model = ReportingPeriodModel(
            name=name,
            start_date=start,
            end_date=end,
            is_active=bool(is_active),
            created_by_id=actor_id,
        )
        self._session.add(model)
        self._session.flush()
        logger.info(
            "reporting_period_created",
            extra={
                "reporting_period_id": str(model.id),
                "start_date": start,
                "end_date": end,
            },
        )
        return model.to_dto()

    def _get_period_model(self, reporting_period_id: UUID) -> ReportingPeriodModel:
        model = self._session.get(ReportingPeriodModel, reporting_period_id)
        if model is None:
            raise ReportingPeriodNotFoundError(str(reporting_period_id))
        return model

    def get_reporting_period(self, reporting_period_id: UUID) -> ReportingPeriod:
        return self._get_period_model(reporting_period_id).to_dto()

    def list_reporting_periods(self, active_only: bool = False) -> list[ReportingPeriod]:
        """Newest start date first."""
        query = select(ReportingPeriodModel).order_by(
            ReportingPeriodModel.start_date.desc(), ReportingPeriodModel.name,
        )
        if active_only:
            query = query.where(ReportingPeriodModel.is_active.is_(True))
        return [m.to_dto() for m in self._session.execute(query).scalars()]

    def set_reporting_period_active(
        self,
        reporting_period_id: UUID,
        is_active: bool,
        actor_id: UUID,
    ) -> ReportingPeriod:
        model = self._get_period_model(reporting_period_id)
        model.is_active = bool(is_active)
        model.updated_by_id = actor_id
        self._session.flush()
        return model.to_dto()

    # =========================================================================
    # Parameter resolution
    # =========================================================================

    def resolve_window(
        self,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
        reporting_period_id: UUID | None = None,
    ) -> tuple[date | None, date | None]:
        """
        The (start, end) a report covers.

        A reporting period wins over explicit dates.  Either bound may be
        None (open-ended).
        """
        if reporting_period_id is not None:
            period = self._get_period_model(reporting_period_id)
            return period.start_date, period.end_date

        start = parse_date(start_date, "start_date") if start_date is not None else None
        end = parse_date(end_date, "end_date") if end_date is not None else None
        if start is not None and end is not None and end < start:
            raise InvalidDateRangeError(start, end)
        return start, end

    def _fiscal_year_containing(self, day: date) -> tuple[date, date]:
        month = self._config.fiscal_year_start_month
        year = day.year if day.month >= month else day.year - 1
        start = date(year, month, 1)
        end = date(year + 1, month, 1) - timedelta(days=1)
        return start, end

    def _reference_ids(
        self,
        project_id: UUID | None,
        sub_project_id: UUID | None,
    ) -> list[UUID] | None:
        if project_id is None and sub_project_id is None:
            return None
        return FundingService(self._session).reference_ids_for_project(
            project_id=project_id, sub_project_id=sub_project_id,
        )

    # =========================================================================
    # Reports
    # =========================================================================

    def ledger(self, report_filter: ReportFilter | None = None) -> dict[UUID, list[LedgerRow]]:
        """
        Running ledger per account, ``{account_id: [LedgerRow, ...]}``.

        Each account's running balance starts at zero at the first entry in
        the window.  With ``carry_opening_balance`` enabled it starts at the
        account's balance on the day before the window instead, under the
        same account/project filter.
        """
        f = report_filter or ReportFilter()
        start, end = self.resolve_window(f.start_date, f.end_date, f.reporting_period_id)
        if f.account_id is not None:
            self._accounts.get_account(f.account_id)
        reference_ids = self._reference_ids(f.project_id, f.sub_project_id)

        lines = self._ledger.get_entries(
            account_id=f.account_id,
            start_date=start,
            end_date=end,
            reference_ids=reference_ids,
        )

        opening = None
        if start is not None and self._config.carry_opening_balance:
            opening = closing_balances(
                self._ledger.get_entries(
                    account_id=f.account_id,
                    end_date=start - timedelta(days=1),
                    reference_ids=reference_ids,
                )
            )

        result = compute_running_ledger(lines, opening)
        logger.info(
            "ledger_generated",
            extra={
                "account_id": str(f.account_id) if f.account_id else None,
                "project_id": str(f.project_id) if f.project_id else None,
                "start_date": start,
                "end_date": end,
                "line_count": len(lines),
                "account_count": len(result),
            },
        )
        return result

    def balance_sheet(
        self,
        as_of_date: date | str | None = None,
        reporting_period_id: UUID | None = None,
    ) -> BalanceSheetReport:
        """
        Balance sheet as of a date.

        A reporting period resolves to its end date; with neither argument
        the clock's today is used.
        """
        if reporting_period_id is not None:
            cutoff = self._get_period_model(reporting_period_id).end_date
        elif as_of_date is not None:
            cutoff = parse_date(as_of_date, "as_of_date")
        else:
            cutoff = self._clock.today()

        report = build_balance_sheet(
            self._ledger.get_entries(end_date=cutoff),
            self._accounts.chart(),
            cutoff,
        )
        logger.info(
            "balance_sheet_generated",
            extra={
                "as_of_date": cutoff,
                "total_assets": report.total_assets,
                "total_liabilities": report.total_liabilities,
                "total_equity": report.total_equity,
            },
        )
        return report

    def income_statement(
        self,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
        reporting_period_id: UUID | None = None,
    ) -> IncomeStatementReport:
        """
        Income statement for a window.

        With no bounds the window is the current fiscal year from the clock.
        A single bound is completed to the fiscal year that contains it.
        """
        start, end = self.resolve_window(start_date, end_date, reporting_period_id)
        if start is None and end is None:
            start, end = self._fiscal_year_containing(self._clock.today())
        elif end is None:
            end = self._fiscal_year_containing(start)[1]
        elif start is None:
            start = self._fiscal_year_containing(end)[0]

        report = build_income_statement(
            self._ledger.get_entries(start_date=start, end_date=end),
            self._accounts.chart(),
            start,
            end,
        )
        logger.info(
            "income_statement_generated",
            extra={
                "start_date": start,
                "end_date": end,
                "net_income": report.net_income,
            },
        )
        return report

    def trial_balance(
        self,
        as_of_date: date | str | None = None,
        reporting_period_id: UUID | None = None,
    ) -> TrialBalanceReport:
        if reporting_period_id is not None:
            cutoff = self._get_period_model(reporting_period_id).end_date
        elif as_of_date is not None:
            cutoff = parse_date(as_of_date, "as_of_date")
        else:
            cutoff = self._clock.today()

        report = build_trial_balance(
            self._ledger.get_entries(end_date=cutoff),
            self._accounts.chart(),
            cutoff,
        )
        logger.info(
            "trial_balance_generated",
            extra={
                "as_of_date": cutoff,
                "line_count": len(report.lines),
                "is_balanced": report.is_balanced,
            },
        )
        return report
