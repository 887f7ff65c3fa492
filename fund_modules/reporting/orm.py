"""
SQLAlchemy ORM persistence model for reporting periods
(``fund_modules.reporting.orm``).

Invariants enforced
-------------------
* ``start_date <= end_date`` (CHECK constraint).
* Period names are unique.
"""

from datetime import date

from sqlalchemy import Boolean, CheckConstraint, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fund_kernel.db.base import TrackedBase


class ReportingPeriodModel(TrackedBase):
    """Maps to the ``ReportingPeriod`` DTO in ``fund_modules.reporting.models``."""

    __tablename__ = "reporting_periods"

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_reporting_period_dates"),
        UniqueConstraint("name", name="uq_reporting_period_name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[date] = mapped_column(nullable=False)
    end_date: Mapped[date] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dto(self):
        from fund_modules.reporting.models import ReportingPeriod

        return ReportingPeriod(
            id=self.id,
            name=self.name,
            start_date=self.start_date,
            end_date=self.end_date,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<ReportingPeriodModel {self.name} {self.start_date}..{self.end_date}>"
