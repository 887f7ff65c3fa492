"""
Reporting Configuration Schema.

Controls the default report windows and whether date-filtered ledgers carry
the balance accumulated before their start date.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Self

from fund_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


@dataclass(frozen=True)
class ReportingConfig:
    """
    Configuration schema for the reporting module.

    ``fiscal_year_start_month`` anchors the default income statement window
    (1 = calendar year).
    """

    fiscal_year_start_month: int = 1

    # Opt-in: running balances of a date-filtered ledger start from the
    # account's balance on the day before start_date instead of zero.
    carry_opening_balance: bool = False

    def __post_init__(self):
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ValueError("fiscal_year_start_month must be between 1 and 12")

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
