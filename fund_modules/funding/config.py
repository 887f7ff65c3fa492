"""
Funding Configuration Schema.

Names the accounts the budget tracker posts to.  Accounts are referenced by
code; the service resolves codes to ids at posting time, so the chart can be
seeded in any order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Self

from fund_kernel.logging_config import get_logger

logger = get_logger("modules.funding.config")


@dataclass(frozen=True)
class FundingConfig:
    """
    Posting accounts for funding, allocation and expense transactions.

    * funding:    Dr <destination asset>          / Cr donation_income_code
    * allocation: Dr unallocated_funds_code       / Cr allocated_funds_code
    * expense:    Dr <expense or default_expense> / Cr <paid-from asset>
    """

    donation_income_code: str = "4000"
    unallocated_funds_code: str = "3100"
    allocated_funds_code: str = "3200"
    default_expense_code: str = "5000"

    def __post_init__(self):
        for name in (
            "donation_income_code",
            "unallocated_funds_code",
            "allocated_funds_code",
            "default_expense_code",
        ):
            if not getattr(self, name):
                raise ValueError(f"{name} must not be empty")
        if self.unallocated_funds_code == self.allocated_funds_code:
            raise ValueError("unallocated and allocated fund accounts must differ")

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        logger.info(
            "funding_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
