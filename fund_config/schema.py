"""
Configuration schema: frozen dataclasses parsed from YAML.

    FundLedgerConfig
      |- EngineConfig       database connection and pool
      |- PostingAccounts    account codes the budget tracker posts to
      |- RbacConfig         roles and the permissions they grant
      |- ReportingDefaults  default report windows
      |- chart_of_accounts  SeedAccount rows for a fresh database
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Every permission a role may be granted.  Facade actions map onto these.
PERMISSION_TAXONOMY: frozenset[str] = frozenset({
    "accounts.read",
    "accounts.manage",
    "ledger.read",
    "ledger.post",
    "ledger.reverse",
    "funding.read",
    "funding.record",
    "allocation.create",
    "expense.record",
    "budget.read",
    "projects.read",
    "projects.manage",
    "reports.read",
    "periods.manage",
})


@dataclass(frozen=True)
class EngineConfig:
    """Database connection settings passed to ``init_engine_from_url``."""

    database_url: str = "sqlite:///fund_ledger.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class PostingAccounts:
    """Account codes used for funding, allocation and expense postings."""

    donation_income_code: str = "4000"
    unallocated_funds_code: str = "3100"
    allocated_funds_code: str = "3200"
    default_expense_code: str = "5000"


@dataclass(frozen=True)
class RoleDef:
    """Single role definition: permissions and optional inheritance."""

    name: str
    permissions: tuple[str, ...]
    inherits: tuple[str, ...] = ()


@dataclass(frozen=True)
class RbacConfig:
    roles: tuple[RoleDef, ...] = ()

    def role_names(self) -> tuple[str, ...]:
        return tuple(r.name for r in self.roles)


@dataclass(frozen=True)
class ReportingDefaults:
    fiscal_year_start_month: int = 1
    carry_opening_balance: bool = False


@dataclass(frozen=True)
class SeedAccount:
    """An account created by ``FundLedgerAPI.seed_chart_of_accounts``."""

    code: str
    name: str
    account_type: str
    parent_code: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class FundLedgerConfig:
    """The whole runtime configuration; ``checksum`` identifies its source."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    posting_accounts: PostingAccounts = field(default_factory=PostingAccounts)
    rbac: RbacConfig = field(default_factory=RbacConfig)
    reporting: ReportingDefaults = field(default_factory=ReportingDefaults)
    chart_of_accounts: tuple[SeedAccount, ...] = ()
    checksum: str = ""
