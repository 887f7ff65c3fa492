"""
Module: fund_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every transaction entry.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - code is globally unique (uq_account_code).
    - code, account_type and parent_id are immutable once any entry
      references the account (ORM listener in db/immutability.py).

Failure modes:
    - AccountNotFoundError when a posting references a non-existent account.
    - AccountReferencedError when deletion is attempted on a referenced account.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fund_kernel.db.base import TrackedBase, UUIDString


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"
    INCOME = "Income"
    EXPENSE = "Expense"

    @property
    def is_debit_normal(self) -> bool:
        """Asset and Expense accounts grow on the debit side."""
        return self in (AccountType.ASSET, AccountType.EXPENSE)


class Account(TrackedBase):
    """
    Chart of accounts entry -- one node of the account hierarchy.

    Guarantees:
        - code is unique, non-empty, and sorts lexicographically.
        - account_type is one of Asset, Liability, Equity, Income, Expense.
        - parent_id, when set, names another account.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
        Index("idx_account_parent", "parent_id"),
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(
            AccountType,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        return self.account_type.is_debit_normal
