"""
Module: fund_kernel.models.transaction
Responsibility: ORM persistence for ledger transactions and their entries --
    the single source of financial truth.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - seq is unique and strictly increasing in posting order.
    - Sum of debits == sum of credits per transaction (checked by the
      LedgerService before flush; is_balanced is the read-side check).
    - Transactions and entries are append-only (ORM listeners in
      db/immutability.py block UPDATE and DELETE).
    - At most one reversal per transaction (UNIQUE on reversal_of_id).
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fund_kernel.db.base import TrackedBase, UUIDString
from fund_kernel.db.types import ZERO, Money

if TYPE_CHECKING:
    from fund_kernel.models.account import Account


def _enum_column(enum_cls: type[Enum]) -> SAEnum:
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda e: [m.value for m in e],
    )


class EntryType(str, Enum):
    """Which side of the transaction an entry is on."""

    DEBIT = "debit"
    CREDIT = "credit"

    def flipped(self) -> "EntryType":
        return EntryType.CREDIT if self is EntryType.DEBIT else EntryType.DEBIT


class ReferenceType(str, Enum):
    """Kind of business record a transaction mirrors."""

    FUNDING = "funding"
    ALLOCATION = "allocation"
    EXPENSE = "expense"


class Transaction(TrackedBase):
    """
    Ledger transaction header.

    Contract:
        Persisted together with its entries in one flush or not at all.
        Ordering in the ledger is (transaction_date, seq).
    """

    __tablename__ = "transactions"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_transaction_seq"),
        UniqueConstraint("reversal_of_id", name="uq_transaction_reversal_of"),
        Index("idx_transaction_date", "transaction_date"),
        Index("idx_transaction_reference", "reference_type", "reference_id"),
    )

    seq: Mapped[int] = mapped_column(nullable=False)

    transaction_date: Mapped[date] = mapped_column(nullable=False)

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    reference_type: Mapped[ReferenceType | None] = mapped_column(
        _enum_column(ReferenceType),
        nullable=True,
    )

    reference_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        nullable=True,
    )

    entries: Mapped[list["TransactionEntry"]] = relationship(
        back_populates="transaction",
        lazy="selectin",
        order_by="TransactionEntry.line_seq",
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.id} seq={self.seq} date={self.transaction_date}>"

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (e.amount for e in self.entries if e.entry_type == EntryType.DEBIT),
            ZERO,
        )

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (e.amount for e in self.entries if e.entry_type == EntryType.CREDIT),
            ZERO,
        )

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


class TransactionEntry(TrackedBase):
    """
    One debit or credit line of a transaction.

    amount is always positive; entry_type carries the side.
    """

    __tablename__ = "transaction_entries"

    __table_args__ = (
        Index("idx_entry_transaction", "transaction_id"),
        Index("idx_entry_account", "account_id"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    entry_type: Mapped[EntryType] = mapped_column(
        _enum_column(EntryType),
        nullable=False,
    )

    amount: Mapped[Money] = mapped_column(nullable=False)

    notes: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # Position within the transaction, for deterministic ordering
    line_seq: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    transaction: Mapped["Transaction"] = relationship(
        back_populates="entries",
    )

    account: Mapped["Account"] = relationship()
