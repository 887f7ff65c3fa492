"""
DTOs -- immutable data passed between the ledger store and its readers.

Services accept LineSpec for postings and return LedgerLine rows from the
selector; the balance engine consumes LedgerLine and AccountInfo only and
never sees an ORM object.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from fund_kernel.domain.references import Reference
from fund_kernel.models.account import AccountType
from fund_kernel.models.transaction import EntryType

if TYPE_CHECKING:
    from fund_kernel.models.account import Account as AccountModel


@dataclass(frozen=True)
class LineSpec:
    """
    One requested entry of a transaction to post.

    ``side`` may be an EntryType or its string value; ``amount`` anything
    parse_money() accepts.  Validation happens in LedgerService so errors can
    name the offending line.
    """

    account_id: UUID
    side: EntryType | str
    amount: Decimal | int | str
    notes: str | None = None


@dataclass(frozen=True)
class AccountInfo:
    """
    Snapshot of account metadata needed for classification.

    The bridge between the Account ORM model and pure report functions.
    """

    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    parent_id: UUID | None = None
    description: str | None = None

    @property
    def is_debit_normal(self) -> bool:
        return self.account_type.is_debit_normal

    @classmethod
    def from_model(cls, account: AccountModel) -> AccountInfo:
        return cls(
            account_id=account.id,
            code=account.code,
            name=account.name,
            account_type=account.account_type,
            parent_id=account.parent_id,
            description=account.description,
        )


@dataclass(frozen=True)
class LedgerLine:
    """
    A transaction entry joined with its transaction and account.

    Ledger order is (transaction_date, seq, line_seq).
    """

    transaction_id: UUID
    seq: int
    line_seq: int
    transaction_date: date
    description: str
    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    entry_type: EntryType
    amount: Decimal
    notes: str | None = None
    reference: Reference | None = None
    reversal_of_id: UUID | None = None

    @property
    def debit_amount(self) -> Decimal:
        return self.amount if self.entry_type == EntryType.DEBIT else Decimal("0.00")

    @property
    def credit_amount(self) -> Decimal:
        return self.amount if self.entry_type == EntryType.CREDIT else Decimal("0.00")

    @property
    def sort_key(self) -> tuple[date, int, int]:
        return (self.transaction_date, self.seq, self.line_seq)
