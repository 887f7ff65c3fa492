"""Domain models for the fund kernel."""

from fund_kernel.models.account import Account, AccountType
from fund_kernel.models.transaction import (
    EntryType,
    ReferenceType,
    Transaction,
    TransactionEntry,
)
from fund_kernel.models.sequence import SequenceCounter

__all__ = [
    "Account",
    "AccountType",
    "Transaction",
    "TransactionEntry",
    "EntryType",
    "ReferenceType",
    "SequenceCounter",
]
