"""
Module: fund_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: entry listing in ledger order
    and the global balance check.  The ledger is a derived view over
    TransactionEntry rows; no balance is stored anywhere.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/dtos and selectors/base.py.

Failure modes:
    - Returns empty results or zero totals when nothing is posted.
"""

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select

from fund_kernel.db.types import ZERO
from fund_kernel.domain.dtos import LedgerLine
from fund_kernel.domain.references import from_columns
from fund_kernel.models.account import Account
from fund_kernel.models.transaction import EntryType, Transaction, TransactionEntry
from fund_kernel.selectors.base import BaseSelector


def _debit_sum():
    return func.sum(
        case(
            (TransactionEntry.entry_type == EntryType.DEBIT, TransactionEntry.amount),
            else_=0,
        )
    )


def _credit_sum():
    return func.sum(
        case(
            (TransactionEntry.entry_type == EntryType.CREDIT, TransactionEntry.amount),
            else_=0,
        )
    )


class LedgerSelector(BaseSelector[TransactionEntry]):
    """
    Selector for ledger queries.

    Contract:
        Every query reads TransactionEntry rows joined to their Transaction
        and Account.  Ordering is (transaction_date, seq, line_seq).
    """

    def get_entries(
        self,
        account_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        reference_ids: Iterable[UUID] | None = None,
    ) -> list[LedgerLine]:
        """
        Entries in ledger order, optionally filtered.

        Args:
            account_id: Only entries on this account.
            start_date: Only transactions dated on or after this day.
            end_date: Only transactions dated on or before this day.
            reference_ids: Only transactions whose reference_id is in this
                collection.  An empty collection matches nothing.
        """
        query = (
            select(
                TransactionEntry.transaction_id,
                Transaction.seq,
                TransactionEntry.line_seq,
                Transaction.transaction_date,
                Transaction.description,
                TransactionEntry.account_id,
                Account.code.label("account_code"),
                Account.name.label("account_name"),
                Account.account_type,
                TransactionEntry.entry_type,
                TransactionEntry.amount,
                TransactionEntry.notes,
                Transaction.reference_type,
                Transaction.reference_id,
                Transaction.reversal_of_id,
            )
            .join(Transaction, TransactionEntry.transaction_id == Transaction.id)
            .join(Account, TransactionEntry.account_id == Account.id)
        )

        if account_id is not None:
            query = query.where(TransactionEntry.account_id == account_id)
        if start_date is not None:
            query = query.where(Transaction.transaction_date >= start_date)
        if end_date is not None:
            query = query.where(Transaction.transaction_date <= end_date)
        if reference_ids is not None:
            ids = list(reference_ids)
            if not ids:
                return []
            query = query.where(Transaction.reference_id.in_(ids))

        query = query.order_by(
            Transaction.transaction_date,
            Transaction.seq,
            TransactionEntry.line_seq,
        )

        return [
            LedgerLine(
                transaction_id=row.transaction_id,
                seq=row.seq,
                line_seq=row.line_seq,
                transaction_date=row.transaction_date,
                description=row.description,
                account_id=row.account_id,
                account_code=row.account_code,
                account_name=row.account_name,
                account_type=row.account_type,
                entry_type=row.entry_type,
                amount=row.amount,
                notes=row.notes,
                reference=from_columns(row.reference_type, row.reference_id),
                reversal_of_id=row.reversal_of_id,
            )
            for row in self.session.execute(query).all()
        ]

    def total_debits_credits(self, as_of_date: date | None = None) -> tuple[Decimal, Decimal]:
        """
        Total debits and credits across the whole ledger.

        For a consistent ledger the two are equal.
        """
        query = select(
            _debit_sum().label("debit_total"),
            _credit_sum().label("credit_total"),
        ).select_from(TransactionEntry)
        if as_of_date is not None:
            query = query.join(
                Transaction, TransactionEntry.transaction_id == Transaction.id
            ).where(Transaction.transaction_date <= as_of_date)

        result = self.session.execute(query).one()
        return (result.debit_total or ZERO, result.credit_total or ZERO)
