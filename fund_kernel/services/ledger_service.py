"""
LedgerService -- the append-only ledger store.

Responsibility:
    Validates and persists balanced transactions, assigns their sequence
    number, and posts reversals.  Reads go through LedgerSelector.

    The LedgerService does NOT:
    - decide which accounts a business event hits (the budget tracker does)
    - compute balances (the balance engine does)

Invariants enforced:
    - Every transaction has at least two entries, every amount is a positive
      two-place Decimal, every account exists, and sum(debits) equals
      sum(credits) exactly.
    - Persistence is all-or-nothing: the header, its entries and the
      sequence increment are written inside one savepoint.
    - A transaction is reversed at most once, and a reversal is never
      itself reversed.
    - Only post_mirrored() writes a reference; manual postings never carry
      one, so budget records stay the sole source of referenced postings.

Failure modes:
    - InvalidEntryError / InvalidAmountError / ValidationError on bad input.
    - AccountNotFoundError for an unknown account id.
    - UnbalancedTransactionError when debits != credits.
    - TransactionNotFoundError, TransactionAlreadyReversedError,
      ReversalNotAllowedError from reverse_transaction().
"""

from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from fund_kernel.db.types import ZERO
from fund_kernel.domain.dtos import LedgerLine, LineSpec
from fund_kernel.domain.references import Reference, to_columns
from fund_kernel.domain.values import parse_date, parse_money, require_text
from fund_kernel.exceptions import (
    AccountNotFoundError,
    InvalidEntryError,
    ReversalNotAllowedError,
    TransactionAlreadyReversedError,
    TransactionNotFoundError,
    UnbalancedTransactionError,
    ValidationError,
)
from fund_kernel.logging_config import LogContext, get_logger
from fund_kernel.models.account import Account
from fund_kernel.models.transaction import EntryType, Transaction, TransactionEntry
from fund_kernel.selectors.ledger_selector import LedgerSelector
from fund_kernel.services.base import BaseService
from fund_kernel.services.sequence_service import SequenceService

logger = get_logger("services.ledger")


def _coerce_side(side: EntryType | str, index: int) -> EntryType:
    if isinstance(side, EntryType):
        return side
    if isinstance(side, str) and side.strip().lower() in {m.value for m in EntryType}:
        return EntryType(side.strip().lower())
    raise InvalidEntryError(f"entry_type must be 'debit' or 'credit', got {side!r}", index)


class LedgerService(BaseService[Transaction]):
    """Posting and reading of ledger transactions."""

    def __init__(self, session):
        super().__init__(session)
        self._sequences = SequenceService(session)
        self._selector = LedgerSelector(session)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def post_transaction(
        self,
        transaction_date: date | str,
        description: str,
        entries: Sequence[LineSpec],
        actor_id: UUID,
    ) -> Transaction:
        """
        Validate and persist a balanced manual transaction.

        Manual postings never carry a reference; see ``post_mirrored``.

        Preconditions:
            ``entries`` has at least two LineSpec items.
        Postconditions:
            The returned Transaction and its entries are flushed with a
            fresh ``seq``; on any error nothing has been written.
        """
        return self._post(transaction_date, description, entries, actor_id, None, None)

    def post_mirrored(
        self,
        transaction_date: date | str,
        description: str,
        entries: Sequence[LineSpec],
        actor_id: UUID,
        reference: Reference,
    ) -> Transaction:
        """
        Post the ledger side of a funding, allocation or expense record.

        Only the budget tracker calls this, in the same savepoint that writes
        the record.  Mirrored postings cannot be reversed here.

        Raises:
            ValidationError: ``reference`` is missing.
        """
        if reference is None:
            raise ValidationError("a mirrored posting needs a reference", "reference")
        return self._post(transaction_date, description, entries, actor_id, reference, None)

    def reverse_transaction(
        self,
        transaction_id: UUID,
        reversal_date: date | str,
        actor_id: UUID,
        reason: str | None = None,
    ) -> Transaction:
        """
        Post the mirror image of a transaction.

        Only transactions that do not mirror a funding, allocation or expense
        record may be reversed here; those records own their postings.
        """
        original = self._get(Transaction, transaction_id, TransactionNotFoundError)

        if original.reversal_of_id is not None:
            raise ReversalNotAllowedError(str(transaction_id), "it is itself a reversal")
        if original.reference_type is not None:
            raise ReversalNotAllowedError(
                str(transaction_id),
                f"it mirrors a {original.reference_type.value} record",
            )

        existing = self.session.execute(
            select(Transaction.id).where(Transaction.reversal_of_id == transaction_id)
        ).scalar_one_or_none()
        if existing is not None:
            raise TransactionAlreadyReversedError(str(transaction_id), str(existing))

        flipped = [
            LineSpec(
                account_id=e.account_id,
                side=e.entry_type.flipped(),
                amount=e.amount,
                notes=e.notes,
            )
            for e in original.entries
        ]
        description = f"Reversal of transaction #{original.seq}"
        if reason:
            description = f"{description}: {reason}"

        try:
            reversal = self._post(
                reversal_date, description, flipped, actor_id, None, original.id
            )
        except IntegrityError:
            raise TransactionAlreadyReversedError(str(transaction_id)) from None

        logger.info(
            "transaction_reversed",
            extra={
                "transaction_id": str(transaction_id),
                "reversal_id": str(reversal.id),
            },
        )
        return reversal

    def _post(
        self,
        transaction_date,
        description,
        entries: Sequence[LineSpec],
        actor_id: UUID,
        reference: Reference | None,
        reversal_of_id: UUID | None,
    ) -> Transaction:
        tx_date = parse_date(transaction_date, "transaction_date")
        description = require_text(description, "description", max_length=500)

        if len(entries) < 2:
            raise InvalidEntryError("a transaction needs at least two entries")

        validated: list[tuple[UUID, EntryType, Decimal, str | None]] = []
        for index, spec in enumerate(entries):
            side = _coerce_side(spec.side, index)
            amount = parse_money(spec.amount, f"entries[{index}].amount")
            if spec.account_id is None:
                raise InvalidEntryError("account_id is required", index)
            validated.append((spec.account_id, side, amount, spec.notes))

        self._require_accounts({account_id for account_id, _, _, _ in validated})

        debits = sum((a for _, s, a, _ in validated if s == EntryType.DEBIT), ZERO)
        credits = sum((a for _, s, a, _ in validated if s == EntryType.CREDIT), ZERO)
        if debits != credits:
            logger.warning(
                "unbalanced_transaction_rejected",
                extra={"debits": debits, "credits": credits},
            )
            raise UnbalancedTransactionError(str(debits), str(credits))

        reference_type, reference_id = to_columns(reference)

        with self.session.begin_nested():
            seq = self._sequences.next_value(SequenceService.TRANSACTION)
            transaction = Transaction(
                seq=seq,
                transaction_date=tx_date,
                description=description,
                reference_type=reference_type,
                reference_id=reference_id,
                reversal_of_id=reversal_of_id,
                created_by_id=actor_id,
            )
            transaction.entries = [
                TransactionEntry(
                    account_id=account_id,
                    entry_type=side,
                    amount=amount,
                    notes=notes,
                    line_seq=line_seq,
                    created_by_id=actor_id,
                )
                for line_seq, (account_id, side, amount, notes) in enumerate(validated)
            ]
            self.session.add(transaction)
            self.session.flush()

        with LogContext.bind(transaction_id=str(transaction.id)):
            logger.info(
                "transaction_posted",
                extra={
                    "seq": seq,
                    "transaction_date": tx_date,
                    "entry_count": len(validated),
                    "total": debits,
                    "reference_type": reference_type,
                },
            )
        return transaction

    def _require_accounts(self, account_ids: set[UUID]) -> None:
        found = set(
            self.session.execute(
                select(Account.id).where(Account.id.in_(account_ids))
            ).scalars()
        )
        missing = account_ids - found
        if missing:
            raise AccountNotFoundError(str(sorted(missing, key=str)[0]))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_transaction(self, transaction_id: UUID) -> Transaction:
        return self._get(Transaction, transaction_id, TransactionNotFoundError)

    def get_entries(
        self,
        account_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        reference_ids: Iterable[UUID] | None = None,
    ) -> list[LedgerLine]:
        """Entries joined with transaction and account, in ledger order."""
        return self._selector.get_entries(
            account_id=account_id,
            start_date=start_date,
            end_date=end_date,
            reference_ids=reference_ids,
        )

    def total_debits_credits(self, as_of_date: date | None = None) -> tuple[Decimal, Decimal]:
        return self._selector.total_debits_credits(as_of_date)
