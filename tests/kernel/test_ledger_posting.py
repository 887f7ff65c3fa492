"""
Posting balanced transactions to the ledger.

Covers the double-entry rule, entry validation, sequence assignment and
the all-or-nothing guarantee: a rejected transaction leaves every balance
exactly as it was.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from fund_kernel.domain.dtos import LineSpec
from fund_kernel.domain.references import FundingRef
from fund_kernel.exceptions import (
    AccountNotFoundError,
    InvalidAmountError,
    InvalidEntryError,
    UnbalancedTransactionError,
    ValidationError,
)
from fund_kernel.models.transaction import EntryType, ReferenceType, Transaction
from fund_kernel.services.sequence_service import SequenceService


def _entries(*triples):
    return [LineSpec(account.id, side, Decimal(amount)) for account, side, amount in triples]


class TestBalancedPosting:

    def test_post_two_line_transaction(self, ledger_service, standard_accounts, actor_id):
        cash, income = standard_accounts["1000"], standard_accounts["4000"]

        tx = ledger_service.post_transaction(
            transaction_date=date(2024, 1, 10),
            description="Gift",
            entries=_entries(
                (cash, EntryType.DEBIT, "500.00"),
                (income, EntryType.CREDIT, "500.00"),
            ),
            actor_id=actor_id,
        )

        assert tx.seq >= 1
        assert tx.is_balanced
        assert tx.total_debits == Decimal("500.00")
        assert [e.line_seq for e in tx.entries] == [0, 1]
        assert tx.reference_type is None

    def test_multi_line_transaction(self, ledger_service, standard_accounts, actor_id):
        tx = ledger_service.post_transaction(
            transaction_date="2024-02-01",
            description="Split gift",
            entries=_entries(
                (standard_accounts["1000"], EntryType.DEBIT, "300.00"),
                (standard_accounts["1100"], EntryType.DEBIT, "200.00"),
                (standard_accounts["4000"], EntryType.CREDIT, "500.00"),
            ),
            actor_id=actor_id,
        )
        assert len(tx.entries) == 3
        assert tx.transaction_date == date(2024, 2, 1)

    def test_string_sides_accepted(self, ledger_service, standard_accounts, actor_id):
        tx = ledger_service.post_transaction(
            transaction_date=date(2024, 1, 10),
            description="Gift",
            entries=[
                LineSpec(standard_accounts["1000"].id, "Debit", "75.25"),
                LineSpec(standard_accounts["4000"].id, "credit", "75.25"),
            ],
            actor_id=actor_id,
        )
        assert [e.entry_type for e in tx.entries] == [EntryType.DEBIT, EntryType.CREDIT]
        assert tx.entries[0].amount == Decimal("75.25")

    def test_sequence_is_strictly_increasing(self, post_simple, standard_accounts):
        cash, income = standard_accounts["1000"], standard_accounts["4000"]
        seqs = [post_simple(cash, income, "10.00").seq for _ in range(3)]
        assert seqs == sorted(seqs)
        assert len(set(seqs)) == 3

    def test_amount_round_trips_exactly(self, session, post_simple, standard_accounts):
        tx = post_simple(standard_accounts["1000"], standard_accounts["4000"], "1234567.89")
        session.expire_all()

        reloaded = session.get(Transaction, tx.id)
        assert reloaded.entries[0].amount == Decimal("1234567.89")


class TestRejectedPosting:

    def test_unbalanced_rejected_and_nothing_written(
        self, ledger_service, standard_accounts, actor_id
    ):
        cash, income = standard_accounts["1000"], standard_accounts["4000"]
        before = ledger_service.get_entries(account_id=cash.id)

        with pytest.raises(UnbalancedTransactionError) as exc_info:
            ledger_service.post_transaction(
                transaction_date=date(2024, 1, 10),
                description="Bad",
                entries=_entries(
                    (cash, EntryType.DEBIT, "500.00"),
                    (income, EntryType.CREDIT, "400.00"),
                ),
                actor_id=actor_id,
            )

        assert exc_info.value.debits == "500.00"
        assert exc_info.value.credits == "400.00"
        assert ledger_service.get_entries(account_id=cash.id) == before
        assert ledger_service.total_debits_credits() == (Decimal("0.00"), Decimal("0.00"))

    def test_single_entry_rejected(self, ledger_service, standard_accounts, actor_id):
        with pytest.raises(InvalidEntryError):
            ledger_service.post_transaction(
                transaction_date=date(2024, 1, 10),
                description="Lonely",
                entries=_entries((standard_accounts["1000"], EntryType.DEBIT, "10.00")),
                actor_id=actor_id,
            )

    @pytest.mark.parametrize("amount", ["0", "-5.00", "10.001", "abc", 1.5])
    def test_invalid_amount_rejected(self, ledger_service, standard_accounts, actor_id, amount):
        with pytest.raises(InvalidAmountError):
            ledger_service.post_transaction(
                transaction_date=date(2024, 1, 10),
                description="Bad amount",
                entries=[
                    LineSpec(standard_accounts["1000"].id, EntryType.DEBIT, amount),
                    LineSpec(standard_accounts["4000"].id, EntryType.CREDIT, amount),
                ],
                actor_id=actor_id,
            )

    def test_invalid_side_names_line(self, ledger_service, standard_accounts, actor_id):
        with pytest.raises(InvalidEntryError) as exc_info:
            ledger_service.post_transaction(
                transaction_date=date(2024, 1, 10),
                description="Sideways",
                entries=[
                    LineSpec(standard_accounts["1000"].id, EntryType.DEBIT, "10.00"),
                    LineSpec(standard_accounts["4000"].id, "sideways", "10.00"),
                ],
                actor_id=actor_id,
            )
        assert exc_info.value.line_index == 1

    def test_unknown_account_rejected(self, ledger_service, standard_accounts, actor_id):
        with pytest.raises(AccountNotFoundError):
            ledger_service.post_transaction(
                transaction_date=date(2024, 1, 10),
                description="Ghost",
                entries=[
                    LineSpec(standard_accounts["1000"].id, EntryType.DEBIT, "10.00"),
                    LineSpec(uuid4(), EntryType.CREDIT, "10.00"),
                ],
                actor_id=actor_id,
            )

    def test_blank_description_rejected(self, ledger_service, standard_accounts, actor_id):
        with pytest.raises(ValidationError):
            ledger_service.post_transaction(
                transaction_date=date(2024, 1, 10),
                description="   ",
                entries=_entries(
                    (standard_accounts["1000"], EntryType.DEBIT, "10.00"),
                    (standard_accounts["4000"], EntryType.CREDIT, "10.00"),
                ),
                actor_id=actor_id,
            )

    def test_mirrored_posting_requires_reference(
        self, ledger_service, standard_accounts, actor_id
    ):
        with pytest.raises(ValidationError) as exc_info:
            ledger_service.post_mirrored(
                transaction_date=date(2024, 1, 10),
                description="Funding received",
                entries=_entries(
                    (standard_accounts["1100"], EntryType.DEBIT, "10.00"),
                    (standard_accounts["4000"], EntryType.CREDIT, "10.00"),
                ),
                actor_id=actor_id,
                reference=None,
            )
        assert exc_info.value.field == "reference"

    def test_rejection_does_not_consume_sequence(
        self, session, ledger_service, standard_accounts, post_simple, actor_id
    ):
        cash, income = standard_accounts["1000"], standard_accounts["4000"]
        first = post_simple(cash, income, "10.00")
        with pytest.raises(UnbalancedTransactionError):
            ledger_service.post_transaction(
                transaction_date=date(2024, 1, 10),
                description="Bad",
                entries=_entries(
                    (cash, EntryType.DEBIT, "10.00"),
                    (income, EntryType.CREDIT, "9.99"),
                ),
                actor_id=actor_id,
            )
        second = post_simple(cash, income, "10.00")
        assert second.seq == first.seq + 1
        assert SequenceService(session).current_value(SequenceService.TRANSACTION) == second.seq


class TestLedgerReads:

    def test_entries_in_ledger_order(self, ledger_service, post_simple, standard_accounts):
        cash, income = standard_accounts["1000"], standard_accounts["4000"]
        post_simple(cash, income, "30.00", transaction_date=date(2024, 3, 3))
        post_simple(cash, income, "10.00", transaction_date=date(2024, 3, 1))
        post_simple(cash, income, "20.00", transaction_date=date(2024, 3, 1))

        lines = ledger_service.get_entries(account_id=cash.id)
        assert [line.amount for line in lines] == [
            Decimal("10.00"), Decimal("20.00"), Decimal("30.00"),
        ]
        assert [line.sort_key for line in lines] == sorted(line.sort_key for line in lines)

    def test_date_window(self, ledger_service, post_simple, standard_accounts):
        cash, income = standard_accounts["1000"], standard_accounts["4000"]
        post_simple(cash, income, "10.00", transaction_date=date(2024, 1, 31))
        post_simple(cash, income, "20.00", transaction_date=date(2024, 2, 1))
        post_simple(cash, income, "30.00", transaction_date=date(2024, 2, 29))
        post_simple(cash, income, "40.00", transaction_date=date(2024, 3, 1))

        lines = ledger_service.get_entries(
            account_id=cash.id, start_date=date(2024, 2, 1), end_date=date(2024, 2, 29),
        )
        assert [line.amount for line in lines] == [Decimal("20.00"), Decimal("30.00")]

    def test_only_mirrored_postings_carry_references(
        self, ledger_service, post_simple, standard_accounts, actor_id
    ):
        manual = post_simple(standard_accounts["1000"], standard_accounts["4000"], "10.00")
        funding_id = uuid4()
        mirrored = ledger_service.post_mirrored(
            transaction_date=date(2024, 1, 10),
            description="Funding received",
            entries=_entries(
                (standard_accounts["1100"], EntryType.DEBIT, "25.00"),
                (standard_accounts["4000"], EntryType.CREDIT, "25.00"),
            ),
            actor_id=actor_id,
            reference=FundingRef(funding_id),
        )

        assert (manual.reference_type, manual.reference_id) == (None, None)
        assert mirrored.reference_type == ReferenceType.FUNDING
        assert mirrored.reference_id == funding_id
        lines = ledger_service.get_entries(reference_ids=[funding_id])
        assert {line.transaction_id for line in lines} == {mirrored.id}

    def test_empty_reference_filter_matches_nothing(
        self, ledger_service, post_simple, standard_accounts
    ):
        post_simple(standard_accounts["1000"], standard_accounts["4000"], "10.00")
        assert ledger_service.get_entries(reference_ids=[]) == []

    def test_global_debits_equal_credits(self, ledger_service, post_simple, standard_accounts):
        post_simple(standard_accounts["1000"], standard_accounts["4000"], "10.00")
        post_simple(standard_accounts["5000"], standard_accounts["1000"], "4.50")

        debits, credits = ledger_service.total_debits_credits()
        assert debits == credits == Decimal("14.50")
