"""
AccountRegistry -- the chart of accounts.

Responsibility:
    Creates, reads, renames and removes accounts.  Structural fields (code,
    type, parent) are frozen once any transaction entry references the
    account; name and description stay editable.

Architecture position:
    Kernel > Services.  Flushes inside the caller's transaction.

Failure modes:
    - ValidationError on an empty code or name, or an unknown account type.
    - DuplicateAccountCodeError when the code is taken (including a
      concurrent insert losing the unique-constraint race).
    - AccountNotFoundError for an unknown account or parent id.
    - AccountReferencedError for a type change or delete of a used account.
"""

from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError

from fund_kernel.domain.chart import ChartOfAccounts
from fund_kernel.domain.dtos import AccountInfo
from fund_kernel.domain.values import require_text
from fund_kernel.exceptions import (
    AccountNotFoundError,
    AccountReferencedError,
    DuplicateAccountCodeError,
    ValidationError,
)
from fund_kernel.logging_config import get_logger
from fund_kernel.models.account import Account, AccountType
from fund_kernel.models.transaction import TransactionEntry
from fund_kernel.services.base import BaseService

logger = get_logger("services.account_registry")


def coerce_account_type(value: AccountType | str) -> AccountType:
    """Accept an AccountType or its value ("Asset", ...), case-insensitively."""
    if isinstance(value, AccountType):
        return value
    if isinstance(value, str):
        for member in AccountType:
            if member.value.lower() == value.strip().lower():
                return member
    raise ValidationError(f"Unknown account type: {value!r}", "account_type")


class AccountRegistry(BaseService[Account]):
    """Chart-of-accounts operations over a caller-owned session."""

    def create_account(
        self,
        code: str,
        name: str,
        account_type: AccountType | str,
        actor_id: UUID,
        parent_id: UUID | None = None,
        description: str | None = None,
    ) -> Account:
        """
        Create an account.

        Raises:
            ValidationError, DuplicateAccountCodeError, AccountNotFoundError
        """
        code = require_text(code, "code", max_length=50)
        name = require_text(name, "name", max_length=255)
        acct_type = coerce_account_type(account_type)

        if parent_id is not None:
            self._get(Account, parent_id, AccountNotFoundError)

        if self.session.execute(
            select(exists().where(Account.code == code))
        ).scalar():
            raise DuplicateAccountCodeError(code)

        account = Account(
            code=code,
            name=name,
            account_type=acct_type,
            parent_id=parent_id,
            description=description,
            created_by_id=actor_id,
        )
        try:
            with self.session.begin_nested():
                self.session.add(account)
                self.session.flush()
        except IntegrityError:
            raise DuplicateAccountCodeError(code) from None

        logger.info(
            "account_created",
            extra={
                "account_id": str(account.id),
                "account_code": code,
                "account_type": acct_type.value,
            },
        )
        return account

    def get_account(self, account_id: UUID) -> Account:
        return self._get(Account, account_id, AccountNotFoundError)

    def get_account_by_code(self, code: str) -> Account:
        account = self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def list_accounts(self, account_type: AccountType | str | None = None) -> list[Account]:
        """All accounts, optionally of one type, sorted by code."""
        query = select(Account).order_by(Account.code)
        if account_type is not None:
            query = query.where(Account.account_type == coerce_account_type(account_type))
        return list(self.session.execute(query).scalars().all())

    def is_referenced(self, account_id: UUID) -> bool:
        """True when any transaction entry posts to the account."""
        return bool(
            self.session.execute(
                select(exists().where(TransactionEntry.account_id == account_id))
            ).scalar()
        )

    def update_account(
        self,
        account_id: UUID,
        actor_id: UUID,
        name: str | None = None,
        description: str | None = None,
        account_type: AccountType | str | None = None,
    ) -> Account:
        """
        Rename, re-describe or (while unused) re-type an account.

        Raises:
            AccountReferencedError: type change on an account with entries.
        """
        account = self.get_account(account_id)

        if account_type is not None:
            new_type = coerce_account_type(account_type)
            if new_type != account.account_type:
                if self.is_referenced(account_id):
                    raise AccountReferencedError(
                        str(account_id), "type cannot change once entries are posted"
                    )
                account.account_type = new_type
        if name is not None:
            account.name = require_text(name, "name", max_length=255)
        if description is not None:
            account.description = description

        account.updated_by_id = actor_id
        self.session.flush()
        logger.info("account_updated", extra={"account_id": str(account_id)})
        return account

    def delete_account(self, account_id: UUID) -> None:
        """
        Delete an account no entry and no child account references.

        Raises:
            AccountReferencedError
        """
        account = self.get_account(account_id)
        if self.is_referenced(account_id):
            raise AccountReferencedError(str(account_id))
        if self.session.execute(
            select(exists().where(Account.parent_id == account_id))
        ).scalar():
            raise AccountReferencedError(str(account_id), "account has child accounts")

        with self.session.begin_nested():
            self.session.delete(account)
            self.session.flush()
        logger.info("account_deleted", extra={"account_id": str(account_id)})

    def chart(self) -> ChartOfAccounts:
        """The whole chart as an id-indexed arena."""
        return ChartOfAccounts(AccountInfo.from_model(a) for a in self.list_accounts())
