"""
ORM-level immutability enforcement for posted history.

Posted transactions cannot be modified, only reversed with a new
transaction that leaves a visible trail.  SQLAlchemy fires events before
UPDATE/DELETE reaches the database; the listeners here check the rules and
raise before any SQL is sent:

    session.flush()
         |
         v
    [before_flush]   --> account delete check -----> AccountReferencedError
         |
    [before_update]  --> _check_*_immutability() --> ImmutabilityViolationError
         |
    [before_delete]  --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Entity              | When Immutable
--------------------|------------------------------------------------
Transaction         | ALWAYS (append-only)
TransactionEntry    | ALWAYS (append-only)
Account             | code/account_type/parent_id once entries reference it;
                    | delete while entries or child accounts reference it

updated_at and updated_by_id are audit metadata and may always change.

Module-owned records (fundings, allocations, expenses) register their own
checks through ``register_update_guard``/``register_delete_guard`` so that
the kernel never imports module models.

Usage:

    from fund_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup; idempotent
"""

from collections.abc import Iterable

from sqlalchemy import event, exists, inspect, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from fund_kernel.exceptions import AccountReferencedError, ImmutabilityViolationError
from fund_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

ACCOUNT_STRUCTURAL_FIELDS = ("code", "account_type", "parent_id")


def changed_fields(target, fields: Iterable[str] | None = None) -> list[str]:
    """Names of mapped columns with pending changes, audit fields excluded."""
    names = fields if fields is not None else [
        attr.key for attr in inspect(type(target)).column_attrs
    ]
    return [
        name
        for name in names
        if name not in AUDIT_FIELDS and get_history(target, name).has_changes()
    ]


def _blocked(entity_type: str, target, operation: str, reason: str, fields=None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "fields": fields,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _account_is_referenced(connection, account_id) -> bool:
    from fund_kernel.models.transaction import TransactionEntry

    return bool(
        connection.execute(
            select(exists().where(TransactionEntry.account_id == account_id))
        ).scalar()
    )


def _check_transaction_immutability(mapper, connection, target):
    fields = changed_fields(target)
    if fields:
        raise _blocked(
            "Transaction", target, "UPDATE",
            "Posted transactions are immutable; post a reversal instead",
            fields,
        )


def _check_transaction_delete(mapper, connection, target):
    raise _blocked(
        "Transaction", target, "DELETE",
        "Posted transactions cannot be deleted",
    )


def _check_entry_immutability(mapper, connection, target):
    fields = changed_fields(target)
    if fields:
        raise _blocked(
            "TransactionEntry", target, "UPDATE",
            "Transaction entries are immutable",
            fields,
        )


def _check_entry_delete(mapper, connection, target):
    raise _blocked(
        "TransactionEntry", target, "DELETE",
        "Transaction entries cannot be deleted",
    )


def _check_account_structural_immutability(mapper, connection, target):
    """
    Block changes to code, type or parent of an account with posted entries.

    name and description remain editable.
    """
    fields = changed_fields(target, ACCOUNT_STRUCTURAL_FIELDS)
    if not fields:
        return
    if _account_is_referenced(connection, target.id):
        raise _blocked(
            "Account", target, "UPDATE",
            f"Cannot modify structural field(s) {fields} on an account "
            "referenced by posted entries",
            fields,
        )


def _check_account_deletion_before_flush(session, flush_context, instances):
    """
    Refuse to delete accounts that entries or child accounts reference.

    Runs in before_flush because mapper-level delete events fire after the
    flush plan is fixed.
    """
    from fund_kernel.models.account import Account
    from fund_kernel.models.transaction import TransactionEntry

    for obj in list(session.deleted):
        if not isinstance(obj, Account):
            continue
        with session.no_autoflush:
            referenced = session.execute(
                select(
                    or_(
                        exists().where(TransactionEntry.account_id == obj.id),
                        exists().where(Account.parent_id == obj.id),
                    )
                )
            ).scalar()
        if referenced:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Account",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                },
            )
            raise AccountReferencedError(
                account_id=str(obj.id),
                reason="referenced by posted entries or child accounts",
            )


def _listen(target, event_name, fn) -> None:
    if not event.contains(target, event_name, fn):
        event.listen(target, event_name, fn)


def register_update_guard(model, fn) -> None:
    """Attach a before_update check to a module model (idempotent)."""
    _listen(model, "before_update", fn)


def register_delete_guard(model, fn) -> None:
    """Attach a before_delete check to a module model (idempotent)."""
    _listen(model, "before_delete", fn)


def blocked_update(entity_type: str, target, fields: list[str], reason: str):
    """Build (and log) the error a module guard raises."""
    return _blocked(entity_type, target, "UPDATE", reason, fields)


def blocked_delete(entity_type: str, target, reason: str):
    return _blocked(entity_type, target, "DELETE", reason)


def register_immutability_listeners() -> None:
    """
    Register the kernel's immutability listeners.

    Call after the models are imported and before any database work.
    Calling twice does not install duplicates.
    """
    from fund_kernel.models.account import Account
    from fund_kernel.models.transaction import Transaction, TransactionEntry

    _listen(Session, "before_flush", _check_account_deletion_before_flush)

    _listen(Transaction, "before_update", _check_transaction_immutability)
    _listen(Transaction, "before_delete", _check_transaction_delete)

    _listen(TransactionEntry, "before_update", _check_entry_immutability)
    _listen(TransactionEntry, "before_delete", _check_entry_delete)

    _listen(Account, "before_update", _check_account_structural_immutability)
