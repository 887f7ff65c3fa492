"""
Typed exception hierarchy for the fund kernel.

Every error has a typed class, a machine-readable ``code`` class attribute,
and carries its context as attributes rather than only inside the message.
Callers catch by type and read the attributes; transports render ``code``.

    FundLedgerError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidEntryError
    |   +-- InvalidDateRangeError
    |   +-- InvalidAccountTypeError
    |   +-- InvalidProjectLinkError
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- FundingNotFoundError
    |   +-- AllocationNotFoundError
    |   +-- ProjectNotFoundError
    |   +-- SubProjectNotFoundError
    |   +-- ReportingPeriodNotFoundError
    |
    +-- PostingError
    |   +-- UnbalancedTransactionError
    |   +-- TransactionAlreadyReversedError
    |   +-- ReversalNotAllowedError
    |
    +-- AccountError
    |   +-- DuplicateAccountCodeError
    |   +-- AccountReferencedError
    |
    +-- BudgetError
    |   +-- OverAllocationError
    |   +-- InsufficientBudgetError
    |
    +-- AuthorizationError
    |   +-- PermissionDeniedError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

Category        | Code                      | When Raised
----------------|---------------------------|------------------------------------------
Validation      | VALIDATION_ERROR          | Malformed input, missing required field
                | INVALID_AMOUNT            | Non-positive, float, or sub-cent amount
                | INVALID_ENTRY             | Too few entries, bad side, bad account ref
                | INVALID_DATE_RANGE        | end_date before start_date
                | INVALID_ACCOUNT_TYPE      | Account of the wrong type for the posting
                | INVALID_PROJECT_LINK      | Sub-project outside the allocation's project
----------------|---------------------------|------------------------------------------
Not found       | *_NOT_FOUND               | Unknown id for the named entity
----------------|---------------------------|------------------------------------------
Posting         | UNBALANCED_TRANSACTION    | Debits != Credits
                | TRANSACTION_ALREADY_REVERSED | Second reversal of the same transaction
                | REVERSAL_NOT_ALLOWED      | Reversing a reversal
----------------|---------------------------|------------------------------------------
Account         | DUPLICATE_ACCOUNT_CODE    | Code already in the chart
                | ACCOUNT_REFERENCED        | Structural change/delete of a used account
----------------|---------------------------|------------------------------------------
Budget          | OVER_ALLOCATION           | Allocations would exceed the funding
                | INSUFFICIENT_BUDGET       | Expense exceeds the allocation's available
----------------|---------------------------|------------------------------------------
Authorization   | PERMISSION_DENIED         | Caller missing or lacking the permission
----------------|---------------------------|------------------------------------------
Immutability    | IMMUTABILITY_VIOLATION    | Editing posted history
"""


class FundLedgerError(Exception):
    """
    Base exception for all fund ledger errors.

    All subclasses define a ``code`` class attribute.
    """

    code: str = "FUND_LEDGER_ERROR"


# Validation


class ValidationError(FundLedgerError):
    """Input rejected before touching storage."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidAmountError(ValidationError):
    """Amount is not a positive decimal with at most two places."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: object, reason: str):
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid amount for {field}: {value!r} ({reason})", field)


class InvalidEntryError(ValidationError):
    """A transaction entry (or the entry list) is malformed."""

    code: str = "INVALID_ENTRY"

    def __init__(self, reason: str, line_index: int | None = None):
        self.reason = reason
        self.line_index = line_index
        where = f" at line {line_index}" if line_index is not None else ""
        super().__init__(f"Invalid entry{where}: {reason}", "entries")


class InvalidDateRangeError(ValidationError):
    """End date precedes start date."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start_date, end_date):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"end_date {end_date} is before start_date {start_date}", "end_date"
        )


class InvalidAccountTypeError(ValidationError):
    """Account has the wrong type for the requested posting."""

    code: str = "INVALID_ACCOUNT_TYPE"

    def __init__(self, account_id: str, expected: str, actual: str):
        self.account_id = account_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Account {account_id} must be of type {expected}, got {actual}",
            "account_id",
        )


class InvalidProjectLinkError(ValidationError):
    """Sub-project does not belong to the project it is used with."""

    code: str = "INVALID_PROJECT_LINK"

    def __init__(self, sub_project_id: str, project_id: str):
        self.sub_project_id = sub_project_id
        self.project_id = project_id
        super().__init__(
            f"Sub-project {sub_project_id} does not belong to project {project_id}",
            "sub_project_id",
        )


# Not found


class NotFoundError(FundLedgerError):
    """Unknown id."""

    code: str = "NOT_FOUND"
    entity: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity} not found: {entity_id}")


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"
    entity = "Account"


class TransactionNotFoundError(NotFoundError):
    code: str = "TRANSACTION_NOT_FOUND"
    entity = "Transaction"


class FundingNotFoundError(NotFoundError):
    code: str = "FUNDING_NOT_FOUND"
    entity = "Funding"


class AllocationNotFoundError(NotFoundError):
    code: str = "ALLOCATION_NOT_FOUND"
    entity = "Allocation"


class ProjectNotFoundError(NotFoundError):
    code: str = "PROJECT_NOT_FOUND"
    entity = "Project"


class SubProjectNotFoundError(NotFoundError):
    code: str = "SUB_PROJECT_NOT_FOUND"
    entity = "SubProject"


class ReportingPeriodNotFoundError(NotFoundError):
    code: str = "REPORTING_PERIOD_NOT_FOUND"
    entity = "ReportingPeriod"


# Posting


class PostingError(FundLedgerError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"


class UnbalancedTransactionError(PostingError):
    """Transaction debits do not equal credits."""

    code: str = "UNBALANCED_TRANSACTION"

    def __init__(self, debits: str, credits: str):
        self.debits = debits
        self.credits = credits
        super().__init__(f"Unbalanced transaction: debits={debits}, credits={credits}")


class TransactionAlreadyReversedError(PostingError):
    """A reversal for this transaction already exists."""

    code: str = "TRANSACTION_ALREADY_REVERSED"

    def __init__(self, transaction_id: str, reversal_id: str | None = None):
        self.transaction_id = str(transaction_id)
        self.reversal_id = str(reversal_id) if reversal_id else None
        super().__init__(f"Transaction {transaction_id} is already reversed")


class ReversalNotAllowedError(PostingError):
    """The transaction cannot be reversed."""

    code: str = "REVERSAL_NOT_ALLOWED"

    def __init__(self, transaction_id: str, reason: str):
        self.transaction_id = str(transaction_id)
        self.reason = reason
        super().__init__(f"Cannot reverse transaction {transaction_id}: {reason}")


# Accounts


class AccountError(FundLedgerError):
    """Base exception for chart-of-accounts errors."""

    code: str = "ACCOUNT_ERROR"


class DuplicateAccountCodeError(AccountError):
    """Account code already exists in the chart."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code already exists: {account_code}")


class AccountReferencedError(AccountError):
    """Account is referenced by entries (or children) and cannot be changed so."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_id: str, reason: str = "referenced by posted entries"):
        self.account_id = str(account_id)
        self.reason = reason
        super().__init__(f"Account {account_id} cannot be changed: {reason}")


# Budget


class BudgetError(FundLedgerError):
    """Business-rule rejections of the budget tracker."""

    code: str = "BUDGET_ERROR"


class OverAllocationError(BudgetError):
    """Allocation would push the funding's allocations above its amount."""

    code: str = "OVER_ALLOCATION"

    def __init__(self, funding_id: str, requested, available_amount):
        self.funding_id = str(funding_id)
        self.requested = requested
        self.available_amount = available_amount
        super().__init__(
            f"Funding {funding_id} cannot allocate {requested}: "
            f"only {available_amount} unallocated"
        )


class InsufficientBudgetError(BudgetError):
    """Expense exceeds the allocation's available amount."""

    code: str = "INSUFFICIENT_BUDGET"

    def __init__(self, allocation_id: str, requested, available_amount):
        self.allocation_id = str(allocation_id)
        self.requested = requested
        self.available_amount = available_amount
        super().__init__(
            f"Insufficient budget on allocation {allocation_id}: "
            f"requested {requested}, available {available_amount}"
        )


# Authorization


class AuthorizationError(FundLedgerError):
    """Base exception for authorization failures."""

    code: str = "AUTHORIZATION_ERROR"


class PermissionDeniedError(AuthorizationError):
    """Caller is missing or lacks the required permission."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, permission: str, role: str | None, reason: str):
        self.permission = permission
        self.role = role
        self.reason = reason
        super().__init__(f"Permission '{permission}' denied: {reason}")


# Immutability


class ImmutabilityError(FundLedgerError):
    """Base exception for attempts to edit posted history."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """An immutable record was modified or deleted."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")
