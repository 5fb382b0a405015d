"""
Typed failures raised by the accounting engine.

Every failure is detected before anything is written, so catching one of
these means nothing was persisted. Callers branch on the class (or on
``error_code`` once serialized) rather than on the message text.

Hierarchy:
    AccountingError
    ├── InvalidLineItem          bad quantity / price / percentage on a line
    ├── InvalidDocument          bad document-level discount / tax / shipping
    ├── InvalidPayment           non-positive payment amount
    ├── InvalidStatusTransition  status outside the document family's enum
    ├── UnbalancedJournalEntry   debits != credits beyond tolerance
    ├── InsufficientJournalLines fewer than two journal lines
    ├── InvalidJournalLine       both / neither side set, or a negative side
    ├── UnknownAccountType       posting against an account without a valid type
    ├── AccountNotFound
    ├── InactiveAccount
    ├── DocumentNotFound
    ├── JournalEntryNotFound
    ├── JournalEntryNotDraft     re-posting a posted or void entry
    └── SequenceConflict         lost race while issuing a document number
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional


class AccountingError(Exception):
    """Base class for every engine failure."""

    default_error_code: str = "ACCOUNTING_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidLineItem(AccountingError):
    """
    Raised when a line item violates its preconditions.

    Attributes:
        field: Name of the offending input (quantity, unit_price, ...)
        value: The rejected value
    """

    default_error_code = "INVALID_LINE_ITEM"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        super().__init__(
            f"Invalid line item {field}={value!r}: {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class InvalidDocument(AccountingError):
    default_error_code = "INVALID_DOCUMENT"


class InvalidPayment(AccountingError):
    default_error_code = "INVALID_PAYMENT"


class InvalidStatusTransition(AccountingError):
    default_error_code = "INVALID_STATUS"


class UnbalancedJournalEntry(AccountingError):
    """
    Raised when a journal entry's debits and credits differ by a cent or more.

    Attributes:
        total_debit: Sum of the debit column
        total_credit: Sum of the credit column
    """

    default_error_code = "UNBALANCED_JOURNAL_ENTRY"

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            f"Journal entry is unbalanced: debits={total_debit} credits={total_credit}",
            details={
                "total_debit": str(total_debit),
                "total_credit": str(total_credit),
                "difference": str(total_debit - total_credit),
            },
        )


class InsufficientJournalLines(AccountingError):
    default_error_code = "INSUFFICIENT_JOURNAL_LINES"

    def __init__(self, line_count: int):
        self.line_count = line_count
        super().__init__(
            f"Journal entry must have at least 2 lines, got {line_count}",
            details={"line_count": line_count},
        )


class InvalidJournalLine(AccountingError):
    default_error_code = "INVALID_JOURNAL_LINE"


class UnknownAccountType(AccountingError):
    default_error_code = "UNKNOWN_ACCOUNT_TYPE"

    def __init__(self, account_type: Any, account_code: Optional[str] = None):
        self.account_type = account_type
        self.account_code = account_code
        where = f" on account {account_code}" if account_code else ""
        super().__init__(
            f"Unknown account type {account_type!r}{where}",
            details={"account_type": str(account_type), "account_code": account_code},
        )


class AccountNotFound(AccountingError):
    default_error_code = "ACCOUNT_NOT_FOUND"


class InactiveAccount(AccountingError):
    default_error_code = "INACTIVE_ACCOUNT"


class DocumentNotFound(AccountingError):
    default_error_code = "DOCUMENT_NOT_FOUND"


class JournalEntryNotFound(AccountingError):
    default_error_code = "JOURNAL_ENTRY_NOT_FOUND"


class JournalEntryNotDraft(AccountingError):
    default_error_code = "JOURNAL_ENTRY_NOT_DRAFT"


class SequenceConflict(AccountingError):
    """Another writer issued the same number first; the unit of work must be retried by the caller."""

    default_error_code = "SEQUENCE_CONFLICT"
