"""
Double-entry validation and running-balance posting.

Debits increase assets and expenses; credits increase liabilities, equity
and revenue (Assets = Liabilities + Equity). The sign convention is keyed
strictly off the account's type, never inferred from the balance.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from erp_ledger.errors import (
    AccountNotFound, InactiveAccount, InsufficientJournalLines, InvalidJournalLine,
    UnbalancedJournalEntry, UnknownAccountType,
)
from erp_ledger.models.account import Account, AccountType
from erp_ledger.models.accounting import EntryType, JournalEntry, JournalLine, LedgerEntry
from erp_ledger.models.money import Numeric, round_money, to_decimal

logger = logging.getLogger(__name__)

# Fixed: absorbs rounding, not configurable
BALANCE_TOLERANCE = Decimal("0.01")

DEBIT_NORMAL = frozenset({AccountType.ASSET, AccountType.EXPENSE})
CREDIT_NORMAL = frozenset({AccountType.LIABILITY, AccountType.EQUITY, AccountType.REVENUE})

LineLike = Union[JournalLine, Mapping[str, Any]]


def _side(line: LineLike, name: str) -> Decimal:
    value = line.get(name) if isinstance(line, Mapping) else getattr(line, name, None)
    return to_decimal(value) if value is not None else Decimal("0")


def totals(lines: Iterable[LineLike]):
    total_debit = Decimal("0")
    total_credit = Decimal("0")
    for line in lines:
        total_debit += _side(line, "debit")
        total_credit += _side(line, "credit")
    return total_debit, total_credit


def validate_balanced(lines: Iterable[LineLike]) -> bool:
    """True when |sum(debit) - sum(credit)| < 0.01."""
    total_debit, total_credit = totals(lines)
    return abs(total_debit - total_credit) < BALANCE_TOLERANCE


def check_journal_lines(lines: Sequence[LineLike]) -> None:
    """
    Full pre-posting check of a journal entry's lines.

    Raises:
        InsufficientJournalLines: fewer than 2 lines
        InvalidJournalLine: a side is negative, or not exactly one side is non-zero
        UnbalancedJournalEntry: debits and credits differ by 0.01 or more
    """
    if len(lines) < 2:
        raise InsufficientJournalLines(len(lines))

    for index, line in enumerate(lines):
        debit = _side(line, "debit")
        credit = _side(line, "credit")
        if debit < 0 or credit < 0:
            raise InvalidJournalLine(
                f"Line {index} has a negative amount (debit={debit}, credit={credit})",
                details={"line": index},
            )
        if (debit != 0) == (credit != 0):
            raise InvalidJournalLine(
                f"Line {index} must have either a debit or a credit amount, but not both",
                details={"line": index, "debit": str(debit), "credit": str(credit)},
            )

    total_debit, total_credit = totals(lines)
    if abs(total_debit - total_credit) >= BALANCE_TOLERANCE:
        raise UnbalancedJournalEntry(total_debit, total_credit)


def _account_type(account_type: Any, account_code: Optional[str] = None) -> AccountType:
    if isinstance(account_type, AccountType):
        return account_type
    try:
        return AccountType(account_type)
    except ValueError:
        raise UnknownAccountType(account_type, account_code) from None


def normal_balance_side(account_type: Union[AccountType, str]) -> EntryType:
    kind = _account_type(account_type)
    return EntryType.DEBIT if kind in DEBIT_NORMAL else EntryType.CREDIT


def post_line(current_balance: Numeric, debit: Numeric, credit: Numeric,
              account_type: Union[AccountType, str]) -> Decimal:
    """
    New running balance for one account after one posting.

    asset, expense:              balance + debit - credit
    liability, equity, revenue:  balance + credit - debit
    """
    kind = _account_type(account_type)
    balance = to_decimal(current_balance)
    if kind in DEBIT_NORMAL:
        return round_money(balance + to_decimal(debit) - to_decimal(credit))
    return round_money(balance + to_decimal(credit) - to_decimal(debit))


def build_ledger_entries(entry: JournalEntry,
                         accounts: Mapping[str, Account],
                         opening: Mapping[str, LedgerEntry],
                         transaction_type: str = "journal_entry") -> List[LedgerEntry]:
    """
    Computes one LedgerEntry per journal line, in line order.

    ``accounts`` maps account code to Account; ``opening`` maps account code to
    the account's latest existing ledger entry (absent if the account has none).
    Balances are threaded through the loop so an account that appears on
    several lines of the same entry chains correctly. Nothing is written here.
    """
    check_journal_lines(entry.lines)

    for line in entry.lines:
        account = accounts.get(line.account_code)
        if account is None:
            raise AccountNotFound(f"Account {line.account_code} not found",
                                  details={"account_code": line.account_code})
        if not account.active:
            raise InactiveAccount(f"Account {line.account_code} is inactive",
                                  details={"account_code": line.account_code})
        _account_type(account.type, account.code)

    balances: Dict[str, Decimal] = {}
    sequences: Dict[str, int] = {}
    for code, latest in opening.items():
        balances[code] = latest.balance
        sequences[code] = latest.sequence

    posted_on: date = entry.entry_date
    ledger_entries: List[LedgerEntry] = []
    for line in entry.lines:
        code = line.account_code
        new_balance = post_line(balances.get(code, Decimal("0")), line.debit, line.credit,
                                accounts[code].type)
        balances[code] = new_balance
        sequences[code] = sequences.get(code, 0) + 1
        ledger_entries.append(LedgerEntry(
            account_code=code,
            sequence=sequences[code],
            transaction_date=posted_on,
            transaction_type=transaction_type,
            reference_type=entry.source_type or "journal_entry",
            reference_number=entry.source_number or entry.entry_number,
            debit=line.debit,
            credit=line.credit,
            balance=new_balance,
            description=line.description or entry.description,
        ))

    logger.debug(f"Computed {len(ledger_entries)} ledger postings for {entry.entry_number}")
    return ledger_entries
