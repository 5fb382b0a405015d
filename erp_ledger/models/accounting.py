from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from enum import Enum
from pydantic import ConfigDict, Field
from erp_ledger.models.base import MongoModel, MoneyAmount

class EntryType(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"

class JournalEntryType(str, Enum):
    GENERAL = "general"
    ADJUSTING = "adjusting"
    CLOSING = "closing"
    OPENING = "opening"

class JournalStatus(str, Enum):
    DRAFT = "draft"
    POSTED = "posted"
    VOID = "void"

class JournalLine(MongoModel):
    # One-sidedness is checked by the ledger poster so the failure is typed
    account_code: str
    debit: MoneyAmount = Decimal("0.00")
    credit: MoneyAmount = Decimal("0.00")
    description: Optional[str] = None

    @property
    def side(self) -> Optional[EntryType]:
        if self.debit and not self.credit:
            return EntryType.DEBIT
        if self.credit and not self.debit:
            return EntryType.CREDIT
        return None

class JournalEntry(MongoModel):
    """Double-entry bookkeeping record."""
    entry_number: Optional[str] = Field(None, description="Assigned on posting if missing, e.g. JE-000001")
    entry_date: date = Field(default_factory=date.today)
    entry_type: JournalEntryType = JournalEntryType.GENERAL
    description: Optional[str] = None
    reference: Optional[str] = None

    source_type: Optional[str] = Field(None, description="invoice, payment, journal_entry, ...")
    source_number: Optional[str] = None

    lines: List[JournalLine] = []

    status: JournalStatus = JournalStatus.DRAFT
    posted_at: Optional[datetime] = None
    reversal_of: Optional[str] = None
    reversed_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def total_debit(self) -> Decimal:
        return sum((l.debit for l in self.lines), Decimal("0.00"))

    @property
    def total_credit(self) -> Decimal:
        return sum((l.credit for l in self.lines), Decimal("0.00"))

class LedgerEntry(MongoModel):
    """
    Immutable posting to one account, carrying the running balance after it.
    Corrections are new offsetting entries, never updates.
    """
    model_config = ConfigDict(frozen=True)

    account_code: str
    sequence: int = Field(..., ge=1, description="Per-account posting order")
    transaction_date: date
    transaction_type: str = "journal_entry"
    reference_type: Optional[str] = None
    reference_number: Optional[str] = None
    debit: MoneyAmount = Decimal("0.00")
    credit: MoneyAmount = Decimal("0.00")
    balance: MoneyAmount
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
