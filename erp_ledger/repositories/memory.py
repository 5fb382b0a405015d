"""
In-process persistence with the same transactional contract as Mongo.

A unit of work takes the store lock, works on a deep copy of the state and
swaps it in on commit. Holding the lock for the whole unit of work serialises
writers, so per-account ledger sequences and number sequences cannot race.
"""

import asyncio
import copy
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from bson import ObjectId

from erp_ledger.errors import SequenceConflict
from erp_ledger.models.account import Account
from erp_ledger.models.accounting import JournalEntry, LedgerEntry
from erp_ledger.models.document import DocumentFamily, DocumentHeader
from erp_ledger.models.payment import Payment
from erp_ledger.repositories.unit_of_work import (
    AbstractUnitOfWork, AccountRepository, DocumentRepository, JournalRepository,
    LedgerRepository, PaymentRepository, SequenceRepository,
)
from erp_ledger.tools.numbering import next_number


@dataclass
class _State:
    accounts: Dict[str, Account] = field(default_factory=dict)
    documents: Dict[Tuple[str, str], DocumentHeader] = field(default_factory=dict)
    payments: Dict[str, Payment] = field(default_factory=dict)
    journal_entries: Dict[str, JournalEntry] = field(default_factory=dict)
    ledger: Dict[str, List[LedgerEntry]] = field(default_factory=dict)
    sequences: Dict[Tuple[str, str], str] = field(default_factory=dict)


def _with_id(model):
    if model.id is None:
        return model.model_copy(update={"id": str(ObjectId())}, deep=True)
    return model.model_copy(deep=True)


class InMemoryAccountRepository(AccountRepository):
    def __init__(self, state: _State):
        self.state = state

    async def get_by_code(self, code: str) -> Optional[Account]:
        account = self.state.accounts.get(code)
        return account.model_copy(deep=True) if account else None

    async def get_many(self, codes: Iterable[str]) -> Dict[str, Account]:
        return {c: self.state.accounts[c].model_copy(deep=True)
                for c in set(codes) if c in self.state.accounts}

    async def list_active(self) -> List[Account]:
        return [a.model_copy(deep=True)
                for code, a in sorted(self.state.accounts.items()) if a.active]


class InMemoryDocumentRepository(DocumentRepository):
    def __init__(self, state: _State):
        self.state = state

    async def get(self, family: DocumentFamily, number: str) -> Optional[DocumentHeader]:
        document = self.state.documents.get((DocumentFamily(family).value, number))
        return document.model_copy(deep=True) if document else None

    async def add(self, document: DocumentHeader) -> DocumentHeader:
        key = (document.family, document.number)
        if key in self.state.documents:
            raise SequenceConflict(f"Document {document.number} already exists",
                                   details={"family": document.family, "number": document.number})
        stored = _with_id(document)
        self.state.documents[key] = stored
        return stored.model_copy(deep=True)

    async def save(self, document: DocumentHeader) -> DocumentHeader:
        self.state.documents[(document.family, document.number)] = _with_id(document)
        return document


class InMemoryPaymentRepository(PaymentRepository):
    def __init__(self, state: _State):
        self.state = state

    async def add(self, payment: Payment) -> Payment:
        if payment.payment_number in self.state.payments:
            raise SequenceConflict(f"Payment {payment.payment_number} already exists",
                                   details={"payment_number": payment.payment_number})
        stored = _with_id(payment)
        self.state.payments[payment.payment_number] = stored
        return stored.model_copy(deep=True)

    async def get(self, payment_number: str) -> Optional[Payment]:
        payment = self.state.payments.get(payment_number)
        return payment.model_copy(deep=True) if payment else None

    async def save(self, payment: Payment) -> Payment:
        self.state.payments[payment.payment_number] = _with_id(payment)
        return payment

    async def list_for_invoice(self, invoice_number: str) -> List[Payment]:
        payments = [p for p in self.state.payments.values() if p.invoice_number == invoice_number]
        payments.sort(key=lambda p: (p.payment_date, p.payment_number))
        return [p.model_copy(deep=True) for p in payments]


class InMemoryJournalRepository(JournalRepository):
    def __init__(self, state: _State):
        self.state = state

    async def get(self, entry_number: str) -> Optional[JournalEntry]:
        entry = self.state.journal_entries.get(entry_number)
        return entry.model_copy(deep=True) if entry else None

    async def add(self, entry: JournalEntry) -> JournalEntry:
        if entry.entry_number in self.state.journal_entries:
            raise SequenceConflict(f"Journal entry {entry.entry_number} already exists",
                                   details={"entry_number": entry.entry_number})
        stored = _with_id(entry)
        self.state.journal_entries[entry.entry_number] = stored
        return stored.model_copy(deep=True)

    async def save(self, entry: JournalEntry) -> JournalEntry:
        self.state.journal_entries[entry.entry_number] = _with_id(entry)
        return entry


class InMemoryLedgerRepository(LedgerRepository):
    def __init__(self, state: _State):
        self.state = state

    async def latest_for_accounts(self, codes: Iterable[str]) -> Dict[str, LedgerEntry]:
        return {c: self.state.ledger[c][-1] for c in set(codes) if self.state.ledger.get(c)}

    async def append(self, entries: List[LedgerEntry]) -> List[LedgerEntry]:
        stored = []
        for entry in entries:
            history = self.state.ledger.setdefault(entry.account_code, [])
            expected = history[-1].sequence + 1 if history else 1
            if entry.sequence != expected:
                raise SequenceConflict(
                    f"Ledger sequence {entry.sequence} for {entry.account_code} is stale (expected {expected})",
                    details={"account_code": entry.account_code, "sequence": entry.sequence},
                )
            entry = _with_id(entry)
            history.append(entry)
            stored.append(entry)
        return stored

    async def list_for_account(self, code: str) -> List[LedgerEntry]:
        return list(self.state.ledger.get(code, []))


class InMemorySequenceRepository(SequenceRepository):
    def __init__(self, state: _State):
        self.state = state

    async def issue(self, family: DocumentFamily, prefix: str) -> str:
        key = (DocumentFamily(family).value, prefix)
        number = next_number(prefix, self.state.sequences.get(key))
        self.state.sequences[key] = number
        return number


class InMemoryStore:
    """
    Shared state for every unit of work created from it.

    Calling the store returns a fresh unit of work, so the store itself is the
    factory handed to AccountingEngine.
    """

    def __init__(self, accounts: Iterable[Account] = ()):
        self.state = _State(accounts={a.code: a for a in accounts})
        self.lock = asyncio.Lock()

    def add_account(self, account: Account) -> None:
        self.state.accounts[account.code] = _with_id(account)

    def __call__(self) -> "InMemoryUnitOfWork":
        return InMemoryUnitOfWork(self)


class InMemoryUnitOfWork(AbstractUnitOfWork):
    def __init__(self, store: InMemoryStore):
        self.store = store
        self._working: Optional[_State] = None

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        await self.store.lock.acquire()
        try:
            self._working = copy.deepcopy(self.store.state)
        except BaseException:
            self.store.lock.release()
            raise
        self.accounts = InMemoryAccountRepository(self._working)
        self.documents = InMemoryDocumentRepository(self._working)
        self.payments = InMemoryPaymentRepository(self._working)
        self.journal = InMemoryJournalRepository(self._working)
        self.ledger = InMemoryLedgerRepository(self._working)
        self.sequences = InMemorySequenceRepository(self._working)
        return await super().__aenter__()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            self.store.lock.release()

    async def commit(self) -> None:
        self.store.state = self._working
        self.committed = True

    async def rollback(self) -> None:
        self._working = None
