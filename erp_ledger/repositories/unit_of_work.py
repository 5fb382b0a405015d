"""
Persistence boundary for the accounting engine.

The engine never talks to a database handle directly. It is given a factory
that returns a unit of work; each facade operation opens exactly one, uses
the repositories hanging off it, and commits once. Leaving the ``async with``
block without committing rolls everything back.

Usage:
    async with uow_factory() as uow:
        invoice = await uow.documents.get(DocumentFamily.INVOICE, "INV-000001")
        ...
        await uow.commit()
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from erp_ledger.models.account import Account
from erp_ledger.models.accounting import JournalEntry, LedgerEntry
from erp_ledger.models.document import DocumentFamily, DocumentHeader
from erp_ledger.models.payment import Payment


class AccountRepository(ABC):
    """Read-only view of the chart of accounts."""

    @abstractmethod
    async def get_by_code(self, code: str) -> Optional[Account]:
        ...

    @abstractmethod
    async def get_many(self, codes: Iterable[str]) -> Dict[str, Account]:
        ...

    @abstractmethod
    async def list_active(self) -> List[Account]:
        ...


class DocumentRepository(ABC):
    @abstractmethod
    async def get(self, family: DocumentFamily, number: str) -> Optional[DocumentHeader]:
        ...

    @abstractmethod
    async def add(self, document: DocumentHeader) -> DocumentHeader:
        ...

    @abstractmethod
    async def save(self, document: DocumentHeader) -> DocumentHeader:
        ...


class PaymentRepository(ABC):
    @abstractmethod
    async def add(self, payment: Payment) -> Payment:
        ...

    @abstractmethod
    async def get(self, payment_number: str) -> Optional[Payment]:
        ...

    @abstractmethod
    async def save(self, payment: Payment) -> Payment:
        ...

    @abstractmethod
    async def list_for_invoice(self, invoice_number: str) -> List[Payment]:
        ...


class JournalRepository(ABC):
    @abstractmethod
    async def get(self, entry_number: str) -> Optional[JournalEntry]:
        ...

    @abstractmethod
    async def add(self, entry: JournalEntry) -> JournalEntry:
        ...

    @abstractmethod
    async def save(self, entry: JournalEntry) -> JournalEntry:
        ...


class LedgerRepository(ABC):
    """Append-only; there is deliberately no update or delete."""

    @abstractmethod
    async def latest_for_accounts(self, codes: Iterable[str]) -> Dict[str, LedgerEntry]:
        ...

    @abstractmethod
    async def append(self, entries: List[LedgerEntry]) -> List[LedgerEntry]:
        ...

    @abstractmethod
    async def list_for_account(self, code: str) -> List[LedgerEntry]:
        ...

    async def latest_for_account(self, code: str) -> Optional[LedgerEntry]:
        return (await self.latest_for_accounts([code])).get(code)


class SequenceRepository(ABC):
    @abstractmethod
    async def issue(self, family: DocumentFamily, prefix: str) -> str:
        """Claim the next number for (family, prefix) inside the current unit of work."""
        ...


class AbstractUnitOfWork(ABC):
    accounts: AccountRepository
    documents: DocumentRepository
    payments: PaymentRepository
    journal: JournalRepository
    ledger: LedgerRepository
    sequences: SequenceRepository

    committed: bool = False

    async def __aenter__(self) -> "AbstractUnitOfWork":
        self.committed = False
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self.committed:
            await self.rollback()

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...
