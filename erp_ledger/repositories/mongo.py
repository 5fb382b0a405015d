import logging
from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from erp_ledger.errors import SequenceConflict, UnknownAccountType
from erp_ledger.models.account import Account
from erp_ledger.models.accounting import JournalEntry, LedgerEntry
from erp_ledger.models.document import DocumentFamily, DocumentHeader, parse_document
from erp_ledger.models.payment import Payment
from erp_ledger.repositories.base import BaseRepository
from erp_ledger.repositories.unit_of_work import (
    AbstractUnitOfWork, AccountRepository, DocumentRepository, JournalRepository,
    LedgerRepository, PaymentRepository, SequenceRepository,
)
from erp_ledger.tools.numbering import next_number

logger = logging.getLogger(__name__)


class MongoAccountRepository(BaseRepository[Account], AccountRepository):
    def _load(self, doc: Dict[str, Any]) -> Account:
        try:
            return Account.from_mongo(doc)
        except ValidationError as e:
            # A stored type outside the five known ones is a data error, not a crash
            if any(err["loc"] == ("type",) for err in e.errors()):
                raise UnknownAccountType(doc.get("type"), doc.get("code")) from e
            raise

    async def get_by_code(self, code: str) -> Optional[Account]:
        return await self.get_by_field("code", code)

    async def get_many(self, codes: Iterable[str]) -> Dict[str, Account]:
        accounts = await self.find({"code": {"$in": list(set(codes))}})
        return {a.code: a for a in accounts}

    async def list_active(self) -> List[Account]:
        return await self.find({"active": True}, sort=[("code", ASCENDING)])


class MongoDocumentRepository(BaseRepository[DocumentHeader], DocumentRepository):
    """Quotes, sales orders and invoices share one collection keyed by (family, number)."""

    def _load(self, doc: Dict[str, Any]) -> DocumentHeader:
        return parse_document(doc)

    async def get(self, family: DocumentFamily, number: str) -> Optional[DocumentHeader]:
        doc = await self.collection.find_one({"family": DocumentFamily(family).value, "number": number},
                                             session=self.session)
        return self._load(doc) if doc else None

    async def add(self, document: DocumentHeader) -> DocumentHeader:
        return await self.create(document)

    async def save(self, document: DocumentHeader) -> DocumentHeader:
        return await self.replace({"family": document.family, "number": document.number}, document)


class MongoPaymentRepository(BaseRepository[Payment], PaymentRepository):
    async def add(self, payment: Payment) -> Payment:
        return await self.create(payment)

    async def get(self, payment_number: str) -> Optional[Payment]:
        return await self.get_by_field("payment_number", payment_number)

    async def save(self, payment: Payment) -> Payment:
        return await self.replace({"payment_number": payment.payment_number}, payment)

    async def list_for_invoice(self, invoice_number: str) -> List[Payment]:
        return await self.find({"invoice_number": invoice_number},
                               sort=[("payment_date", ASCENDING), ("payment_number", ASCENDING)])


class MongoJournalRepository(BaseRepository[JournalEntry], JournalRepository):
    async def get(self, entry_number: str) -> Optional[JournalEntry]:
        return await self.get_by_field("entry_number", entry_number)

    async def add(self, entry: JournalEntry) -> JournalEntry:
        return await self.create(entry)

    async def save(self, entry: JournalEntry) -> JournalEntry:
        return await self.replace({"entry_number": entry.entry_number}, entry)


class MongoLedgerRepository(BaseRepository[LedgerEntry], LedgerRepository):
    """
    Append-only. The unique index on (account_code, sequence) turns two writers
    that read the same latest entry into a DuplicateKeyError for the loser.
    """

    async def latest_for_accounts(self, codes: Iterable[str]) -> Dict[str, LedgerEntry]:
        latest: Dict[str, LedgerEntry] = {}
        for code in set(codes):
            doc = await self.collection.find_one({"account_code": code},
                                                 sort=[("sequence", DESCENDING)],
                                                 session=self.session)
            if doc:
                latest[code] = self._load(doc)
        return latest

    async def append(self, entries: List[LedgerEntry]) -> List[LedgerEntry]:
        if not entries:
            return []
        result = await self.collection.insert_many([e.to_mongo() for e in entries],
                                                   ordered=True, session=self.session)
        return [e.model_copy(update={"id": str(_id)}) for e, _id in zip(entries, result.inserted_ids)]

    async def list_for_account(self, code: str) -> List[LedgerEntry]:
        return await self.find({"account_code": code}, sort=[("sequence", ASCENDING)])


class MongoSequenceRepository(SequenceRepository):
    """
    One counter document per (family, prefix) holding the last issued number.
    Issuing is a compare-and-set on that value; losing the race raises
    SequenceConflict and the whole unit of work is rolled back.
    """

    def __init__(self, collection, session=None):
        self.collection = collection
        self.session = session

    async def issue(self, family: DocumentFamily, prefix: str) -> str:
        family = DocumentFamily(family)
        key = f"{family.value}:{prefix}"
        doc = await self.collection.find_one({"_id": key}, session=self.session)
        last = doc["last_number"] if doc else None
        number = next_number(prefix, last)

        if doc is None:
            try:
                await self.collection.insert_one(
                    {"_id": key, "family": family.value, "prefix": prefix, "last_number": number},
                    session=self.session,
                )
            except DuplicateKeyError as e:
                raise SequenceConflict(f"Sequence {key} was initialised concurrently",
                                       details={"family": family.value, "prefix": prefix}) from e
        else:
            result = await self.collection.update_one(
                {"_id": key, "last_number": last},
                {"$set": {"last_number": number}},
                session=self.session,
            )
            if result.modified_count == 0:
                raise SequenceConflict(f"Sequence {key} moved past {last}",
                                       details={"family": family.value, "prefix": prefix})
        return number


class MongoUnitOfWork(AbstractUnitOfWork):
    """
    One Motor client session with one multi-document transaction.
    Requires a replica set (or mongos); standalone servers reject transactions.
    """

    def __init__(self, client: AsyncIOMotorClient, database: AsyncIOMotorDatabase):
        self.client = client
        self.database = database
        self.session = None

    async def __aenter__(self) -> "MongoUnitOfWork":
        self.session = await self.client.start_session()
        self.session.start_transaction()

        db = self.database
        self.accounts = MongoAccountRepository(db.accounts, Account, self.session)
        self.documents = MongoDocumentRepository(db.documents, DocumentHeader, self.session)
        self.payments = MongoPaymentRepository(db.payments, Payment, self.session)
        self.journal = MongoJournalRepository(db.journal_entries, JournalEntry, self.session)
        self.ledger = MongoLedgerRepository(db.ledger_entries, LedgerEntry, self.session)
        self.sequences = MongoSequenceRepository(db.sequences, self.session)
        return await super().__aenter__()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            await self.session.end_session()

    async def commit(self) -> None:
        await self.session.commit_transaction()
        self.committed = True

    async def rollback(self) -> None:
        if self.session is not None and self.session.in_transaction:
            await self.session.abort_transaction()
            logger.debug("Mongo transaction aborted")
