import sys
import os
sys.path.append(os.getcwd())
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from pymongo.errors import DuplicateKeyError
from erp_ledger.errors import SequenceConflict, UnknownAccountType
from erp_ledger.models.account import Account
from erp_ledger.models.accounting import JournalEntry, LedgerEntry
from erp_ledger.models.document import DocumentFamily, DocumentHeader, Invoice
from erp_ledger.models.payment import Payment, PaymentStatus
from erp_ledger.repositories.mongo import (
    MongoAccountRepository, MongoDocumentRepository, MongoJournalRepository, MongoLedgerRepository,
    MongoPaymentRepository, MongoSequenceRepository, MongoUnitOfWork,
)

@pytest.mark.asyncio
async def test_sequence_first_issue_inserts(mock_collection):
    repo = MongoSequenceRepository(mock_collection, session="s")
    number = await repo.issue(DocumentFamily.INVOICE, "INV")

    assert number == "INV-000001"
    doc = mock_collection.insert_one.call_args[0][0]
    assert doc == {"_id": "invoice:INV", "family": "invoice", "prefix": "INV", "last_number": "INV-000001"}
    assert mock_collection.insert_one.call_args.kwargs["session"] == "s"

@pytest.mark.asyncio
async def test_sequence_compare_and_set(mock_collection):
    mock_collection.find_one = AsyncMock(return_value={"_id": "invoice:INV", "last_number": "INV-000041"})
    mock_collection.update_one = AsyncMock(return_value=MagicMock(modified_count=1))
    repo = MongoSequenceRepository(mock_collection)

    assert await repo.issue("invoice", "INV") == "INV-000042"
    filter_, update = mock_collection.update_one.call_args[0]
    assert filter_ == {"_id": "invoice:INV", "last_number": "INV-000041"}
    assert update == {"$set": {"last_number": "INV-000042"}}

@pytest.mark.asyncio
async def test_sequence_lost_race(mock_collection):
    mock_collection.find_one = AsyncMock(return_value={"_id": "quote:QT", "last_number": "QT-000001"})
    mock_collection.update_one = AsyncMock(return_value=MagicMock(modified_count=0))
    with pytest.raises(SequenceConflict):
        await MongoSequenceRepository(mock_collection).issue(DocumentFamily.QUOTE, "QT")

@pytest.mark.asyncio
async def test_sequence_lost_race_on_first_insert(mock_collection):
    mock_collection.insert_one = AsyncMock(side_effect=DuplicateKeyError("dup"))
    with pytest.raises(SequenceConflict):
        await MongoSequenceRepository(mock_collection).issue(DocumentFamily.QUOTE, "QT")

@pytest.mark.asyncio
async def test_account_with_bad_type_is_typed_error(mock_collection):
    mock_collection.find_one = AsyncMock(return_value={"_id": "x", "code": "1500", "name": "Odd", "type": "contra"})
    repo = MongoAccountRepository(mock_collection, Account)
    with pytest.raises(UnknownAccountType) as exc:
        await repo.get_by_code("1500")
    assert exc.value.account_code == "1500"

@pytest.mark.asyncio
async def test_document_get_parses_family(mock_collection):
    stored = Invoice(number="INV-000001", total="10.00").to_mongo()
    stored["_id"] = "65a000000000000000000001"
    mock_collection.find_one = AsyncMock(return_value=stored)
    repo = MongoDocumentRepository(mock_collection, DocumentHeader, session="s")

    invoice = await repo.get(DocumentFamily.INVOICE, "INV-000001")
    assert isinstance(invoice, Invoice)
    assert invoice.total == Decimal("10.00")
    mock_collection.find_one.assert_called_once_with({"family": "invoice", "number": "INV-000001"}, session="s")

@pytest.mark.asyncio
async def test_document_save_replaces_by_family_and_number(mock_collection):
    repo = MongoDocumentRepository(mock_collection, DocumentHeader)
    await repo.save(Invoice(id="65a000000000000000000001", number="INV-000003"))
    filter_, data = mock_collection.replace_one.call_args[0]
    assert filter_ == {"family": "invoice", "number": "INV-000003"}
    assert "_id" not in data

@pytest.mark.asyncio
async def test_ledger_append_uses_insert_many(mock_collection):
    mock_collection.insert_many = AsyncMock(return_value=MagicMock(inserted_ids=["a", "b"]))
    repo = MongoLedgerRepository(mock_collection, LedgerEntry)
    rows = [LedgerEntry(account_code="1110", sequence=1, transaction_date=date(2024, 1, 1), debit=5, balance=5),
            LedgerEntry(account_code="4000", sequence=1, transaction_date=date(2024, 1, 1), credit=5, balance=5)]

    stored = await repo.append(rows)
    assert [r.id for r in stored] == ["a", "b"]
    docs = mock_collection.insert_many.call_args[0][0]
    assert docs[0]["account_code"] == "1110"
    assert mock_collection.insert_many.call_args.kwargs["ordered"] is True

@pytest.mark.asyncio
async def test_unit_of_work_aborts_without_commit():
    session = MagicMock()
    session.in_transaction = True
    session.abort_transaction = AsyncMock()
    session.commit_transaction = AsyncMock()
    session.end_session = AsyncMock()
    client = MagicMock()
    client.start_session = AsyncMock(return_value=session)

    with pytest.raises(RuntimeError):
        async with MongoUnitOfWork(client, MagicMock()):
            raise RuntimeError("boom")

    session.start_transaction.assert_called_once()
    session.abort_transaction.assert_awaited_once()
    session.commit_transaction.assert_not_called()
    session.end_session.assert_awaited_once()

@pytest.mark.asyncio
async def test_unit_of_work_commit():
    session = MagicMock()
    session.commit_transaction = AsyncMock()
    session.abort_transaction = AsyncMock()
    session.end_session = AsyncMock()
    client = MagicMock()
    client.start_session = AsyncMock(return_value=session)

    async with MongoUnitOfWork(client, MagicMock()) as uow:
        await uow.commit()

    session.commit_transaction.assert_awaited_once()
    session.abort_transaction.assert_not_called()

@pytest.mark.asyncio
async def test_duplicate_insert_is_sequence_conflict(mock_collection):
    mock_collection.insert_one = AsyncMock(side_effect=DuplicateKeyError("E11000 entry_number"))
    repo = MongoJournalRepository(mock_collection, JournalEntry)
    with pytest.raises(SequenceConflict):
        await repo.add(JournalEntry(entry_number="JE-000001"))

@pytest.mark.asyncio
async def test_payment_save_replaces_by_number(mock_collection):
    repo = MongoPaymentRepository(mock_collection, Payment, session="s")
    await repo.save(Payment(id="65a000000000000000000001", payment_number="PAY-000003", amount=5,
                            status=PaymentStatus.VOID))

    filter_, data = mock_collection.replace_one.call_args[0]
    assert filter_ == {"payment_number": "PAY-000003"}
    assert "_id" not in data
    assert data["status"] == "void"
