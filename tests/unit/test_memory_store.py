import pytest
from datetime import date
from types import SimpleNamespace
from erp_ledger.errors import SequenceConflict
from erp_ledger.models.accounting import JournalEntry, LedgerEntry
from erp_ledger.models.document import DocumentFamily, Quote
from erp_ledger.models.payment import Payment
from erp_ledger.repositories import memory
from erp_ledger.repositories.memory import InMemoryStore

def _row(code, sequence, balance=1):
    return LedgerEntry(account_code=code, sequence=sequence, transaction_date=date(2024, 1, 1), balance=balance)

@pytest.mark.asyncio
async def test_rollback_discards_writes():
    store = InMemoryStore()
    with pytest.raises(RuntimeError):
        async with store() as uow:
            await uow.documents.add(Quote(number="QT-000001"))
            await uow.sequences.issue(DocumentFamily.QUOTE, "QT")
            raise RuntimeError("boom")

    async with store() as uow:
        assert await uow.documents.get(DocumentFamily.QUOTE, "QT-000001") is None
        assert await uow.sequences.issue(DocumentFamily.QUOTE, "QT") == "QT-000001"

@pytest.mark.asyncio
async def test_exit_without_commit_rolls_back():
    store = InMemoryStore()
    async with store() as uow:
        await uow.ledger.append([_row("1110", 1)])
    async with store() as uow:
        assert await uow.ledger.list_for_account("1110") == []

@pytest.mark.asyncio
async def test_commit_publishes_and_assigns_ids():
    store = InMemoryStore()
    async with store() as uow:
        stored = await uow.documents.add(Quote(number="QT-000001"))
        await uow.commit()
    assert stored.id is not None

    async with store() as uow:
        quote = await uow.documents.get("quote", "QT-000001")
        assert quote.id == stored.id
        # Reads are copies; mutating one does not touch the store
        quote.notes = "changed"
        assert (await uow.documents.get("quote", "QT-000001")).notes is None

@pytest.mark.asyncio
async def test_duplicate_document_number():
    store = InMemoryStore()
    async with store() as uow:
        await uow.documents.add(Quote(number="QT-000001"))
        with pytest.raises(SequenceConflict):
            await uow.documents.add(Quote(number="QT-000001"))

@pytest.mark.asyncio
async def test_ledger_sequence_must_follow_latest():
    store = InMemoryStore()
    async with store() as uow:
        await uow.ledger.append([_row("1110", 1), _row("1110", 2, 2)])
        with pytest.raises(SequenceConflict):
            await uow.ledger.append([_row("1110", 2)])
        latest = await uow.ledger.latest_for_account("1110")
        assert latest.sequence == 2
        assert await uow.ledger.latest_for_account("4000") is None

@pytest.mark.asyncio
async def test_duplicate_journal_entry_and_payment_numbers():
    store = InMemoryStore()
    entry = JournalEntry(entry_number="JE-000001", description="first")
    async with store() as uow:
        await uow.journal.add(entry)
        with pytest.raises(SequenceConflict):
            await uow.journal.add(entry.model_copy(update={"description": "second"}))
        assert (await uow.journal.get("JE-000001")).description == "first"

        await uow.payments.add(Payment(payment_number="PAY-000001", amount=10))
        with pytest.raises(SequenceConflict):
            await uow.payments.add(Payment(payment_number="PAY-000001", amount=20))

@pytest.mark.asyncio
async def test_failed_snapshot_releases_lock(monkeypatch):
    store = InMemoryStore()

    def broken_copy(state):
        raise RuntimeError("copy failed")

    monkeypatch.setattr(memory, "copy", SimpleNamespace(deepcopy=broken_copy))
    with pytest.raises(RuntimeError):
        async with store():
            pass
    assert not store.lock.locked()
