import asyncio
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING, IndexModel

from erp_ledger.config import settings

async def init_db():
    print(f"Connecting to {settings.MONGODB_URL}...")
    client = AsyncIOMotorClient(settings.MONGODB_URL)
    db = client[settings.DB_NAME]

    # 1. Chart of Accounts
    print("Creating indexes on 'accounts'...")
    await db.accounts.create_indexes([
        IndexModel([("code", ASCENDING)], unique=True),
        IndexModel([("parent_code", ASCENDING)]),
        IndexModel([("type", ASCENDING), ("active", ASCENDING)]),
    ])

    # 2. Quotes, sales orders and invoices (numbers are unique per family)
    print("Creating indexes on 'documents'...")
    await db.documents.create_indexes([
        IndexModel([("family", ASCENDING), ("number", ASCENDING)], unique=True),
        IndexModel([("family", ASCENDING), ("status", ASCENDING)]),
        IndexModel([("customer_id", ASCENDING)]),
        IndexModel([("family", ASCENDING), ("due_date", ASCENDING)]),
    ])

    # 3. Payments
    print("Creating indexes on 'payments'...")
    await db.payments.create_indexes([
        IndexModel([("payment_number", ASCENDING)], unique=True),
        IndexModel([("invoice_number", ASCENDING), ("payment_date", ASCENDING)]),
    ])

    # 4. Journal Entries
    print("Creating indexes on 'journal_entries'...")
    await db.journal_entries.create_indexes([
        IndexModel([("entry_number", ASCENDING)], unique=True, sparse=True),
        IndexModel([("source_type", ASCENDING), ("source_number", ASCENDING)]),
        IndexModel([("entry_date", DESCENDING)]),
    ])

    # 5. Ledger: one running-balance slot per (account, sequence)
    print("Creating indexes on 'ledger_entries'...")
    await db.ledger_entries.create_indexes([
        IndexModel([("account_code", ASCENDING), ("sequence", ASCENDING)], unique=True),
        IndexModel([("reference_type", ASCENDING), ("reference_number", ASCENDING)]),
        IndexModel([("transaction_date", DESCENDING)]),
    ])

    # Sequences are keyed by _id ("family:prefix"), which is already unique

    print("Database initialization complete.")
    client.close()

if __name__ == "__main__":
    asyncio.run(init_db())
