import asyncio
from motor.motor_asyncio import AsyncIOMotorClient

from erp_ledger.config import settings
from erp_ledger.models.config import default_chart

async def seed_chart():
    print(f"Connecting to {settings.MONGODB_URL}...")
    client = AsyncIOMotorClient(settings.MONGODB_URL)
    db = client[settings.DB_NAME]

    print("Seeding Chart of Accounts...")
    for account in default_chart(settings):
        data = account.to_mongo()
        # Never overwrite an existing account's type; only fill in missing accounts
        await db.accounts.update_one(
            {"code": account.code},
            {"$setOnInsert": data},
            upsert=True
        )
        print(f"  {account.code} {account.name} ({account.type.value})")

    print("Seeding complete.")
    client.close()

if __name__ == "__main__":
    asyncio.run(seed_chart())
