import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from erp_ledger.config import Settings, settings as default_settings
from erp_ledger.repositories.mongo import MongoUnitOfWork

logger = logging.getLogger(__name__)


class Database:
    """
    Owns the Motor client. The engine never sees it directly; it gets
    ``db.unit_of_work`` as its factory.

    Usage:
        db = Database()
        db.connect()
        engine = AccountingEngine(db.unit_of_work)
        ...
        db.close()
    """

    client: Optional[AsyncIOMotorClient] = None
    database: Optional[AsyncIOMotorDatabase] = None

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    def connect(self):
        """Create the client; Motor connects lazily on first use."""
        self.client = AsyncIOMotorClient(self.settings.MONGODB_URL, tz_aware=False)
        self.database = self.client[self.settings.DB_NAME]
        logger.info(f"Connected to MongoDB database {self.settings.DB_NAME}")

    def unit_of_work(self) -> MongoUnitOfWork:
        if self.client is None:
            raise RuntimeError("Database.connect() must be called before opening a unit of work")
        return MongoUnitOfWork(self.client, self.database)

    def close(self):
        """Close database connection."""
        if self.client:
            self.client.close()
            self.client = None
            logger.info("Disconnected from MongoDB")
