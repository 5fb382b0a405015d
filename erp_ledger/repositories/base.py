from typing import Generic, TypeVar, Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError
from erp_ledger.errors import SequenceConflict
from erp_ledger.models.base import MongoModel

T = TypeVar("T", bound=MongoModel)

class BaseRepository(Generic[T]):
    """
    Motor collection wrapper. Every call carries the unit of work's session so
    reads and writes land in the same transaction.
    """

    def __init__(self, collection: AsyncIOMotorCollection, model_cls: type[T],
                 session: Optional[AsyncIOMotorClientSession] = None):
        self.collection = collection
        self.model_cls = model_cls
        self.session = session

    def _load(self, doc: Dict[str, Any]) -> T:
        return self.model_cls.from_mongo(doc)

    async def get_by_field(self, field: str, value: Any) -> Optional[T]:
        """Get a document by a specific field."""
        doc = await self.collection.find_one({field: value}, session=self.session)
        return self._load(doc) if doc else None

    async def find(self, filter: Optional[Dict[str, Any]] = None,
                   sort: Optional[List[tuple]] = None, limit: int = 0) -> List[T]:
        """List documents matching a filter, optionally sorted."""
        cursor = self.collection.find(filter or {}, session=self.session)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(length=limit or None)
        return [self._load(doc) for doc in docs]

    async def create(self, model: T) -> T:
        """Insert a new document and return the model with its id."""
        data = model.to_mongo()
        try:
            result = await self.collection.insert_one(data, session=self.session)
        except DuplicateKeyError as e:
            raise SequenceConflict(f"{self.model_cls.__name__} already exists",
                                   details={"collection": self.collection.name}) from e
        return model.model_copy(update={"id": str(result.inserted_id)})

    async def replace(self, filter: Dict[str, Any], model: T) -> T:
        """Replace the single document matching ``filter`` with ``model``."""
        data = model.to_mongo()
        data.pop("_id", None)
        await self.collection.replace_one(filter, data, session=self.session)
        return model
