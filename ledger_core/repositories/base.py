from typing import Generic, TypeVar, Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorCollection
from ledger_core.models.base import MongoModel

T = TypeVar("T", bound=MongoModel)

class BaseRepository(Generic[T]):
    def __init__(self, collection: AsyncIOMotorCollection, model_cls: type[T]):
        self.collection = collection
        self.model_cls = model_cls

    @staticmethod
    def _scoped(filter: Dict[str, Any], company_id: Optional[str]) -> Dict[str, Any]:
        """Adds the tenant filter when a company is given."""
        if company_id is None:
            return dict(filter)
        return {**filter, "company_id": company_id}

    async def list(self, filter: Optional[Dict[str, Any]] = None, sort: Optional[List] = None) -> List[T]:
        """Every document matching the filter. The cursor is drained in batches, never capped."""
        cursor = self.collection.find(filter or {})
        if sort:
            cursor = cursor.sort(sort)
        return [self.model_cls.from_mongo(doc) async for doc in cursor]

    async def create(self, model: T) -> T:
        """Create a new document. Models may be frozen, so a copy carrying the id is returned."""
        data = model.to_mongo()
        result = await self.collection.insert_one(data)
        return model.model_copy(update={"id": str(result.inserted_id)})
