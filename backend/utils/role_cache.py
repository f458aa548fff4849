from datetime import datetime
from pymongo.errors import PyMongoError


class CacheUnavailable(Exception):
    pass


class MongoKeyValueCache:
    """
    Durable key/value store for client-side state (role cache entries).
    Last writer wins; there is no cross-request locking.
    """

    def __init__(self, db, collection: str = "client_cache"):
        self.collection = db[collection]

    async def get(self, key: str):
        try:
            doc = await self.collection.find_one({"key": key})
        except PyMongoError as exc:
            raise CacheUnavailable(str(exc)) from exc
        return doc.get("value") if doc else None

    async def set(self, key: str, value) -> None:
        try:
            await self.collection.update_one(
                {"key": key},
                {"$set": {"value": value, "updated_at": datetime.utcnow()}},
                upsert=True,
            )
        except PyMongoError as exc:
            raise CacheUnavailable(str(exc)) from exc

    async def remove(self, key: str) -> None:
        try:
            await self.collection.delete_one({"key": key})
        except PyMongoError as exc:
            raise CacheUnavailable(str(exc)) from exc
