from datetime import datetime
from pymongo.errors import DuplicateKeyError, PyMongoError

from utils.guards import parse_object_id


class DirectoryLookupFailure(Exception):
    pass


class MongoUserDirectory:
    """
    Owner of user records and their role/status. Everything else only
    reads roles through utils.role_resolver.
    """

    def __init__(self, db):
        self.users = db.users

    async def lookup(self, email: str) -> dict | None:
        """Role lookup by email: {"role", "status"} or None when unknown."""
        try:
            user = await self.users.find_one(
                {"email": email.lower()},
                {"role": 1, "status": 1},
            )
        except PyMongoError as exc:
            raise DirectoryLookupFailure(str(exc)) from exc

        if not user:
            return None
        return {"role": user.get("role"), "status": user.get("status")}

    async def find_by_email(self, email: str) -> dict | None:
        return await self.users.find_one({"email": email.lower()})

    async def find_by_id(self, user_id: str) -> dict | None:
        return await self.users.find_one({"_id": parse_object_id(user_id, "user_id")})

    async def create(self, *, email: str, password_hash: str, display_name: str) -> dict:
        now = datetime.utcnow()
        doc = {
            "email": email.lower(),
            "password": password_hash,
            "display_name": display_name,
            "role": "buyer",
            "status": "active",
            "created_at": now,
            "last_active_at": now,
        }
        try:
            await self.users.insert_one(doc)
        except DuplicateKeyError:
            raise ValueError("Email already registered")
        return doc

    async def update(self, user_id: str, changes: dict) -> dict | None:
        oid = parse_object_id(user_id, "user_id")
        await self.users.update_one(
            {"_id": oid},
            {"$set": {**changes, "updated_at": datetime.utcnow()}},
        )
        return await self.users.find_one({"_id": oid})

    async def list(self, *, role: str | None = None, skip: int = 0, limit: int = 10):
        query = {"role": role} if role else {}
        total = await self.users.count_documents(query)
        cursor = self.users.find(query, {"password": 0}).sort("created_at", -1).skip(skip).limit(limit)
        return total, [u async for u in cursor]
