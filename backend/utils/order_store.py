import logging
from datetime import datetime
from typing import Iterable, List, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import PyMongoError

from models.order import OrderRecord, OrderStatus
from models.product import Product
from utils.order_lifecycle import InvalidTransition
from utils.serializers import event_to_doc, order_from_doc, order_to_doc, product_from_doc

logger = logging.getLogger(__name__)


class OrderStoreFailure(Exception):
    """Persistence failed; the caller may retry the same action."""


def _oid(value: str):
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class MongoOrderStore:
    def __init__(self, db):
        self.db = db

    def new_order_id(self) -> str:
        return str(ObjectId())

    async def get_product(self, product_id: str) -> Product | None:
        oid = _oid(product_id)
        if oid is None:
            return None
        try:
            doc = await self.db.products.find_one({"_id": oid})
        except PyMongoError as exc:
            logger.exception("Product lookup failed: %s", product_id)
            raise OrderStoreFailure("Could not load product") from exc
        return product_from_doc(doc) if doc else None

    async def insert_order(self, order: OrderRecord) -> OrderRecord:
        try:
            await self.db.orders.insert_one(order_to_doc(order))
        except PyMongoError as exc:
            logger.exception("Order insert failed: %s", order.id)
            raise OrderStoreFailure("Could not place order") from exc
        return order

    async def get_order(self, order_id: str) -> OrderRecord | None:
        oid = _oid(order_id)
        if oid is None:
            return None
        try:
            doc = await self.db.orders.find_one({"_id": oid})
        except PyMongoError as exc:
            logger.exception("Order lookup failed: %s", order_id)
            raise OrderStoreFailure("Could not load order") from exc
        return order_from_doc(doc) if doc else None

    async def list_by_buyer(self, buyer_id: str) -> List[OrderRecord]:
        try:
            cursor = self.db.orders.find({"buyer_id": buyer_id}).sort("created_at", -1)
            return [order_from_doc(doc) async for doc in cursor]
        except PyMongoError as exc:
            logger.exception("Order listing failed for buyer %s", buyer_id)
            raise OrderStoreFailure("Could not load orders") from exc

    async def list_by_status(
        self,
        statuses: Iterable[OrderStatus] | None = None,
        *,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[int, List[OrderRecord]]:
        query = {}
        if statuses is not None:
            query["status"] = {"$in": [OrderStatus(s).value for s in statuses]}
        try:
            total = await self.db.orders.count_documents(query)
            cursor = self.db.orders.find(query).sort("created_at", -1).skip(skip).limit(limit)
            return total, [order_from_doc(doc) async for doc in cursor]
        except PyMongoError as exc:
            logger.exception("Order listing failed for %s", query)
            raise OrderStoreFailure("Could not load orders") from exc

    async def save_transition(self, before: OrderRecord, after: OrderRecord) -> OrderRecord:
        """
        Persist `after`, which must be `before` plus one event. The write
        only lands if the stored order is still in `before.status`.
        """
        event = after.latest_event
        try:
            result = await self.db.orders.update_one(
                {"_id": ObjectId(before.id), "status": before.status.value},
                {
                    "$set": {"status": after.status.value, "updated_at": datetime.utcnow()},
                    "$push": {"history": event_to_doc(event)},
                },
            )
        except PyMongoError as exc:
            logger.exception("Order status update failed: %s", before.id)
            raise OrderStoreFailure("Could not update order status") from exc

        if result.matched_count == 0:
            current = await self.get_order(before.id)
            current_status = current.status if current else before.status
            raise InvalidTransition(
                current_status,
                after.status,
                "Order was changed by someone else, reload and try again",
            )
        return after
