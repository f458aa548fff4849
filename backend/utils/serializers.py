from bson import ObjectId
from datetime import datetime

from models.order import OrderEvent, OrderRecord, ProductSnapshot
from models.product import Product


def serialize_object_id(value):
    return str(value) if isinstance(value, ObjectId) else value


def _isoformat(value):
    return value.isoformat() if isinstance(value, datetime) else None


# ======================================================
# MONGO <-> MODELS
# ======================================================

def event_to_doc(event: OrderEvent) -> dict:
    return {
        "status": event.status.value,
        "location": event.location,
        "notes": event.notes,
        "occurred_at": event.occurred_at,
    }


def order_to_doc(order: OrderRecord) -> dict:
    return {
        "_id": ObjectId(order.id),
        "buyer_id": order.buyer_id,
        "product_id": order.product_id,
        "product_snapshot": {
            "title": order.product_snapshot.title,
            "unit_price": order.product_snapshot.unit_price,
        },
        "quantity": order.quantity,
        "unit_price": order.unit_price,
        "total_price": order.total_price,
        "delivery_address": order.delivery_address,
        "contact_number": order.contact_number,
        "payment_option": order.payment_option,
        "status": order.status.value,
        "created_at": order.created_at,
        "updated_at": order.created_at,
        "history": [event_to_doc(e) for e in order.history],
    }


def order_from_doc(doc: dict) -> OrderRecord:
    return OrderRecord(
        id=str(doc["_id"]),
        buyer_id=serialize_object_id(doc["buyer_id"]),
        product_id=serialize_object_id(doc["product_id"]),
        product_snapshot=ProductSnapshot(**doc["product_snapshot"]),
        quantity=doc["quantity"],
        unit_price=doc["unit_price"],
        total_price=doc["total_price"],
        delivery_address=doc["delivery_address"],
        contact_number=doc["contact_number"],
        payment_option=doc["payment_option"],
        status=doc["status"],
        created_at=doc["created_at"],
        history=tuple(OrderEvent(**e) for e in doc.get("history", [])),
    )


def product_from_doc(doc: dict) -> Product:
    return Product(
        id=str(doc["_id"]),
        title=doc["title"],
        price=doc["price"],
        minimum_order_quantity=doc.get("minimum_order_quantity", 1),
        available_quantity=doc.get("available_quantity", 0),
        payment_options=doc.get("payment_options") or [],
    )


# ======================================================
# API
# ======================================================

def serialize_event(event: OrderEvent) -> dict:
    return {
        "status": event.status.value,
        "location": event.location,
        "notes": event.notes,
        "occurred_at": _isoformat(event.occurred_at),
    }


def serialize_order(order: OrderRecord, allowed_transitions=None) -> dict:
    data = {
        "id": order.id,
        "buyer_id": order.buyer_id,
        "product_id": order.product_id,
        "product_snapshot": {
            "title": order.product_snapshot.title,
            "unit_price": order.product_snapshot.unit_price,
        },
        "quantity": order.quantity,
        "unit_price": order.unit_price,
        "total_price": order.total_price,
        "delivery_address": order.delivery_address,
        "contact_number": order.contact_number,
        "payment_option": order.payment_option,
        "status": order.status.value,
        "created_at": _isoformat(order.created_at),
        "history": [serialize_event(e) for e in order.history],
    }
    if allowed_transitions is not None:
        data["allowed_transitions"] = [s.value for s in allowed_transitions]
    return data


def serialize_user(user: dict) -> dict:
    return {
        "id": serialize_object_id(user["_id"]),
        "email": user.get("email"),
        "display_name": user.get("display_name", ""),
        "role": user.get("role", "buyer"),
        "status": user.get("status", "active"),
        "created_at": _isoformat(user.get("created_at")),
    }
