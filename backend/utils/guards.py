from fastapi import HTTPException
from bson import ObjectId

# -------------------------------
# ObjectId Guard
# -------------------------------

def parse_object_id(value: str, name: str = "id") -> ObjectId:
    try:
        return ObjectId(value)
    except Exception:
        raise HTTPException(status_code=400, detail=f"Invalid {name}")


# -------------------------------
# Order State Guard
# -------------------------------

def assert_consistent_order(order):
    latest = order.latest_event
    if latest is None or latest.status != order.status:
        raise HTTPException(
            status_code=500,
            detail=f"Corrupt order state: status '{order.status.value}' does not match its history"
        )
    return order
