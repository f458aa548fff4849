from pymongo import ASCENDING, DESCENDING
from pymongo.errors import OperationFailure


def _normalize_key_pairs(keys):
    return [(k, v) for k, v in keys]


async def _create_index_safe(collection, keys, **kwargs):
    """
    Create index, replacing any index on the same key pattern whose
    options conflict (Mongo codes 85/86).
    """
    try:
        await collection.create_index(keys, **kwargs)
        return
    except OperationFailure as e:
        if getattr(e, "code", None) not in {85, 86}:
            raise

    wanted = _normalize_key_pairs(keys)
    stale = [
        idx["name"]
        async for idx in collection.list_indexes()
        if _normalize_key_pairs(idx.get("key", {}).items()) == wanted
        and idx.get("name") != kwargs.get("name")
    ]
    for name in stale:
        await collection.drop_index(name)

    await collection.create_index(keys, **kwargs)


async def ensure_indexes(db):
    # users: directory lookups by email
    await _create_index_safe(
        db.users,
        [("email", ASCENDING)],
        name="uniq_user_email",
        unique=True,
    )
    await _create_index_safe(db.users, [("role", ASCENDING), ("created_at", DESCENDING)], name="users_by_role")

    # client cache: one document per key
    await _create_index_safe(
        db.client_cache,
        [("key", ASCENDING)],
        name="uniq_cache_key",
        unique=True,
    )

    # orders: buyer list and manager queues
    await _create_index_safe(db.orders, [("buyer_id", ASCENDING), ("created_at", DESCENDING)], name="orders_by_buyer")
    await _create_index_safe(db.orders, [("status", ASCENDING), ("created_at", DESCENDING)], name="orders_by_status")

    await _create_index_safe(db.audit_logs, [("created_at", DESCENDING)], name="audit_by_time")
