from datetime import datetime

from models.user import Principal


async def log_audit(
    db,
    *,
    actor: Principal,
    action: str,
    target_id: str | None = None,
    metadata: dict | None = None,
):
    """Append-only record of an admin action on the user directory."""
    await db.audit_logs.insert_one({
        "actor_id": actor.id,
        "actor_email": actor.email,
        "actor_role": actor.role.value,
        "action": action,
        "target_id": target_id,
        "metadata": metadata or {},
        "created_at": datetime.utcnow(),
    })
