from fastapi import APIRouter, Depends, HTTPException, Query

from config.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from database import get_db
from models.user import Principal, PrincipalStatus, Role, UserUpdate
from utils.audit import log_audit
from utils.dependencies import get_role_resolver, get_user_directory
from utils.route_guard import role_home
from utils.security import get_current_principal, require_role
from utils.serializers import serialize_user

router = APIRouter(prefix="/api/users", tags=["Users"])


# =====================================================
# DIRECTORY LOOKUP
# =====================================================

@router.get("/email/{email}")
async def get_user_by_email(
    email: str,
    principal: Principal = Depends(get_current_principal),
    directory=Depends(get_user_directory),
):
    entry = await directory.lookup(email)
    if not entry:
        raise HTTPException(404, "User not found")
    return {"email": email.lower(), "role": entry.get("role") or "buyer", "status": entry.get("status") or "active"}


@router.get("/me")
async def me(principal: Principal = Depends(get_current_principal)):
    return {
        "id": principal.id,
        "email": principal.email,
        "display_name": principal.display_name,
        "role": principal.role.value,
        "status": principal.status.value,
        "home": role_home(principal.role),
    }


# =====================================================
# ADMIN
# =====================================================

@router.get("")
async def list_users(
    role: Role | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    admin=Depends(require_role(Role.ADMIN)),
    directory=Depends(get_user_directory),
):
    total, users = await directory.list(
        role=role.value if role else None,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "users": [serialize_user(u) for u in users],
    }


@router.patch("/{user_id}")
async def update_user(
    user_id: str,
    data: UserUpdate,
    admin: Principal = Depends(require_role(Role.ADMIN)),
    directory=Depends(get_user_directory),
    resolver=Depends(get_role_resolver),
    db=Depends(get_db),
):
    changes = {k: v.value for k, v in data.model_dump(exclude_none=True).items()}
    if not changes:
        raise HTTPException(400, "Nothing to update")

    user = await directory.find_by_id(user_id)
    if not user:
        raise HTTPException(404, "User not found")

    if user_id == admin.id:
        if changes.get("role", Role.ADMIN.value) != Role.ADMIN.value:
            raise HTTPException(400, "Admins cannot demote themselves")
        if changes.get("status", PrincipalStatus.ACTIVE.value) != PrincipalStatus.ACTIVE.value:
            raise HTTPException(400, "Admins cannot deactivate themselves")

    updated = await directory.update(user_id, changes)

    # the next resolution must see the new role
    await resolver.invalidate(user["email"])

    await log_audit(
        db,
        actor=admin,
        action="USER_UPDATED",
        target_id=user_id,
        metadata={"changes": changes},
    )

    return {"message": "User updated", "user": serialize_user(updated)}
