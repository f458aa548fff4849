from fastapi import APIRouter, Depends, Query

from models.user import Principal
from utils.dependencies import get_route_guard
from utils.route_guard import ROLE_POLICY
from utils.security import get_navigation_principal

router = APIRouter(prefix="/api/navigation", tags=["Navigation"])


@router.get("/authorize")
async def authorize_path(
    path: str = Query(..., min_length=1),
    principal: Principal | None = Depends(get_navigation_principal),
    guard=Depends(get_route_guard),
):
    decision = await guard.authorize(principal, path)
    return decision.to_dict()


@router.get("/policy")
async def role_policy():
    return {
        pattern: sorted(role.value for role in roles)
        for pattern, roles in ROLE_POLICY.items()
    }
