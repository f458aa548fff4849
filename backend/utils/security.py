from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from models.user import Principal, Role
from utils.dependencies import get_role_resolver, get_user_directory
from utils.jwt import decode_token

security = HTTPBearer(auto_error=False)


async def get_optional_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    directory=Depends(get_user_directory),
    resolver=Depends(get_role_resolver),
) -> Principal | None:
    """
    Principal for the bearer token, or None when no token was sent.
    The role always comes from the role resolver, never from the user record.
    """
    if credentials is None:
        return None

    payload = decode_token(credentials.credentials)
    email = (payload or {}).get("sub")

    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    user = await directory.find_by_email(email)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    role = await resolver.resolve_role(email)

    return Principal(
        id=str(user["_id"]),
        email=user["email"],
        display_name=user.get("display_name", ""),
        role=role,
        status=user.get("status", "active"),
    )


async def get_current_principal(
    principal: Principal | None = Depends(get_optional_principal),
) -> Principal:
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return principal


def require_role(*roles: Role):
    allowed = {Role(r) for r in roles}

    async def checker(principal: Principal = Depends(get_current_principal)):
        if principal.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return checker


async def require_active(principal: Principal = Depends(get_current_principal)) -> Principal:
    if principal.is_suspended:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account suspended",
        )
    return principal


async def get_navigation_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    directory=Depends(get_user_directory),
    resolver=Depends(get_role_resolver),
) -> Principal | None:
    """
    Like get_optional_principal, but an expired, invalid or orphaned token
    counts as no principal so the caller is sent to login with its path kept.
    """
    try:
        return await get_optional_principal(credentials, directory, resolver)
    except HTTPException as e:
        if e.status_code != status.HTTP_401_UNAUTHORIZED:
            raise
        return None
