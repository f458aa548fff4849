from fastapi import APIRouter, Depends, HTTPException

from models.user import LoginRequest, Principal, UserCreate
from utils.dependencies import get_role_resolver, get_user_directory
from utils.hash import hash_password, verify_password
from utils.jwt import create_access_token
from utils.route_guard import is_allowed, is_known_route, normalize_path, role_home
from utils.security import get_current_principal
from utils.serializers import serialize_user

router = APIRouter(prefix="/api/auth", tags=["Auth"])


# ======================
# Register
# ======================

@router.post("/register", status_code=201)
async def register(
    data: UserCreate,
    directory=Depends(get_user_directory),
):
    if await directory.find_by_email(data.email):
        raise HTTPException(400, "Email already registered")

    try:
        user = await directory.create(
            email=data.email,
            password_hash=hash_password(data.password),
            display_name=data.display_name,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))

    return {"message": "Registered successfully", "user": serialize_user(user)}


# ======================
# Login
# ======================

@router.post("/login")
async def login(
    data: LoginRequest,
    directory=Depends(get_user_directory),
    resolver=Depends(get_role_resolver),
):
    user = await directory.find_by_email(data.email)
    if not user or not verify_password(data.password, user.get("password")):
        raise HTTPException(401, "Invalid email or password")

    # fresh login: trust the directory record and restart the cache window
    role = await resolver.prime(data.email, user.get("role"))

    # only dashboard routes are remembered; anything else could leave the site
    redirect_to = role_home(role)
    if data.return_to:
        target = normalize_path(data.return_to)
        if is_known_route(target) and is_allowed(role, target):
            redirect_to = target

    return {
        "access_token": create_access_token(data.email),
        "token_type": "bearer",
        "role": role.value,
        "redirect_to": redirect_to,
    }


# ======================
# Logout
# ======================

@router.post("/logout")
async def logout(
    principal: Principal = Depends(get_current_principal),
    resolver=Depends(get_role_resolver),
):
    await resolver.invalidate(principal.email)
    return {"message": "Logged out"}
