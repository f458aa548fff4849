from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from enum import Enum


class Role(str, Enum):
    BUYER = "buyer"
    MANAGER = "manager"
    ADMIN = "admin"


class PrincipalStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class ThemePreference(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class Principal(BaseModel):
    """
    Signed-in identity as seen by the dashboard.
    `role` is owned by the user directory and only cached here.
    """
    id: str
    email: EmailStr
    display_name: str = ""
    role: Role = Role.BUYER
    status: PrincipalStatus = PrincipalStatus.ACTIVE

    @property
    def is_suspended(self) -> bool:
        return self.status == PrincipalStatus.SUSPENDED


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    display_name: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    return_to: Optional[str] = None


class UserUpdate(BaseModel):
    role: Optional[Role] = None
    status: Optional[PrincipalStatus] = None
