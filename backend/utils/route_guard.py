import logging
import posixpath
from dataclasses import dataclass
from types import MappingProxyType
from typing import FrozenSet, Optional, Union
from urllib.parse import unquote

from config.constants import DASHBOARD_ROOT, LOGIN_PATH, ROLE_HOME_PATHS
from models.user import Principal, Role, ThemePreference

logger = logging.getLogger(__name__)

ALL_ROLES = frozenset(Role)
STAFF_ROLES = frozenset({Role.MANAGER, Role.ADMIN})
ADMIN_ONLY = frozenset({Role.ADMIN})

# route pattern -> roles allowed to view it; an empty set means no restriction
ROLE_POLICY = MappingProxyType({
    DASHBOARD_ROOT: ALL_ROLES,
    "/dashboard/profile": ALL_ROLES,
    "/dashboard/track-order": ALL_ROLES,
    "/dashboard/my-orders": ALL_ROLES,
    "/dashboard/add-product": STAFF_ROLES,
    "/dashboard/manage-products": STAFF_ROLES,
    "/dashboard/pending-orders": STAFF_ROLES,
    "/dashboard/approved-orders": STAFF_ROLES,
    "/dashboard/manage-users": ADMIN_ONLY,
    "/dashboard/all-products": ADMIN_ONLY,
    "/dashboard/all-orders": ADMIN_ONLY,
})


# =====================================================
# DECISIONS
# =====================================================

@dataclass(frozen=True)
class Allow:
    path: str
    role: Role

    def to_dict(self) -> dict:
        return {"decision": "allow", "path": self.path, "role": self.role.value}


@dataclass(frozen=True)
class Redirect:
    target: str
    role: Role

    def to_dict(self) -> dict:
        return {"decision": "redirect", "target": self.target, "role": self.role.value}


@dataclass(frozen=True)
class Unauthenticated:
    return_to: str
    login_path: str = LOGIN_PATH

    def to_dict(self) -> dict:
        return {
            "decision": "unauthenticated",
            "login_path": self.login_path,
            "return_to": self.return_to,
        }


@dataclass(frozen=True)
class Pending:
    """Loading placeholder shown while the role is being resolved."""
    path: str
    theme: ThemePreference = ThemePreference.LIGHT

    def to_dict(self) -> dict:
        return {"decision": "pending", "path": self.path, "theme": self.theme.value}


Decision = Union[Allow, Redirect, Unauthenticated]


# =====================================================
# POLICY
# =====================================================

def normalize_path(path: str) -> str:
    """Canonical absolute path: no query, no dot segments, one leading slash."""
    path = unquote((path or "/").split("?", 1)[0].split("#", 1)[0]).replace("\\", "/")
    # posixpath keeps a leading "//", which clients read as another host
    path = posixpath.normpath("/" + path.lstrip("/"))
    return "/" + path.lstrip("/")


def is_known_route(path: str) -> bool:
    return bool(required_roles(path))


def required_roles(path: str) -> FrozenSet[Role]:
    """Roles for the longest policy pattern that `path` equals or sits under."""
    path = normalize_path(path)
    best = None
    for pattern in ROLE_POLICY:
        if path == pattern or path.startswith(pattern + "/"):
            if best is None or len(pattern) > len(best):
                best = pattern
    return ROLE_POLICY[best] if best else frozenset()


def role_home(role) -> str:
    return ROLE_HOME_PATHS[Role(role).value]


def is_allowed(role, path: str) -> bool:
    roles = required_roles(path)
    return not roles or Role(role) in roles


# home paths must never bounce their own role
for _role in Role:
    assert is_allowed(_role, role_home(_role)), _role


# =====================================================
# GUARD
# =====================================================

class RouteGuard:
    def __init__(self, resolver):
        self.resolver = resolver

    async def authorize(self, principal: Optional[Principal], path: str) -> Decision:
        path = normalize_path(path)

        if principal is None:
            return Unauthenticated(return_to=path)

        role = await self.resolver.resolve_role(principal.email)

        if is_allowed(role, path):
            return Allow(path=path, role=role)

        target = role_home(role)
        logger.debug("Redirecting %s (%s) from %s to %s", principal.email, role.value, path, target)
        return Redirect(target=target, role=role)


class NavigationSession:
    """
    One mounted view. While a role resolution is outstanding `decision`
    is Pending. Results that come back after the user navigated elsewhere
    or the session was closed are dropped.
    """

    def __init__(self, guard: RouteGuard, principal: Optional[Principal],
                 theme: ThemePreference = ThemePreference.LIGHT):
        self.guard = guard
        self.principal = principal
        self.theme = theme
        self.decision: Optional[Union[Decision, Pending]] = None
        self._generation = 0
        self._closed = False

    async def navigate(self, path: str) -> Optional[Decision]:
        if self._closed:
            return None

        self._generation += 1
        generation = self._generation
        self.decision = Pending(path=normalize_path(path), theme=self.theme)

        decision = await self.guard.authorize(self.principal, path)

        if self._closed or generation != self._generation:
            logger.debug("Discarding stale navigation result for %s", path)
            return None

        self.decision = decision
        return decision

    def close(self) -> None:
        self._closed = True
        self._generation += 1
