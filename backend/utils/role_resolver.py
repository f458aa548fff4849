import logging
import time

from config.constants import ROLE_CACHE_KEY, ROLE_CACHE_TIMESTAMP_KEY, ROLE_CACHE_TTL
from models.user import Role
from utils.role_cache import CacheUnavailable
from utils.user_directory import DirectoryLookupFailure

logger = logging.getLogger(__name__)

# least privileged; used whenever the directory cannot tell us better
FALLBACK_ROLE = Role.BUYER


def _coerce_role(value) -> Role:
    try:
        return Role(value)
    except ValueError:
        return FALLBACK_ROLE


class RoleResolver:
    """
    Single reader of cached role state.

    A cache entry is two keys per principal (role and the epoch-seconds
    timestamp it was fetched at). Entries younger than `ttl_seconds` are
    served without touching the directory.
    """

    def __init__(self, cache, directory, *, ttl_seconds: float = ROLE_CACHE_TTL, clock=time.time):
        self.cache = cache
        self.directory = directory
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    @staticmethod
    def _keys(email: str):
        email = email.lower()
        return f"{ROLE_CACHE_KEY}:{email}", f"{ROLE_CACHE_TIMESTAMP_KEY}:{email}"

    async def _read_cached(self, email: str) -> Role | None:
        role_key, ts_key = self._keys(email)
        try:
            role = await self.cache.get(role_key)
            fetched_at = await self.cache.get(ts_key)
        except CacheUnavailable as exc:
            logger.warning("Role cache read failed for %s, treating as miss: %s", email, exc)
            return None
        if role is None or fetched_at is None:
            return None

        try:
            age = self.clock() - float(fetched_at)
        except (TypeError, ValueError):
            return None

        if 0 <= age < self.ttl_seconds:
            return _coerce_role(role)
        return None

    async def _write(self, email: str, role: Role) -> None:
        role_key, ts_key = self._keys(email)
        try:
            await self.cache.set(role_key, role.value)
            await self.cache.set(ts_key, self.clock())
        except CacheUnavailable as exc:
            # next lookup misses and asks the directory again
            logger.warning("Role cache write failed for %s: %s", email, exc)

    async def resolve_role(self, principal_email: str) -> Role:
        cached = await self._read_cached(principal_email)
        if cached is not None:
            logger.debug("Role cache hit for %s", principal_email)
            return cached

        try:
            entry = await self.directory.lookup(principal_email)
            role = _coerce_role((entry or {}).get("role"))
        except DirectoryLookupFailure as exc:
            logger.warning(
                "Role lookup failed for %s, using %s: %s",
                principal_email, FALLBACK_ROLE.value, exc,
            )
            role = FALLBACK_ROLE

        await self._write(principal_email, role)
        return role

    async def prime(self, principal_email: str, role) -> Role:
        role = _coerce_role(role)
        await self._write(principal_email, role)
        return role

    async def invalidate(self, principal_email: str) -> None:
        for key in self._keys(principal_email):
            await self.cache.remove(key)
