"""Security context storage keyed by session id.

Storage Schema:
- social:context:{session_id} -> {authentication_json} (TTL: session lifetime)
"""

import json
import logging
import time
from typing import Optional

from redis.asyncio import Redis

from social_auth_service.domain.models import Authentication, SecurityContext

logger = logging.getLogger(__name__)


class RedisSecurityContextRepository:
    """Redis-backed security contexts with expiry"""

    def __init__(self, redis_client: Redis, ttl_seconds: int = 86400):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.key_pattern = "social:context:{}"

    async def load(self, session_id: Optional[str]) -> SecurityContext:
        """Load the context of a session; unknown sessions get an empty context"""
        if not session_id:
            return SecurityContext()

        try:
            raw = await self.redis.get(self.key_pattern.format(session_id))
        except Exception as e:
            logger.error(f"Failed to load security context for session: {e}")
            return SecurityContext()

        if not raw:
            return SecurityContext()
        return SecurityContext(authentication=Authentication.from_dict(json.loads(raw)))

    async def save(self, session_id: str, context: SecurityContext) -> None:
        if not context.is_authenticated:
            await self.clear(session_id)
            return
        await self.redis.setex(
            self.key_pattern.format(session_id),
            self.ttl_seconds,
            json.dumps(context.authentication.to_dict()),
        )

    async def clear(self, session_id: Optional[str]) -> None:
        if session_id:
            await self.redis.delete(self.key_pattern.format(session_id))


class InMemorySecurityContextRepository:
    """Security contexts held in process memory

    WARNING: only suitable for single-instance deployments and tests.
    """

    def __init__(self, ttl_seconds: int = 86400):
        self.ttl_seconds = ttl_seconds
        self._contexts: dict[str, tuple[float, dict]] = {}

    async def load(self, session_id: Optional[str]) -> SecurityContext:
        entry = self._contexts.get(session_id) if session_id else None
        if entry is None:
            return SecurityContext()

        expires_at, data = entry
        if time.monotonic() >= expires_at:
            del self._contexts[session_id]
            return SecurityContext()
        return SecurityContext(authentication=Authentication.from_dict(data))

    async def save(self, session_id: str, context: SecurityContext) -> None:
        now = time.monotonic()
        self._purge_expired(now)
        if not context.is_authenticated:
            await self.clear(session_id)
            return
        self._contexts[session_id] = (
            now + self.ttl_seconds,
            context.authentication.to_dict(),
        )

    async def clear(self, session_id: Optional[str]) -> None:
        if session_id:
            self._contexts.pop(session_id, None)

    def _purge_expired(self, now: float) -> None:
        expired = [sid for sid, (expires_at, _) in self._contexts.items() if now >= expires_at]
        for sid in expired:
            del self._contexts[sid]
        if expired:
            logger.debug(f"Removed {len(expired)} expired security context(s)")
