"""
Session store: session-id -> user-id with TTL expiry.

Redis backs sessions in deployed environments. The in-process store
exists for local single-process runs and the test suite.
"""
import logging
import threading
import time
from typing import Dict, Optional, Tuple
from uuid import UUID

from redis.exceptions import RedisError

from core.cache import cache_key, get_redis_client
from core.config import settings
from core.security import new_session_id

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session"


class SessionStore:
    """Interface shared by the Redis and in-process stores."""

    def create(self, user_id: UUID) -> str:
        session_id = new_session_id()
        self.set(session_id, user_id, settings.SESSION_TTL_S)
        return session_id

    def set(self, session_id: str, user_id: UUID, ttl_s: int) -> None:
        raise NotImplementedError

    def get(self, session_id: str) -> Optional[UUID]:
        raise NotImplementedError

    def delete(self, session_id: str) -> None:
        raise NotImplementedError


class RedisSessionStore(SessionStore):
    def __init__(self, client):
        self.client = client

    def set(self, session_id: str, user_id: UUID, ttl_s: int) -> None:
        self.client.setex(cache_key(SESSION_KEY_PREFIX, session_id), ttl_s, str(user_id))

    def get(self, session_id: str) -> Optional[UUID]:
        try:
            value = self.client.get(cache_key(SESSION_KEY_PREFIX, session_id))
        except RedisError as e:
            logger.warning(f"Session lookup failed: {e}")
            return None
        if not value:
            return None
        try:
            return UUID(value)
        except ValueError:
            return None

    def delete(self, session_id: str) -> None:
        self.client.delete(cache_key(SESSION_KEY_PREFIX, session_id))


class MemorySessionStore(SessionStore):
    """Thread-safe dict store. Sessions are lost on restart."""

    def __init__(self):
        # {session_id: (user_id, expires_at_monotonic)}
        self._sessions: Dict[str, Tuple[UUID, float]] = {}
        self._lock = threading.Lock()

    def set(self, session_id: str, user_id: UUID, ttl_s: int) -> None:
        with self._lock:
            self._sessions[session_id] = (user_id, time.monotonic() + ttl_s)

    def get(self, session_id: str) -> Optional[UUID]:
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                return None
            user_id, expires_at = entry
            if expires_at <= time.monotonic():
                del self._sessions[session_id]
                return None
            return user_id

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get or create the global session store for the configured backend."""
    global _session_store
    if _session_store is not None:
        return _session_store

    if settings.SESSION_BACKEND == "redis":
        client = get_redis_client()
        if client is not None:
            _session_store = RedisSessionStore(client)
            return _session_store
        if settings.ENVIRONMENT == "production":
            raise RuntimeError("SESSION_BACKEND=redis but Redis is unavailable")
        logger.warning("Redis unavailable, using in-process session store (NOT FOR PRODUCTION)")

    _session_store = MemorySessionStore()
    return _session_store
