"""
Client-side cache of the signed-in session.

The cached value is the only record of "this client is authenticated". It is
written after a successful sign-in and cleared on logout, when a background
refresh fails, or when it is older than the configured maximum age.
"""

import json
import ssl
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from urllib.parse import urlparse

import redis
from redis.exceptions import RedisError

from nayscake.core.config import settings
from nayscake.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CACHE_KEY = "nayscake:session"


@dataclass(frozen=True)
class CachedSession:
    token: str
    user_id: str
    username: str
    stored_at: datetime

    def to_json(self) -> str:
        data = asdict(self)
        data["stored_at"] = self.stored_at.isoformat()
        return json.dumps(data)

    @classmethod
    def from_json(cls, raw: str) -> "CachedSession":
        data = json.loads(raw)
        return cls(
            token=data["token"],
            user_id=str(data["user_id"]),
            username=data["username"],
            stored_at=datetime.fromisoformat(data["stored_at"]),
        )

    def age(self, now: Optional[datetime] = None) -> timedelta:
        return (now or datetime.now(timezone.utc)) - self.stored_at


class MemorySessionStore:
    """Process-local key/value store."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class RedisSessionStore:
    """Redis-backed store; entries expire with the session max age."""

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisSessionStore":
        # Serverless endpoints only accept TLS
        if "serverless" in redis_url and redis_url.startswith("redis://"):
            redis_url = redis_url.replace("redis://", "rediss://", 1)

        if urlparse(redis_url).scheme == "rediss":
            ssl_context = ssl.create_default_context()
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
                retry_on_timeout=True,
                ssl=True,
                ssl_context=ssl_context,
            )
        else:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
                retry_on_timeout=True,
            )
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.client.setex(key, ttl_seconds, value)

    def delete(self, key: str) -> None:
        self.client.delete(key)


class SessionCache:
    """load/store/clear over a key/value store with a staleness limit."""

    def __init__(
        self,
        backend=None,
        max_age_seconds: Optional[int] = None,
        key: str = DEFAULT_CACHE_KEY,
    ):
        self.backend = backend if backend is not None else MemorySessionStore()
        self.max_age = timedelta(
            seconds=max_age_seconds or settings.SESSION_MAX_AGE_SECONDS
        )
        self.key = key

    def load(self, now: Optional[datetime] = None) -> Optional[CachedSession]:
        """Return the cached session, or None if absent, unreadable or stale."""
        try:
            raw = self.backend.get(self.key)
        except RedisError as e:
            logger.warning(f"Failed to read session from cache: {e}")
            return None
        if not raw:
            return None

        try:
            session = CachedSession.from_json(raw)
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding unreadable cached session")
            self.clear()
            return None

        if session.age(now) > self.max_age:
            logger.info(
                "Cached session expired",
                extra={"username": session.username},
            )
            self.clear()
            return None
        return session

    def store(
        self,
        token: str,
        user_id: str,
        username: str,
        now: Optional[datetime] = None,
    ) -> CachedSession:
        session = CachedSession(
            token=token,
            user_id=str(user_id),
            username=username,
            stored_at=now or datetime.now(timezone.utc),
        )
        try:
            self.backend.set(
                self.key, session.to_json(), int(self.max_age.total_seconds())
            )
        except RedisError as e:
            logger.warning(
                f"Failed to write session to cache: {e}",
                extra={"username": username},
            )
        return session

    def clear(self) -> None:
        try:
            self.backend.delete(self.key)
        except RedisError as e:
            logger.warning(f"Failed to clear cached session: {e}")

    def is_authenticated(self) -> bool:
        return self.load() is not None


def build_session_cache() -> SessionCache:
    """Use Redis when REDIS_URL is configured, memory otherwise."""
    if settings.REDIS_URL:
        try:
            store = RedisSessionStore.from_url(settings.REDIS_URL)
            store.client.ping()
            return SessionCache(store)
        except RedisError as e:
            logger.warning(
                json.dumps(
                    {
                        "event": "session_cache_redis_connect_failed",
                        "error": str(e),
                        "note": "Falling back to in-memory session cache.",
                    }
                )
            )
    return SessionCache(MemorySessionStore())
