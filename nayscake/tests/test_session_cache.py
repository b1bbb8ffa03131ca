"""
Tests for the client session cache.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

from nayscake.services.session_cache import (
    DEFAULT_CACHE_KEY,
    CachedSession,
    MemorySessionStore,
    RedisSessionStore,
    SessionCache,
    build_session_cache,
)

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


class TestCachedSession:
    def test_json_round_trip(self):
        session = CachedSession("tok_abc", "ba_user_123", "sari", NOW)

        assert CachedSession.from_json(session.to_json()) == session

    def test_age(self):
        session = CachedSession("tok_abc", "ba_user_123", "sari", NOW)

        assert session.age(NOW + timedelta(minutes=5)) == timedelta(minutes=5)


class TestSessionCache:
    def test_empty_cache(self):
        cache = SessionCache(MemorySessionStore())

        assert cache.load() is None
        assert cache.is_authenticated() is False

    def test_store_then_load(self):
        cache = SessionCache(MemorySessionStore(), max_age_seconds=3600)

        stored = cache.store("tok_abc", "ba_user_123", "sari", now=NOW)

        assert cache.load(now=NOW + timedelta(minutes=59)) == stored

    def test_stale_session_is_cleared(self):
        backend = MemorySessionStore()
        cache = SessionCache(backend, max_age_seconds=3600)
        cache.store("tok_abc", "ba_user_123", "sari", now=NOW)

        assert cache.load(now=NOW + timedelta(hours=1, seconds=1)) is None
        assert backend.get(DEFAULT_CACHE_KEY) is None

    def test_clear(self):
        cache = SessionCache(MemorySessionStore())
        cache.store("tok_abc", "ba_user_123", "sari")

        cache.clear()

        assert cache.load() is None

    def test_unreadable_entry_is_discarded(self):
        backend = MemorySessionStore()
        backend.set(DEFAULT_CACHE_KEY, "{not json", 60)
        cache = SessionCache(backend)

        assert cache.load() is None
        assert backend.get(DEFAULT_CACHE_KEY) is None

    def test_store_passes_max_age_as_ttl(self):
        backend = MagicMock()
        cache = SessionCache(backend, max_age_seconds=600, key="test:session")

        cache.store("tok_abc", 42, "sari", now=NOW)

        key, value, ttl = backend.set.call_args[0]
        assert key == "test:session"
        assert ttl == 600
        assert CachedSession.from_json(value).user_id == "42"

    def test_redis_read_failure_counts_as_signed_out(self):
        client = MagicMock()
        client.get.side_effect = RedisConnectionError("down")
        cache = SessionCache(RedisSessionStore(client))

        assert cache.load() is None

    def test_redis_write_failure_still_returns_session(self):
        client = MagicMock()
        client.setex.side_effect = RedisConnectionError("down")
        cache = SessionCache(RedisSessionStore(client))

        session = cache.store("tok_abc", "ba_user_123", "sari", now=NOW)

        assert session == CachedSession("tok_abc", "ba_user_123", "sari", NOW)


class TestRedisSessionStore:
    def test_set_uses_expiry(self):
        client = MagicMock()
        store = RedisSessionStore(client)

        store.set("k", "v", 30)

        client.setex.assert_called_once_with("k", 30, "v")

    @patch("nayscake.services.session_cache.redis.from_url")
    def test_serverless_url_upgraded_to_tls(self, mock_from_url):
        RedisSessionStore.from_url("redis://cache.serverless.example:6379")

        url = mock_from_url.call_args[0][0]
        assert url == "rediss://cache.serverless.example:6379"
        assert mock_from_url.call_args.kwargs["ssl"] is True

    @patch("nayscake.services.session_cache.redis.from_url")
    def test_plain_url(self, mock_from_url):
        RedisSessionStore.from_url("redis://localhost:6379")

        assert "ssl" not in mock_from_url.call_args.kwargs
        assert mock_from_url.call_args.kwargs["decode_responses"] is True


class TestBuildSessionCache:
    @patch("nayscake.services.session_cache.settings")
    def test_memory_without_redis_url(self, mock_settings):
        mock_settings.REDIS_URL = None
        mock_settings.SESSION_MAX_AGE_SECONDS = 60

        cache = build_session_cache()

        assert isinstance(cache.backend, MemorySessionStore)

    @patch("nayscake.services.session_cache.RedisSessionStore.from_url")
    @patch("nayscake.services.session_cache.settings")
    def test_falls_back_to_memory_when_redis_unreachable(
        self, mock_settings, mock_from_url
    ):
        mock_settings.REDIS_URL = "redis://localhost:6379"
        mock_settings.SESSION_MAX_AGE_SECONDS = 60
        mock_from_url.return_value.client.ping.side_effect = RedisConnectionError(
            "refused"
        )

        cache = build_session_cache()

        assert isinstance(cache.backend, MemorySessionStore)

    @patch("nayscake.services.session_cache.RedisSessionStore.from_url")
    @patch("nayscake.services.session_cache.settings")
    def test_uses_redis_when_reachable(self, mock_settings, mock_from_url):
        mock_settings.REDIS_URL = "redis://localhost:6379"
        mock_settings.SESSION_MAX_AGE_SECONDS = 60

        cache = build_session_cache()

        assert cache.backend is mock_from_url.return_value
