"""
Session stores: in-process TTL store and the Redis-backed store.
"""
from unittest.mock import MagicMock, patch
from uuid import uuid4

from redis.exceptions import ConnectionError as RedisConnectionError

from core.sessions import MemorySessionStore, RedisSessionStore


class TestMemorySessionStore:
    def test_create_get_delete(self):
        store = MemorySessionStore()
        user_id = uuid4()
        session_id = store.create(user_id)
        assert len(session_id) >= 32
        assert store.get(session_id) == user_id

        store.delete(session_id)
        assert store.get(session_id) is None

    def test_expired_session_is_gone(self):
        store = MemorySessionStore()
        user_id = uuid4()
        with patch("core.sessions.time.monotonic", return_value=1000.0):
            store.set("sid", user_id, ttl_s=60)
        with patch("core.sessions.time.monotonic", return_value=1059.0):
            assert store.get("sid") == user_id
        with patch("core.sessions.time.monotonic", return_value=1060.0):
            assert store.get("sid") is None


class TestRedisSessionStore:
    def test_set_uses_ttl_and_namespaced_key(self):
        client = MagicMock()
        user_id = uuid4()
        RedisSessionStore(client).set("abc", user_id, 3600)
        client.setex.assert_called_once_with("session:abc", 3600, str(user_id))

    def test_get_parses_user_id(self):
        user_id = uuid4()
        client = MagicMock()
        client.get.return_value = str(user_id)
        assert RedisSessionStore(client).get("abc") == user_id

    def test_missing_or_garbage_is_none(self):
        client = MagicMock()
        client.get.return_value = None
        assert RedisSessionStore(client).get("abc") is None
        client.get.return_value = "not-a-uuid"
        assert RedisSessionStore(client).get("abc") is None

    def test_redis_outage_means_logged_out(self):
        client = MagicMock()
        client.get.side_effect = RedisConnectionError("down")
        assert RedisSessionStore(client).get("abc") is None
