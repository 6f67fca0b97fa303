"""Tests for cache service and sweep lock."""

from unittest.mock import MagicMock, patch

import redis

from recletters.integrations.cache import NullCacheService, RedisCacheService


class TestNullCacheService:
    def test_get_returns_none(self):
        assert NullCacheService().get("any_key") is None

    def test_set_does_nothing(self):
        NullCacheService().set("key", "value", 60)  # Should not raise

    def test_json_is_not_stored(self):
        cache = NullCacheService()
        cache.set_json("draft:k", {"draft": "x"}, 60)
        assert cache.get_json("draft:k") is None

    def test_lock_always_granted(self):
        cache = NullCacheService()
        holder = cache.acquire_lock("sweep", 60)
        assert holder == "local"
        cache.release_lock("sweep", holder)


class TestRedisCacheService:
    def _service(self):
        with patch("recletters.integrations.cache.redis.from_url") as from_url:
            client = MagicMock()
            from_url.return_value = client
            return RedisCacheService("redis://localhost:6379/0"), client

    def test_acquire_lock_uses_set_nx_ex(self):
        cache, client = self._service()
        client.set.return_value = True
        holder = cache.acquire_lock("sweep", 300)
        assert holder
        client.set.assert_called_once_with("lock:sweep", holder, nx=True, ex=300)

    def test_acquire_lock_taken(self):
        cache, client = self._service()
        client.set.return_value = None
        assert cache.acquire_lock("sweep", 300) is None

    def test_acquire_lock_runs_unlocked_when_redis_down(self):
        cache, client = self._service()
        client.set.side_effect = redis.ConnectionError("down")
        assert cache.acquire_lock("sweep", 300) is not None

    def test_release_is_compare_and_delete(self):
        cache, client = self._service()
        cache.release_lock("sweep", "abc")
        script, numkeys, key, holder = client.eval.call_args.args
        assert numkeys == 1
        assert key == "lock:sweep"
        assert holder == "abc"
        assert "del" in script

    def test_get_returns_none_on_redis_error(self):
        cache, client = self._service()
        client.get.side_effect = redis.ConnectionError("down")
        assert cache.get("k") is None

    def test_set_json_serializes_with_ttl(self):
        cache, client = self._service()
        cache.set_json("draft:k", {"draft": "Chère commission", "tokens": {"total": 3}}, 86400)
        key, ttl, raw = client.setex.call_args.args
        assert (key, ttl) == ("draft:k", 86400)
        assert '"Chère commission"' in raw

    def test_get_json_decodes(self):
        cache, client = self._service()
        client.get.return_value = '{"draft": "Dear committee"}'
        assert cache.get_json("draft:k") == {"draft": "Dear committee"}

    def test_get_json_discards_unreadable_entry(self):
        cache, client = self._service()
        client.get.return_value = "{not json"
        assert cache.get_json("draft:k") is None
