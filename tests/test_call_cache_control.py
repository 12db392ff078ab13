"""Tests for the call cache."""

import time

import pytest

from riftcall.services.call_cache_control import CachedCall, CallCacheControl, fingerprint_of


class TestFingerprint:

    def test_deterministic(self):
        url = "https://euw1.api.riotgames.com/lol/status/v4/platform-data"
        assert fingerprint_of(url) == fingerprint_of(url)

    def test_differs_by_query(self):
        base = "https://euw1.api.riotgames.com/lol/match/v5/matches"
        assert fingerprint_of(f"{base}?count=1") != fingerprint_of(f"{base}?count=2")


class TestCallCacheControl:

    def test_save_and_load(self):
        ccc = CallCacheControl()
        assert ccc.save_call_data("fp", '{"a": 1}', 60) is True
        assert ccc.is_call_cached("fp") is True
        assert ccc.load_call_data("fp") == '{"a": 1}'

    def test_entry_expires(self):
        ccc = CallCacheControl()
        ccc.save_call_data("fp", "data", 1)
        assert ccc.is_call_cached("fp") is True

        time.sleep(2)
        assert ccc.is_call_cached("fp") is False
        assert ccc.load_call_data("fp") is None

    def test_unknown_fingerprint(self):
        ccc = CallCacheControl()
        assert ccc.is_call_cached("missing") is False
        assert ccc.load_call_data("missing") is None

    @pytest.mark.parametrize("ttl", [None, 0, -5])
    def test_rejects_missing_or_non_positive_ttl(self, ttl):
        ccc = CallCacheControl()
        assert ccc.save_call_data("fp", "data", ttl) is False
        assert ccc.is_call_cached("fp") is False

    def test_overwrite(self):
        ccc = CallCacheControl()
        ccc.save_call_data("fp", "old", 60)
        ccc.save_call_data("fp", "new", 60)
        assert ccc.load_call_data("fp") == "new"
        assert len(ccc) == 1

    def test_clear(self):
        ccc = CallCacheControl()
        ccc.save_call_data("a", "1", 60)
        ccc.save_call_data("b", "2", 60)
        ccc.clear()
        assert len(ccc) == 0
        assert ccc.is_call_cached("a") is False

    def test_cleanup_expired(self):
        ccc = CallCacheControl()
        ccc.save_call_data("short", "1", 1)
        ccc.save_call_data("long", "2", 60)
        time.sleep(1.1)

        assert ccc.cleanup_expired() == 1
        assert ccc.is_call_cached("long") is True

    def test_snapshot_drops_expired_entries(self):
        ccc = CallCacheControl()
        ccc.save_call_data("live", "1", 60)
        ccc._calls["dead"] = CachedCall(body="2", expires_at=time.time() - 1)

        restored = CallCacheControl.from_dict(ccc.to_dict())
        assert restored.load_call_data("live") == "1"
        assert restored.is_call_cached("dead") is False
