"""Tests for the rate-limit mirror."""

import json
import time
from unittest.mock import patch

import pytest

from riftcall.services.rate_limit_control import (
    RateLimitControl,
    WindowBucket,
    parse_window_header,
)

KEY = "RGAPI-test-key"
REGION = "euw"
RESOURCE = "v4:summoner/by-name/{name}"


class TestParseWindowHeader:

    def test_parses_ordered_pairs(self):
        assert parse_window_header("20:1,100:120") == [(20, 1), (100, 120)]

    def test_empty_and_none(self):
        assert parse_window_header(None) == []
        assert parse_window_header("") == []

    def test_skips_malformed_entries(self):
        assert parse_window_header("20:1, bogus ,x:5,100:120,") == [(20, 1), (100, 120)]


class TestWindowBucket:

    def test_admits_below_limit(self):
        bucket = WindowBucket(limit=2, window=10, count=1, observed_at=time.time())
        assert bucket.admits() is True

    def test_rejects_at_limit(self):
        bucket = WindowBucket(limit=2, window=10, count=2, observed_at=time.time())
        assert bucket.admits() is False

    def test_admits_after_window_rolled_over(self):
        bucket = WindowBucket(limit=2, window=10, count=5, observed_at=time.time() - 10)
        assert bucket.admits() is True

    def test_from_dict_clamps_negative_count(self):
        bucket = WindowBucket.from_dict({"limit": 1, "window": 1, "count": -3})
        assert bucket.count == 0


class TestRateLimitControl:

    def test_no_definitions_admits(self):
        rlc = RateLimitControl()
        assert rlc.can_call(KEY, REGION, RESOURCE) is True

    def test_exhausted_then_recovers(self):
        """Short window blocks until it rolls over, long window still has room."""
        rlc = RateLimitControl()
        rlc.register_limits(KEY, REGION, RESOURCE, "1:1,10:10", "1:1,10:10")
        rlc.register_call(KEY, REGION, RESOURCE, "1:1,1:10", "1:1,1:10")

        assert rlc.can_call(KEY, REGION, RESOURCE) is False
        time.sleep(1.1)
        assert rlc.can_call(KEY, REGION, RESOURCE) is True

    def test_register_call_is_idempotent(self):
        rlc = RateLimitControl()
        rlc.register_limits(KEY, REGION, RESOURCE, "20:1,100:120", "2000:10")

        with patch("riftcall.services.rate_limit_control.time.time", return_value=1000.0):
            rlc.register_call(KEY, REGION, RESOURCE, "3:1,57:120", "1:10")
            first = rlc.get_current_status(KEY, REGION, RESOURCE)
            rlc.register_call(KEY, REGION, RESOURCE, "3:1,57:120", "1:10")
            second = rlc.get_current_status(KEY, REGION, RESOURCE)

        assert first == second
        assert [b["count"] for b in second["app"]] == [3, 57]

    def test_counts_are_overwritten_not_incremented(self):
        rlc = RateLimitControl()
        rlc.register_limits(KEY, REGION, RESOURCE, "20:1", None)
        rlc.register_call(KEY, REGION, RESOURCE, "5:1", None)
        rlc.register_call(KEY, REGION, RESOURCE, "2:1", None)

        status = rlc.get_current_status(KEY, REGION, RESOURCE)
        assert status["app"][0]["count"] == 2

    def test_app_limit_blocks_every_resource(self):
        rlc = RateLimitControl()
        rlc.register_limits(KEY, REGION, RESOURCE, "1:10", None)
        rlc.register_call(KEY, REGION, RESOURCE, "1:10", None)

        assert rlc.can_call(KEY, REGION, "v1:other") is False
        assert rlc.can_call(KEY, "na", RESOURCE) is True
        assert rlc.can_call("RGAPI-other", REGION, RESOURCE) is True

    def test_method_limit_is_per_resource(self):
        rlc = RateLimitControl()
        rlc.register_limits(KEY, REGION, RESOURCE, None, "1:10")
        rlc.register_call(KEY, REGION, RESOURCE, None, "1:10")

        assert rlc.can_call(KEY, REGION, RESOURCE) is False
        assert rlc.can_call(KEY, REGION, "v1:other") is True

    def test_missing_header_leaves_scope_untouched(self):
        rlc = RateLimitControl()
        rlc.register_limits(KEY, REGION, RESOURCE, "20:1", "2000:10")
        rlc.register_limits(KEY, REGION, RESOURCE, None, None)

        status = rlc.get_current_status(KEY, REGION, RESOURCE)
        assert len(status["app"]) == 1
        assert len(status["method"]) == 1

    def test_redefinition_keeps_matching_counts_and_drops_others(self):
        rlc = RateLimitControl()
        rlc.register_limits(KEY, REGION, RESOURCE, "20:1,100:120", None)
        rlc.register_call(KEY, REGION, RESOURCE, "3:1,57:120", None)
        rlc.register_limits(KEY, REGION, RESOURCE, "100:120,500:600", None)

        status = rlc.get_current_status(KEY, REGION, RESOURCE)
        assert [(b["limit"], b["window"], b["count"]) for b in status["app"]] == [
            (100, 120, 57),
            (500, 600, 0),
        ]

    def test_unknown_window_in_counts_is_ignored(self):
        rlc = RateLimitControl()
        rlc.register_limits(KEY, REGION, RESOURCE, "20:1", None)
        rlc.register_call(KEY, REGION, RESOURCE, "3:1,9:999", None)

        status = rlc.get_current_status(KEY, REGION, RESOURCE)
        assert [b["window"] for b in status["app"]] == [1]

    def test_clear(self):
        rlc = RateLimitControl()
        rlc.register_limits(KEY, REGION, RESOURCE, "1:10", "1:10")
        rlc.register_call(KEY, REGION, RESOURCE, "1:10", "1:10")
        rlc.clear()

        assert rlc.can_call(KEY, REGION, RESOURCE) is True
        assert rlc.get_current_status(KEY, REGION, RESOURCE) == {"app": [], "method": []}

    def test_snapshot_restores_state_without_credential(self):
        rlc = RateLimitControl()
        rlc.register_limits(KEY, REGION, RESOURCE, "1:10", "5:10")
        rlc.register_call(KEY, REGION, RESOURCE, "1:10", "1:10")

        snapshot = json.dumps(rlc.to_dict())
        assert KEY not in snapshot

        restored = RateLimitControl.from_dict(json.loads(snapshot))
        assert restored.can_call(KEY, REGION, RESOURCE) is False
        assert restored.get_current_status(KEY, REGION, RESOURCE) == rlc.get_current_status(
            KEY, REGION, RESOURCE
        )

    @pytest.mark.parametrize("count", ["-4:1", "0:1"])
    def test_counts_never_negative(self, count):
        rlc = RateLimitControl()
        rlc.register_limits(KEY, REGION, RESOURCE, "1:1", None)
        rlc.register_call(KEY, REGION, RESOURCE, count, None)

        assert rlc.get_current_status(KEY, REGION, RESOURCE)["app"][0]["count"] == 0
