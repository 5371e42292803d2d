"""Unit tests for the per-token GitHub quota tracker."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from cachetools import TTLCache

from commitsync.services.github.exceptions import GitHubAPIError
from commitsync.services.github.rate_limit import (
    AUTHENTICATED_LIMIT,
    UNAUTHENTICATED_LIMIT,
    RateLimitTracker,
    clear_rate_limit_cache,
)
from commitsync.services.github.types import RateLimitSnapshot

from tests.helpers.fakes import make_tracker


def _snapshot(remaining: int | None, limit: int = 5000, resets_in: int = 600) -> RateLimitSnapshot:
    return RateLimitSnapshot(
        limit=limit,
        remaining=remaining,
        resets_at=datetime.now(UTC) + timedelta(seconds=resets_in),
    )


class TestUnknownQuota:
    def test_unknown_snapshot_allows_requests(self):
        tracker = make_tracker()
        assert tracker.can_make_request() is True
        assert tracker.can_make_request(1000) is True
        assert tracker.wait_time_seconds() == 0

    def test_default_limits_by_auth_type(self):
        assert make_tracker().current_status().limit == AUTHENTICATED_LIMIT
        anonymous = RateLimitTracker(None, cache=TTLCache(maxsize=1, ttl=60))
        assert anonymous.current_status().limit == UNAUTHENTICATED_LIMIT
        assert anonymous.current_status().remaining is None

    def test_consumption_is_zero_without_snapshot(self):
        assert make_tracker().consumption_percent() == 0.0


class TestThreshold:
    """Threshold 85% of 5000 leaves a floor of 750 remaining calls."""

    def test_threshold_remaining(self):
        tracker = make_tracker()
        assert tracker.threshold_remaining(5000) == 750
        assert tracker.threshold_remaining(None) == 0

    def test_allows_when_above_floor(self):
        tracker = make_tracker(remaining=751)
        assert tracker.can_make_request() is True

    def test_refuses_at_floor(self):
        tracker = make_tracker(remaining=750)
        assert tracker.can_make_request() is False

    def test_cost_is_subtracted(self):
        tracker = make_tracker(remaining=770)
        assert tracker.can_make_request(20) is True
        assert tracker.can_make_request(21) is False

    def test_consumption_percent(self):
        tracker = make_tracker(remaining=1000)
        assert tracker.consumption_percent() == 80.0
        assert tracker.approaching_threshold is True
        assert tracker.threshold_exceeded is False

    def test_threshold_exceeded(self):
        tracker = make_tracker(remaining=500)
        assert tracker.threshold_exceeded is True
        assert tracker.approaching_threshold is False

    def test_rate_limited_only_at_zero(self):
        assert make_tracker(remaining=1).rate_limited is False
        assert make_tracker(remaining=0).rate_limited is True


class TestWaitTime:
    def test_zero_when_allowed(self):
        assert make_tracker(remaining=4000).wait_time_seconds() == 0

    def test_seconds_until_reset_when_throttled(self):
        tracker = make_tracker(remaining=10, resets_in_seconds=120)
        wait = tracker.wait_time_seconds()
        assert 115 <= wait <= 121

    def test_never_negative_after_reset_passed(self):
        tracker = make_tracker(remaining=10, resets_in_seconds=-60)
        assert tracker.wait_time_seconds() == 0

    def test_zero_without_reset_time(self):
        tracker = make_tracker()
        tracker.record(RateLimitSnapshot(limit=5000, remaining=0, resets_at=None))
        assert tracker.wait_time_seconds() == 0


class TestRecordResponse:
    def test_records_headers(self):
        tracker = make_tracker()
        reset = int((datetime.now(UTC) + timedelta(minutes=30)).timestamp())

        snapshot = tracker.record_response(
            {
                "X-RateLimit-Limit": "5000",
                "X-RateLimit-Remaining": "4321",
                "X-RateLimit-Reset": str(reset),
            }
        )

        assert snapshot is not None
        assert snapshot.remaining == 4321
        assert tracker.current_status().remaining == 4321
        assert tracker.current_status().resets_at == datetime.fromtimestamp(reset, tz=UTC)

    def test_lowercase_headers(self):
        tracker = make_tracker()
        tracker.record_response({"x-ratelimit-limit": "60", "x-ratelimit-remaining": "59"})
        assert tracker.current_status().limit == 60
        assert tracker.current_status().resets_at is None

    def test_ignores_response_without_headers(self):
        tracker = make_tracker()
        assert tracker.record_response({}) is None
        assert tracker.current_status().remaining is None


class TestSharedCache:
    def test_same_token_shares_snapshot(self):
        clear_rate_limit_cache()
        first = RateLimitTracker("ghp_shared")
        second = RateLimitTracker("ghp_shared")

        first.record(_snapshot(remaining=100))

        assert second.current_status().remaining == 100

    def test_tokens_are_isolated(self):
        first = RateLimitTracker("ghp_one")
        second = RateLimitTracker("ghp_two")

        first.record(_snapshot(remaining=100))

        assert second.current_status().remaining is None

    def test_cache_key_does_not_contain_token(self):
        tracker = RateLimitTracker("ghp_secret_value")
        assert "ghp_secret_value" not in tracker.cache_key
        assert tracker.cache_key.startswith("github_rate_limit:")

    def test_clear_forgets_snapshots(self):
        tracker = RateLimitTracker("ghp_clear")
        tracker.record(_snapshot(remaining=1))
        clear_rate_limit_cache()
        assert tracker.current_status().remaining is None


class TestRefreshFromApi:
    @pytest.mark.asyncio
    async def test_records_api_snapshot(self):
        tracker = make_tracker()
        client = MagicMock()
        client.get_rate_limit = AsyncMock(return_value=_snapshot(remaining=4999))

        result = await tracker.refresh_from_api(client)

        assert result.remaining == 4999
        assert tracker.current_status().remaining == 4999

    @pytest.mark.asyncio
    async def test_keeps_last_status_on_error(self):
        tracker = make_tracker(remaining=3000)
        client = MagicMock()
        client.get_rate_limit = AsyncMock(side_effect=GitHubAPIError("boom", 500))

        result = await tracker.refresh_from_api(client)

        assert result.remaining == 3000
