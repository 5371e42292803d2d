"""
Per-credential GitHub quota tracking.

GitHub reports the remaining hourly quota on every response
(X-RateLimit-Limit / -Remaining / -Reset). The repository client records
those headers here, and jobs ask the tracker before starting a batch of
calls. The tracker is advisory: nothing is reserved, so concurrent workers
sharing a token can still race past it and will then see 403s from GitHub.

Snapshots live in a short-lived TTL cache keyed by a hash of the token and
are never persisted. An unknown snapshot means "allowed".
"""

import hashlib
import logging
import math
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from cachetools import TTLCache  # type: ignore[import-untyped]

from commitsync.config import settings
from commitsync.services.github.exceptions import GitHubAPIError
from commitsync.services.github.helpers import RateLimitInfo
from commitsync.services.github.types import RateLimitSnapshot

if TYPE_CHECKING:
    from commitsync.services.github.client import GitHubRepositoryClient

logger = logging.getLogger(__name__)

# Default hourly limits by auth type, used before the first response arrives
AUTHENTICATED_LIMIT = 5_000
UNAUTHENTICATED_LIMIT = 60

# Consumption at which the status log line is promoted to INFO
WARNING_ZONE_PERCENT = 75

_snapshot_cache: TTLCache[str, RateLimitSnapshot] = TTLCache(
    maxsize=1000, ttl=settings.github_rate_limit_cache_ttl_seconds
)


def clear_rate_limit_cache() -> None:
    """Forget all recorded snapshots. Useful for testing."""
    _snapshot_cache.clear()


class RateLimitTracker:
    """Answers "can this token make N more calls now?" from the last known quota."""

    def __init__(
        self,
        token: str | None,
        threshold_percent: int | None = None,
        cache: TTLCache[str, RateLimitSnapshot] | None = None,
    ) -> None:
        self.token = token
        self.threshold_percent = (
            threshold_percent
            if threshold_percent is not None
            else settings.github_rate_limit_threshold_percent
        )
        self._cache = cache if cache is not None else _snapshot_cache

    @property
    def cache_key(self) -> str:
        if not self.token:
            return "github_rate_limit:unauthenticated"
        token_hash = hashlib.sha256(self.token.encode()).hexdigest()[:16]
        return f"github_rate_limit:{token_hash}"

    def current_status(self) -> RateLimitSnapshot:
        """Last recorded snapshot, or defaults with unknown remaining quota."""
        cached = self._cache.get(self.cache_key)
        if cached is not None:
            return cached
        return RateLimitSnapshot(
            limit=AUTHENTICATED_LIMIT if self.token else UNAUTHENTICATED_LIMIT,
            remaining=None,
            resets_at=None,
        )

    def threshold_remaining(self, limit: int | None) -> int:
        """Remaining-call count at which throttling kicks in."""
        if not limit or limit <= 0:
            return 0
        return math.ceil((100 - self.threshold_percent) / 100 * limit)

    def can_make_request(self, cost: int = 1) -> bool:
        """True if `cost` more calls keep the quota above the safety threshold."""
        status = self.current_status()
        if status.remaining is None:
            return True
        return (status.remaining - cost) >= self.threshold_remaining(status.limit)

    @property
    def rate_limited(self) -> bool:
        status = self.current_status()
        return status.remaining is not None and status.remaining <= 0

    def consumption_percent(self) -> float:
        """Share of the quota already used, 0-100."""
        status = self.current_status()
        if not status.limit or status.limit <= 0 or status.remaining is None:
            return 0.0
        return round((status.limit - status.remaining) / status.limit * 100, 2)

    @property
    def approaching_threshold(self) -> bool:
        percent = self.consumption_percent()
        return WARNING_ZONE_PERCENT <= percent < self.threshold_percent

    @property
    def threshold_exceeded(self) -> bool:
        return self.consumption_percent() >= self.threshold_percent

    def wait_time_seconds(self, cost: int = 1) -> int:
        """Seconds until the quota resets, or 0 if calls can be made now."""
        status = self.current_status()
        if status.resets_at is None or self.can_make_request(cost):
            return 0
        wait = int((status.resets_at - datetime.now(UTC)).total_seconds())
        return max(wait + 1, 0)

    def record(self, snapshot: RateLimitSnapshot) -> RateLimitSnapshot:
        self._cache[self.cache_key] = snapshot
        self._log_status(snapshot)
        return snapshot

    def record_response(self, headers: Mapping[str, str]) -> RateLimitSnapshot | None:
        """Record quota from X-RateLimit-* response headers, if present."""
        snapshot = RateLimitInfo(headers).to_snapshot()
        if snapshot is None:
            return None
        return self.record(snapshot)

    async def refresh_from_api(self, client: "GitHubRepositoryClient") -> RateLimitSnapshot:
        """Fetch the quota from GET /rate_limit (does not count against it)."""
        try:
            return self.record(await client.get_rate_limit())
        except GitHubAPIError as e:
            logger.warning(f"[rate-limit] Failed to refresh rate limit: {e.message}")
            return self.current_status()

    def _log_status(self, status: RateLimitSnapshot) -> None:
        percent = 0.0
        if status.limit and status.limit > 0 and status.remaining is not None:
            percent = round((status.limit - status.remaining) / status.limit * 100, 1)

        if percent >= self.threshold_percent:
            level = logging.WARNING
        elif percent >= WARNING_ZONE_PERCENT:
            level = logging.INFO
        else:
            level = logging.DEBUG

        resets = status.resets_at.strftime("%H:%M:%S") if status.resets_at else "unknown"
        logger.log(
            level,
            f"[rate-limit] {status.remaining}/{status.limit} remaining "
            f"({percent}% consumed, resets at {resets})",
        )
