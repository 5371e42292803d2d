"""
GitHub API helper utilities.

Rate limit header parsing, error response processing and repository path
extraction shared by the repository client.
"""

import logging
import re
from collections.abc import Mapping
from datetime import UTC, datetime

import httpx

from commitsync.services.github.exceptions import RepositoryUnavailable
from commitsync.services.github.types import RateLimitSnapshot

logger = logging.getLogger(__name__)


class RateLimitInfo:
    """Rate limit information from GitHub API response headers."""

    def __init__(self, headers: Mapping[str, str]) -> None:
        headers = httpx.Headers(headers)  # case-insensitive lookups
        self.limit = headers.get("X-RateLimit-Limit")
        self.remaining = headers.get("X-RateLimit-Remaining")
        self.reset = headers.get("X-RateLimit-Reset")

    @property
    def reset_timestamp(self) -> int | None:
        """Get reset timestamp as integer, or None if not available."""
        return int(self.reset) if self.reset else None

    @property
    def is_exhausted(self) -> bool:
        """Check if rate limit is exhausted."""
        return self.remaining is not None and int(self.remaining) == 0

    def to_snapshot(self) -> RateLimitSnapshot | None:
        """Build a snapshot, or None when the response carried no rate limit headers."""
        if self.remaining is None:
            return None
        reset = self.reset_timestamp
        return RateLimitSnapshot(
            limit=int(self.limit) if self.limit else None,
            remaining=int(self.remaining),
            resets_at=datetime.fromtimestamp(reset, tz=UTC) if reset else None,
            recorded_at=datetime.now(UTC),
        )


def extract_repo_path(url: str | None) -> str | None:
    """
    Extract "owner/repo" from a repository reference.

    Supports:
        - https://github.com/owner/repo
        - https://github.com/owner/repo.git
        - owner/repo
    """
    if not url or not url.strip():
        return None

    path = url.strip()
    if "github.com/" in path:
        path = path.split("github.com/", 1)[1]
    path = re.sub(r"\.git$", "", path).strip("/")

    parts = path.split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None
    return f"{parts[0]}/{parts[1]}"


def has_next_page(response: httpx.Response) -> bool:
    """Check the Link header for a rel="next" page."""
    return 'rel="next"' in response.headers.get("Link", "")


def handle_error_response(response: httpx.Response, repo_name: str) -> None:
    """
    Raise RepositoryUnavailable for any non-200 GitHub response.

    Args:
        response: The HTTP response from GitHub API
        repo_name: Repository name for error context (format: "owner/repo")
    """
    if response.status_code == 200:
        return

    rate_info = RateLimitInfo(response.headers)

    if response.status_code == 401:
        raise RepositoryUnavailable("Invalid or expired GitHub token", 401)
    elif response.status_code == 404:
        raise RepositoryUnavailable(f"Repository or resource not found: {repo_name}", 404)
    elif response.status_code in (403, 429):
        if rate_info.is_exhausted or response.status_code == 429:
            raise RepositoryUnavailable(
                "GitHub API rate limit exceeded",
                response.status_code,
                rate_limit_reset=rate_info.reset_timestamp,
            )
        raise RepositoryUnavailable("GitHub API forbidden", 403)
    elif response.status_code == 409:
        # Empty repositories answer 409 on the commits endpoint
        raise RepositoryUnavailable(f"Repository is empty: {repo_name}", 409)
    raise RepositoryUnavailable(
        f"GitHub API error: {response.status_code}", response.status_code
    )
