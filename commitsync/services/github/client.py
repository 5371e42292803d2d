"""
GitHub repository client used by the sync pipeline.

Read-only operations:
- list branches
- list commits of a branch (shallow, paginated)
- fetch one commit with diff stats and changed files
- current rate limit

Every response's rate limit headers are recorded on the token's
RateLimitTracker. Any failure surfaces as RepositoryUnavailable.
"""

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from commitsync.config import settings
from commitsync.services.github.exceptions import RepositoryUnavailable
from commitsync.services.github.helpers import handle_error_response, has_next_page
from commitsync.services.github.http_client import get_github_client
from commitsync.services.github.rate_limit import RateLimitTracker
from commitsync.services.github.types import (
    FullCommit,
    RateLimitSnapshot,
    ShallowCommit,
    parse_full_commit,
    parse_shallow_commit,
)

logger = logging.getLogger(__name__)

BRANCHES_PER_PAGE = 100
MAX_BRANCH_PAGES = 10


class GitHubRepositoryClient:
    """Thin wrapper over the GitHub REST API for one credential."""

    BASE_URL = "https://api.github.com"
    API_VERSION = "2022-11-28"

    def __init__(self, token: str, tracker: RateLimitTracker | None = None):
        self.token = token
        self.tracker = tracker or RateLimitTracker(token)
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.API_VERSION,
        }

    async def _get(
        self,
        path: str,
        repo_name: str,
        params: dict[str, str | int] | None = None,
    ) -> httpx.Response:
        """GET a GitHub API path, record quota headers, raise on any failure."""
        client = get_github_client()
        try:
            response = await client.get(
                f"{self.BASE_URL}{path}",
                headers=self._headers,
                params=params,
            )
        except (httpx.TimeoutException, httpx.RequestError) as e:
            raise RepositoryUnavailable(f"GitHub request failed for {repo_name}: {e}") from e

        self.tracker.record_response(response.headers)
        handle_error_response(response, repo_name)
        return response

    async def list_branches(self, repo_path: str) -> list[str]:
        """
        List all branch names of a repository.

        Args:
            repo_path: Repository in "owner/repo" form

        Returns:
            Branch names in the order GitHub returns them
        """
        names: list[str] = []
        page = 1

        while page <= MAX_BRANCH_PAGES:
            response = await self._get(
                f"/repos/{repo_path}/branches",
                repo_path,
                params={"per_page": BRANCHES_PER_PAGE, "page": page},
            )
            data: list[dict[str, Any]] = response.json()
            names.extend(b["name"] for b in data if b.get("name"))

            if not has_next_page(response) or len(data) < BRANCHES_PER_PAGE:
                break
            page += 1

        return names

    async def list_commits(
        self,
        repo_path: str,
        branch: str,
        per_page: int | None = None,
        max_pages: int | None = None,
    ) -> list[ShallowCommit]:
        """
        List commits reachable from a branch, newest first.

        Entries without a sha or inner commit payload are dropped.

        Args:
            repo_path: Repository in "owner/repo" form
            branch: Branch name (passed as the `sha` parameter)
            per_page: Page size (default from settings, max 100)
            max_pages: Upper bound on pages fetched (default from settings)
        """
        per_page = min(per_page or settings.github_commit_page_size, 100)
        max_pages = max_pages or settings.github_commit_max_pages

        commits: list[ShallowCommit] = []
        skipped = 0
        page = 1

        while page <= max_pages:
            response = await self._get(
                f"/repos/{repo_path}/commits",
                repo_path,
                params={"sha": branch, "per_page": per_page, "page": page},
            )
            data: list[dict[str, Any]] = response.json()
            if not data:
                break

            for item in data:
                commit = parse_shallow_commit(item)
                if commit is None:
                    skipped += 1
                    continue
                commits.append(commit)

            if len(data) < per_page:
                break
            page += 1

        if skipped:
            logger.debug(f"Skipped {skipped} malformed commit entries for {repo_path}@{branch}")
        return commits

    async def get_commit(self, repo_path: str, sha: str) -> FullCommit:
        """
        Fetch one commit with stats and changed files.

        Raises:
            RepositoryUnavailable: On any API failure or a malformed payload
        """
        response = await self._get(f"/repos/{repo_path}/commits/{sha}", repo_path)
        commit = parse_full_commit(response.json())
        if commit is None:
            raise RepositoryUnavailable(f"Malformed commit payload for {repo_path}@{sha}")
        return commit

    async def get_rate_limit(self) -> RateLimitSnapshot:
        """Current core quota from GET /rate_limit."""
        response = await self._get("/rate_limit", "rate_limit")
        snapshot = RateLimitSnapshot(limit=None, remaining=None, resets_at=None)
        core = (response.json().get("resources") or {}).get("core") or {}
        if core:
            reset = core.get("reset")
            snapshot = RateLimitSnapshot(
                limit=core.get("limit"),
                remaining=core.get("remaining"),
                resets_at=datetime.fromtimestamp(int(reset), tz=UTC) if reset else None,
                recorded_at=datetime.now(UTC),
            )
        return snapshot
