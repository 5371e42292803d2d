"""In-memory stand-ins for the GitHub client, commit storage and publisher.

The store mirrors the semantics of the real upserts (conflict keys,
immutable columns, stats coalescing, guarded stats writes) so pipeline
tests can assert idempotency without a database.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any

from cachetools import TTLCache

from commitsync.domain.commit_operations import CommitTotals
from commitsync.services.github.exceptions import RepositoryUnavailable
from commitsync.services.github.rate_limit import RateLimitTracker
from commitsync.services.github.types import FullCommit, RateLimitSnapshot, ShallowCommit

from tests.helpers.github_payloads import make_full_commit

_IMMUTABLE = ("id", "project_id", "commit_sha", "created_at")
_STATS = ("lines_added", "lines_removed", "changed_files")


def make_tracker(
    remaining: int | None = None,
    limit: int = 5000,
    resets_in_seconds: int = 1800,
) -> RateLimitTracker:
    """Tracker with a private cache, optionally pre-loaded with a snapshot."""
    tracker = RateLimitTracker("fake-token", threshold_percent=85, cache=TTLCache(maxsize=10, ttl=600))
    if remaining is not None:
        tracker.record(
            RateLimitSnapshot(
                limit=limit,
                remaining=remaining,
                resets_at=datetime.now(UTC) + timedelta(seconds=resets_in_seconds),
            )
        )
    return tracker


class FakeRepositoryClient:
    """Serves canned commits; every detail call spends one unit of quota when tracked."""

    def __init__(
        self,
        commits: dict[str, list[ShallowCommit]] | None = None,
        branches: list[str] | None = None,
        tracker: RateLimitTracker | None = None,
    ):
        self.commits = commits or {}
        self.branches = branches or list(self.commits)
        self.tracker = tracker or make_tracker()
        self.details: dict[str, FullCommit] = {}
        self.detail_errors: dict[str, RepositoryUnavailable] = {}
        self.list_error: RepositoryUnavailable | None = None
        self.list_calls: list[tuple[str, str]] = []
        self.detail_calls: list[str] = []
        # Served by get_rate_limit; None answers with an unknown quota
        self.api_quota: RateLimitSnapshot | None = None
        self.rate_limit_calls = 0

    def _spend(self) -> None:
        status = self.tracker.current_status()
        if status.remaining is not None:
            self.tracker.record(
                RateLimitSnapshot(
                    limit=status.limit,
                    remaining=status.remaining - 1,
                    resets_at=status.resets_at,
                )
            )

    async def list_commits(
        self,
        repo_path: str,
        branch: str,
        per_page: int | None = None,
        max_pages: int | None = None,
    ) -> list[ShallowCommit]:
        self.list_calls.append((repo_path, branch))
        if self.list_error is not None:
            raise self.list_error
        return list(self.commits.get(branch, []))

    async def get_commit(self, repo_path: str, sha: str) -> FullCommit:
        self.detail_calls.append(sha)
        self._spend()
        if sha in self.detail_errors:
            raise self.detail_errors[sha]
        if sha in self.details:
            return self.details[sha]
        for listed in self.commits.values():
            for commit in listed:
                if commit.sha == sha:
                    return make_full_commit(commit)
        raise RepositoryUnavailable(f"Repository or resource not found: {repo_path}", 404)

    async def get_rate_limit(self) -> RateLimitSnapshot:
        self.rate_limit_calls += 1
        if self.api_quota is not None:
            return self.api_quota
        return RateLimitSnapshot(limit=5000, remaining=None, resets_at=None)

    async def list_branches(self, repo_path: str) -> list[str]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.branches)


class InMemoryCommitStore:
    """Implements the commit and branch-link operations the pipeline uses."""

    def __init__(self) -> None:
        self.rows: dict[tuple[uuid.UUID, str], dict[str, Any]] = {}
        self.links: set[tuple[uuid.UUID, uuid.UUID]] = set()
        self.fail_upsert: Exception | None = None

    def all_rows(self) -> list[dict[str, Any]]:
        return list(self.rows.values())

    def row(self, project_id: uuid.UUID, sha: str) -> dict[str, Any]:
        return self.rows[(project_id, sha)]

    def add(self, **row: Any) -> dict[str, Any]:
        stored = {
            "id": uuid.uuid4(),
            "user_id": None,
            "unregistered_user_name": None,
            "agreement_id": None,
            "commit_url": None,
            "commit_message": None,
            "lines_added": None,
            "lines_removed": None,
            "changed_files": None,
            "created_at": datetime.now(UTC),
            **row,
        }
        self.rows[(stored["project_id"], stored["commit_sha"])] = stored
        return stored

    async def get_existing_shas(self, db, project_id, shas):
        return {sha for (pid, sha) in self.rows if pid == project_id and sha in shas}

    async def upsert_many(self, db, rows):
        if self.fail_upsert is not None:
            raise self.fail_upsert
        for row in rows:
            key = (row["project_id"], row["commit_sha"])
            existing = self.rows.get(key)
            if existing is None:
                self.add(**row)
                continue
            for column, value in row.items():
                if column in _IMMUTABLE:
                    continue
                if column in _STATS and value is None:
                    continue
                existing[column] = value
        return len(rows)

    async def get_ids_by_shas(self, db, project_id, shas):
        return {
            sha: row["id"] for (pid, sha), row in self.rows.items() if pid == project_id and sha in shas
        }

    async def link_many(self, db, branch_id, commit_ids):
        before = len(self.links)
        self.links.update((branch_id, commit_id) for commit_id in commit_ids)
        return len(self.links) - before

    def _backlog(self, project_id):
        return sorted(
            (
                row
                for (pid, _), row in self.rows.items()
                if pid == project_id and row["lines_added"] is None and row["lines_removed"] is None
            ),
            key=lambda r: r["commit_date"],
            reverse=True,
        )

    async def get_backlog(self, db, project_id, limit):
        return [
            SimpleNamespace(id=row["id"], commit_sha=row["commit_sha"])
            for row in self._backlog(project_id)[:limit]
        ]

    async def count_backlog(self, db, project_id):
        return len(self._backlog(project_id))

    async def apply_stats(self, db, commit_id, lines_added, lines_removed, changed_files):
        for row in self.rows.values():
            if row["id"] == commit_id:
                if row["lines_added"] is not None or row["lines_removed"] is not None:
                    return False
                row["lines_added"] = lines_added
                row["lines_removed"] = lines_removed
                row["changed_files"] = changed_files
                return True
        return False

    async def get_totals(self, db, project_id):
        rows = [row for (pid, _), row in self.rows.items() if pid == project_id]
        return CommitTotals(
            commit_count=len(rows),
            lines_added=sum(row["lines_added"] or 0 for row in rows),
            lines_removed=sum(row["lines_removed"] or 0 for row in rows),
            last_commit_at=max((row["commit_date"] for row in rows), default=None),
        )

    # Only totals are modelled; lists and rollups come back empty
    async def get_recent(self, db, project_id, limit):
        return []

    async def get_registered_rollup(self, db, project_id):
        return []

    async def get_unregistered_rollup(self, db, project_id):
        return []


class RecordingPublisher:
    def __init__(self, fail: Exception | None = None) -> None:
        self.messages: list[tuple[str, str, dict[str, Any]]] = []
        self.fail = fail

    async def publish(self, topic: str, kind: str, payload: dict[str, Any]) -> None:
        if self.fail is not None:
            raise self.fail
        self.messages.append((topic, kind, payload))

    def kinds(self) -> list[str]:
        return [kind for _, kind, _ in self.messages]
