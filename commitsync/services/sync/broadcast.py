"""Pushes a project's commit aggregates to real-time subscribers.

Three messages per broadcast, all on topic `project_{id}_github_commits`:
- commits-list: the most recent commits with author and branch names
- stats: totals across all stored commits
- contributions: per-contributor rollup, registered and unregistered
"""

import logging
import uuid as uuid_pkg
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

from sqlalchemy.ext.asyncio import AsyncSession

from commitsync.config import settings
from commitsync.domain import github_commit_ops
from commitsync.models.github_commit import GithubCommit
from commitsync.services.realtime import Publisher, broadcast_hub

logger = logging.getLogger(__name__)

TOPIC_TEMPLATE = "project_{id}_github_commits"

KIND_COMMITS_LIST = "commits-list"
KIND_STATS = "stats"
KIND_CONTRIBUTIONS = "contributions"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class RegisteredContributor:
    user_id: uuid_pkg.UUID
    display_name: str | None
    github_username: str | None
    avatar_url: str | None
    commit_count: int
    lines_added: int
    lines_removed: int
    first_commit_at: datetime | None = None
    last_commit_at: datetime | None = None
    kind: Literal["registered"] = "registered"

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "user_id": str(self.user_id),
            "name": self.display_name or self.github_username,
            "github_username": self.github_username,
            "avatar_url": self.avatar_url,
            "commit_count": self.commit_count,
            "lines_added": self.lines_added,
            "lines_removed": self.lines_removed,
            "net_changes": self.lines_added - self.lines_removed,
            "first_commit_at": _iso(self.first_commit_at),
            "last_commit_at": _iso(self.last_commit_at),
        }


@dataclass(frozen=True)
class UnregisteredContributor:
    name: str
    commit_count: int
    lines_added: int
    lines_removed: int
    first_commit_at: datetime | None = None
    last_commit_at: datetime | None = None
    kind: Literal["unregistered"] = "unregistered"

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "user_id": None,
            "name": self.name,
            "github_username": self.name,
            "avatar_url": None,
            "commit_count": self.commit_count,
            "lines_added": self.lines_added,
            "lines_removed": self.lines_removed,
            "net_changes": self.lines_added - self.lines_removed,
            "first_commit_at": _iso(self.first_commit_at),
            "last_commit_at": _iso(self.last_commit_at),
        }


Contributor = RegisteredContributor | UnregisteredContributor


def commit_to_payload(commit: GithubCommit) -> dict[str, Any]:
    user = commit.user
    if user is not None:
        author: dict[str, Any] = {
            "kind": "registered",
            "user_id": str(user.id),
            "name": user.display_name or user.github_username,
            "avatar_url": user.avatar_url,
        }
    else:
        author = {
            "kind": "unregistered",
            "user_id": None,
            "name": commit.unregistered_user_name,
            "avatar_url": None,
        }

    return {
        "id": str(commit.id),
        "sha": commit.commit_sha,
        "short_sha": commit.commit_sha[:7],
        "url": commit.commit_url,
        "message": commit.commit_message,
        "commit_date": _iso(commit.commit_date),
        "lines_added": commit.lines_added,
        "lines_removed": commit.lines_removed,
        "agreement_id": str(commit.agreement_id) if commit.agreement_id else None,
        "author": author,
        "branches": sorted(
            link.branch.branch_name for link in commit.branch_links if link.branch is not None
        ),
    }


class GithubBroadcaster:
    """Recomputes aggregates from storage and publishes them. Never raises."""

    def __init__(self, publisher: Publisher | None = None, recent_limit: int | None = None):
        self.publisher: Publisher = publisher or broadcast_hub
        self.recent_limit = recent_limit or settings.github_broadcast_recent_limit

    @staticmethod
    def topic_for(project_id: uuid_pkg.UUID) -> str:
        return TOPIC_TEMPLATE.format(id=project_id)

    async def get_contributors(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
    ) -> list[Contributor]:
        """All contributors, most commits first."""
        registered = await github_commit_ops.get_registered_rollup(db, project_id)
        unregistered = await github_commit_ops.get_unregistered_rollup(db, project_id)

        contributors: list[Contributor] = [
            RegisteredContributor(
                user_id=row.user_id,
                display_name=row.display_name,
                github_username=row.github_username,
                avatar_url=row.avatar_url,
                commit_count=row.commit_count,
                lines_added=row.lines_added,
                lines_removed=row.lines_removed,
                first_commit_at=row.first_commit_at,
                last_commit_at=row.last_commit_at,
            )
            for row in registered
        ]
        contributors.extend(
            UnregisteredContributor(
                name=row.name,
                commit_count=row.commit_count,
                lines_added=row.lines_added,
                lines_removed=row.lines_removed,
                first_commit_at=row.first_commit_at,
                last_commit_at=row.last_commit_at,
            )
            for row in unregistered
        )
        contributors.sort(key=lambda c: c.commit_count, reverse=True)
        return contributors

    async def broadcast(self, db: AsyncSession, project_id: uuid_pkg.UUID) -> bool:
        """
        Publish commits-list, stats and contributions for a project.

        Returns:
            True if all three messages were published. Failures are logged.
        """
        topic = self.topic_for(project_id)

        try:
            totals = await github_commit_ops.get_totals(db, project_id)
            recent = await github_commit_ops.get_recent(db, project_id, self.recent_limit)
            contributors = await self.get_contributors(db, project_id)
            last_updated = _iso(totals.last_commit_at or datetime.now(UTC))

            await self.publisher.publish(
                topic,
                KIND_COMMITS_LIST,
                {
                    "project_id": str(project_id),
                    "commits": [commit_to_payload(c) for c in recent],
                },
            )
            await self.publisher.publish(
                topic,
                KIND_STATS,
                {
                    "project_id": str(project_id),
                    "total_commits": totals.commit_count,
                    "total_additions": totals.lines_added,
                    "total_deletions": totals.lines_removed,
                    "net_changes": totals.lines_added - totals.lines_removed,
                    "last_updated": last_updated,
                },
            )
            await self.publisher.publish(
                topic,
                KIND_CONTRIBUTIONS,
                {
                    "project_id": str(project_id),
                    "contributions": [c.to_payload() for c in contributors],
                    "last_updated": last_updated,
                },
            )
        except Exception as e:
            logger.error(f"[broadcast] Failed to publish updates for project {project_id}: {e}")
            return False

        logger.debug(
            f"[broadcast] Project {project_id}: {totals.commit_count} commits, "
            f"{len(contributors)} contributors"
        )
        return True


github_broadcaster = GithubBroadcaster()
