"""Data types for GitHub API responses."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class ChangedFile:
    """One file touched by a commit."""

    filename: str
    status: str  # "added", "modified", "removed", "renamed", ...
    additions: int
    deletions: int
    patch: str | None = None  # Omitted by GitHub for binary or very large diffs

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "status": self.status,
            "additions": self.additions,
            "deletions": self.deletions,
            "patch": self.patch,
        }


@dataclass
class ShallowCommit:
    """Commit as returned by the list endpoint (no diff stats)."""

    sha: str
    html_url: str | None
    message: str | None
    authored_at: datetime | None
    author_login: str | None  # GitHub account linked to the commit, if any
    author_email: str | None  # Git author email from the commit itself
    author_name: str | None


@dataclass
class FullCommit(ShallowCommit):
    """Commit with diff statistics and the changed-file list."""

    additions: int = 0
    deletions: int = 0
    files: list[ChangedFile] = field(default_factory=list)


@dataclass
class RateLimitSnapshot:
    """Quota state for one credential as last reported by GitHub."""

    limit: int | None
    remaining: int | None
    resets_at: datetime | None
    recorded_at: datetime | None = None


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_shallow_commit(data: dict[str, Any]) -> ShallowCommit | None:
    """
    Normalize one entry of GET /repos/{owner}/{repo}/commits.

    Returns None when the entry has no sha or no inner commit payload.
    """
    sha = data.get("sha")
    inner = data.get("commit")
    if not sha or not inner:
        return None

    git_author = inner.get("author") or {}
    account = data.get("author") or {}

    return ShallowCommit(
        sha=sha,
        html_url=data.get("html_url"),
        message=inner.get("message"),
        authored_at=_parse_datetime(git_author.get("date")),
        author_login=account.get("login"),
        author_email=git_author.get("email"),
        author_name=git_author.get("name"),
    )


def parse_full_commit(data: dict[str, Any]) -> FullCommit | None:
    """Normalize GET /repos/{owner}/{repo}/commits/{sha}."""
    shallow = parse_shallow_commit(data)
    if shallow is None:
        return None

    stats = data.get("stats") or {}
    files = [
        ChangedFile(
            filename=f.get("filename", ""),
            status=f.get("status", "modified"),
            additions=int(f.get("additions") or 0),
            deletions=int(f.get("deletions") or 0),
            patch=f.get("patch"),
        )
        for f in data.get("files") or []
    ]

    return FullCommit(
        sha=shallow.sha,
        html_url=shallow.html_url,
        message=shallow.message,
        authored_at=shallow.authored_at,
        author_login=shallow.author_login,
        author_email=shallow.author_email,
        author_name=shallow.author_name,
        additions=int(stats.get("additions") or 0),
        deletions=int(stats.get("deletions") or 0),
        files=files,
    )
