"""Builders for GitHub REST API payloads and parsed commit types."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from commitsync.services.github.types import ChangedFile, FullCommit, ShallowCommit

BASE_DATE = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


def sha_for(n: int) -> str:
    """Deterministic 40-char sha."""
    return f"{n:040x}"


def commit_list_item(
    sha: str,
    *,
    login: str | None = None,
    email: str | None = "dev@example.com",
    name: str | None = "Dev",
    message: str = "Commit message",
    date: str = "2026-03-02T12:00:00Z",
) -> dict[str, Any]:
    """One entry of GET /repos/{owner}/{repo}/commits."""
    return {
        "sha": sha,
        "html_url": f"https://github.com/test-org/test-repo/commit/{sha}",
        "commit": {
            "message": message,
            "author": {"name": name, "email": email, "date": date},
        },
        "author": {"login": login} if login else None,
    }


def full_commit_payload(
    sha: str,
    *,
    additions: int = 10,
    deletions: int = 2,
    files: list[dict[str, Any]] | None = None,
    **list_item_kwargs: Any,
) -> dict[str, Any]:
    """GET /repos/{owner}/{repo}/commits/{sha}."""
    payload = commit_list_item(sha, **list_item_kwargs)
    payload["stats"] = {"additions": additions, "deletions": deletions, "total": additions + deletions}
    payload["files"] = (
        files
        if files is not None
        else [
            {
                "filename": "app.py",
                "status": "modified",
                "additions": additions,
                "deletions": deletions,
                "patch": "@@ -1 +1 @@",
            }
        ]
    )
    return payload


def make_shallow_commit(
    n: int,
    *,
    login: str | None = None,
    email: str | None = "dev@example.com",
    name: str | None = "Dev",
    authored_at: datetime | None = None,
) -> ShallowCommit:
    sha = sha_for(n)
    return ShallowCommit(
        sha=sha,
        html_url=f"https://github.com/test-org/test-repo/commit/{sha}",
        message=f"Commit {n}",
        authored_at=authored_at or BASE_DATE - timedelta(hours=n),
        author_login=login,
        author_email=email,
        author_name=name,
    )


def make_full_commit(shallow: ShallowCommit, additions: int = 10, deletions: int = 2) -> FullCommit:
    return FullCommit(
        sha=shallow.sha,
        html_url=shallow.html_url,
        message=shallow.message,
        authored_at=shallow.authored_at,
        author_login=shallow.author_login,
        author_email=shallow.author_email,
        author_name=shallow.author_name,
        additions=additions,
        deletions=deletions,
        files=[ChangedFile("app.py", "modified", additions, deletions, "@@ -1 +1 @@")],
    )
