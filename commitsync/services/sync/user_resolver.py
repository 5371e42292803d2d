"""Maps commit authors to registered users of a project.

Candidates are the project owner plus every participant of an active
agreement on the project. Lookups are case-insensitive.
"""

import logging
import uuid as uuid_pkg
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from commitsync.models.agreement import Agreement
from commitsync.models.project import Project
from commitsync.models.user import User
from commitsync.services.github.types import ShallowCommit

logger = logging.getLogger(__name__)


def _normalize(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


class UserResolver:
    """Preloaded email -> user id and GitHub handle -> user id tables."""

    def __init__(self, users: Iterable[User], agreements: list[Agreement] | None = None) -> None:
        self.emails: dict[str, uuid_pkg.UUID] = {}
        self.handles: dict[str, uuid_pkg.UUID] = {}
        self.agreements = agreements or []

        for user in users:
            email = _normalize(user.email)
            if email:
                self.emails.setdefault(email, user.id)
            handle = _normalize(user.github_username)
            if handle:
                self.handles.setdefault(handle, user.id)

        # First active agreement (oldest) wins for a participant
        self._agreement_by_user: dict[uuid_pkg.UUID, uuid_pkg.UUID] = {}
        for agreement in self.agreements:
            for participant in agreement.participants:
                self._agreement_by_user.setdefault(participant.user_id, agreement.id)

    @classmethod
    async def for_project(cls, db: AsyncSession, project: Project) -> "UserResolver":
        from commitsync.domain import agreement_ops, user_ops

        agreements = await agreement_ops.get_active_for_project(db, project.id)

        users: dict[uuid_pkg.UUID, User] = {}
        owner = await user_ops.get_by_id(db, project.user_id)
        if owner is not None:
            users[owner.id] = owner
        for agreement in agreements:
            for participant in agreement.participants:
                if participant.user is not None:
                    users.setdefault(participant.user.id, participant.user)

        logger.debug(
            f"[ingest] Project {project.id}: resolving authors against "
            f"{len(users)} users, {len(agreements)} active agreements"
        )
        return cls(users.values(), agreements)

    def resolve(self, commit: ShallowCommit) -> uuid_pkg.UUID | None:
        """
        Registered user who authored `commit`, or None.

        Order: linked GitHub account login against handles, then git author
        email against emails, then git author name against handles.
        """
        login = _normalize(commit.author_login)
        if login and login in self.handles:
            return self.handles[login]

        email = _normalize(commit.author_email)
        if email and email in self.emails:
            return self.emails[email]

        name = _normalize(commit.author_name)
        if name and name in self.handles:
            return self.handles[name]

        return None

    def agreement_for(self, user_id: uuid_pkg.UUID | None) -> uuid_pkg.UUID | None:
        if user_id is None:
            return None
        return self._agreement_by_user.get(user_id)


def unregistered_name(commit: ShallowCommit) -> str | None:
    """Display identifier stored for an author with no account here."""
    for value in (commit.author_login, commit.author_email, commit.author_name):
        if value and value.strip():
            return value.strip()[:255]
    return None
