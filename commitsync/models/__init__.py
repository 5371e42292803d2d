from commitsync.models.agreement import (
    ACTIVE_AGREEMENT_STATUSES,
    Agreement,
    AgreementParticipant,
    AgreementStatus,
)
from commitsync.models.github_branch import GithubBranch
from commitsync.models.github_branch_commit import GithubBranchCommit
from commitsync.models.github_commit import GithubCommit
from commitsync.models.project import Project
from commitsync.models.sync_lock import SyncLock
from commitsync.models.user import User

__all__ = [
    "ACTIVE_AGREEMENT_STATUSES",
    "Agreement",
    "AgreementParticipant",
    "AgreementStatus",
    "GithubBranch",
    "GithubBranchCommit",
    "GithubCommit",
    "Project",
    "SyncLock",
    "User",
]
