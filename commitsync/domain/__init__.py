from commitsync.domain.agreement_operations import agreement_ops
from commitsync.domain.branch_commit_operations import github_branch_commit_ops
from commitsync.domain.branch_operations import branch_ops
from commitsync.domain.commit_operations import github_commit_ops
from commitsync.domain.project_operations import project_ops
from commitsync.domain.sync_lock_operations import sync_lock_ops
from commitsync.domain.user_operations import user_ops

__all__ = [
    "agreement_ops",
    "branch_ops",
    "github_branch_commit_ops",
    "github_commit_ops",
    "project_ops",
    "sync_lock_ops",
    "user_ops",
]
