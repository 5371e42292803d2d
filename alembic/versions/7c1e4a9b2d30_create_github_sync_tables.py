"""create_github_sync_tables

Revision ID: 7c1e4a9b2d30
Revises:
Create Date: 2026-10-19 09:12:31.402118

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "7c1e4a9b2d30"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # 1. Collaborator tables (owned by other services, created here for stand-alone use)
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("display_name", sa.String(length=100), nullable=True),
        sa.Column("github_username", sa.String(length=255), nullable=True),
        sa.Column("avatar_url", sa.String(length=500), nullable=True),
        sa.Column(
            "github_token",
            sa.String(length=2000),
            nullable=True,
            comment="Fernet-encrypted GitHub token",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_github_username", "users", ["github_username"])

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("repository_url", sa.String(length=500), nullable=True),
        sa.Column(
            "github_last_polled_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Poll watermark, written when a poll attempt starts",
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_id", "projects", ["id"])
    op.create_index("ix_projects_user_id", "projects", ["user_id"])
    op.create_index("ix_projects_github_last_polled_at", "projects", ["github_last_polled_at"])

    op.create_table(
        "agreements",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_agreements_id", "agreements", ["id"])
    op.create_index("ix_agreements_project_id", "agreements", ["project_id"])

    op.create_table(
        "agreement_participants",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("agreement_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(["agreement_id"], ["agreements.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("agreement_id", "user_id", name="uq_agreement_participant"),
    )
    op.create_index("ix_agreement_participants_id", "agreement_participants", ["id"])
    op.create_index(
        "ix_agreement_participants_agreement_id", "agreement_participants", ["agreement_id"]
    )
    op.create_index("ix_agreement_participants_user_id", "agreement_participants", ["user_id"])

    # 2. GitHub sync tables
    op.create_table(
        "github_branches",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("branch_name", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "project_id", "branch_name", name="uq_github_branches_project_branch"
        ),
    )
    op.create_index("ix_github_branches_id", "github_branches", ["id"])
    op.create_index("ix_github_branches_project_id", "github_branches", ["project_id"])
    op.create_index(
        "ix_github_branches_project_created_at",
        "github_branches",
        ["project_id", "created_at"],
    )

    op.create_table(
        "github_commits",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("unregistered_user_name", sa.String(length=255), nullable=True),
        sa.Column("agreement_id", sa.Uuid(), nullable=True),
        sa.Column("commit_sha", sa.String(length=40), nullable=False),
        sa.Column("commit_url", sa.String(length=500), nullable=True),
        sa.Column("commit_message", sa.Text(), nullable=True),
        sa.Column("commit_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "lines_added",
            sa.Integer(),
            nullable=True,
            comment="NULL until stats are fetched",
        ),
        sa.Column(
            "lines_removed",
            sa.Integer(),
            nullable=True,
            comment="NULL until stats are fetched",
        ),
        sa.Column(
            "changed_files",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="[{filename, status, additions, deletions, patch}]",
        ),
        *_timestamps(),
        sa.CheckConstraint(
            "(user_id IS NULL) <> (unregistered_user_name IS NULL)",
            name="ck_github_commits_single_author",
        ),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["agreement_id"], ["agreements.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_github_commits_id", "github_commits", ["id"])
    op.create_index("ix_github_commits_project_id", "github_commits", ["project_id"])
    op.create_index("ix_github_commits_user_id", "github_commits", ["user_id"])
    op.create_index("ix_github_commits_agreement_id", "github_commits", ["agreement_id"])
    op.create_index(
        "ix_github_commits_project_sha",
        "github_commits",
        ["project_id", "commit_sha"],
        unique=True,
    )
    op.create_index(
        "ix_github_commits_project_commit_date",
        "github_commits",
        ["project_id", "commit_date"],
    )

    op.create_table(
        "github_branch_commits",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("branch_id", sa.Uuid(), nullable=False),
        sa.Column("commit_id", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["branch_id"], ["github_branches.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["commit_id"], ["github_commits.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_github_branch_commits_branch_commit",
        "github_branch_commits",
        ["branch_id", "commit_id"],
        unique=True,
    )
    op.create_index("ix_github_branch_commits_commit_id", "github_branch_commits", ["commit_id"])

    # 3. Lease rows for the sync mutex
    op.create_table(
        "sync_locks",
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("holder", sa.String(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    op.drop_table("sync_locks")
    op.drop_index("ix_github_branch_commits_commit_id", table_name="github_branch_commits")
    op.drop_index("ix_github_branch_commits_branch_commit", table_name="github_branch_commits")
    op.drop_table("github_branch_commits")
    op.drop_table("github_commits")
    op.drop_table("github_branches")
    op.drop_table("agreement_participants")
    op.drop_table("agreements")
    op.drop_table("projects")
    op.drop_table("users")
