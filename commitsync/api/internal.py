"""Internal API endpoints, protected by shared secret, not user auth.

These endpoints are called by cron jobs / external schedulers and by the
project setup flow, not by human users. They validate a shared secret via
the X-Cron-Secret header.
"""

import logging
import uuid as uuid_pkg
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from commitsync.config.settings import settings
from commitsync.core.database import get_db
from commitsync.core.encryption import token_encryption

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


def _verify_cron_secret(x_cron_secret: str = Header(...)) -> None:
    """Validate the X-Cron-Secret header against the configured secret."""
    if not settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret not configured",
        )
    if x_cron_secret != settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid cron secret",
        )


@router.post("/github/poll")
async def trigger_github_poll(
    x_cron_secret: str = Header(...),
) -> dict[str, Any]:
    """
    Run one GitHub poll cycle now.

    Protected by X-Cron-Secret header. Useful when the in-process
    scheduler is disabled and an external cron drives polling.
    """
    _verify_cron_secret(x_cron_secret)

    from commitsync.tasks.github_sync import run_poll_cycle

    report = await run_poll_cycle()
    if report is None:
        return {"skipped": True, "reason": "another poll cycle is running"}
    return asdict(report)


@router.post("/github/projects/{project_id}/sync", status_code=status.HTTP_202_ACCEPTED)
async def trigger_project_sync(
    project_id: uuid_pkg.UUID,
    x_cron_secret: str = Header(...),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Enqueue branch discovery for a project.

    This is how a newly connected repository gets its first branches (and
    so becomes eligible for polling). New branches are then refreshed in
    fast mode and enriched in the background.
    """
    _verify_cron_secret(x_cron_secret)

    from commitsync.domain import project_ops
    from commitsync.services.task_queue import task_queue
    from commitsync.tasks.github_sync import fetch_branches

    project = await project_ops.get(db, project_id)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if not project.repository_url or not project.repository_url.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Project has no repository configured",
        )

    stored_token = await project_ops.get_owner_token(db, project_id)
    if stored_token is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Project owner has no GitHub token",
        )

    if not task_queue.is_bound:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Task queue is not running",
        )

    job_id = task_queue.enqueue(fetch_branches, project_id, token_encryption.decrypt(stored_token))
    logger.info(f"[internal] Enqueued branch discovery for project {project_id} ({job_id})")

    return {"project_id": str(project_id), "job_id": job_id, "status": "queued"}
