"""
Backfill Routes
===============

Endpoints:
- POST /backfill?since=... - start a detached backfill job
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from catalog_sync.api.security import ContainerDep, require_backfill_token
from catalog_sync.schemas.domain import Job
from catalog_sync.schemas.responses import BackfillResponse
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=BackfillResponse,
    dependencies=[Depends(require_backfill_token)],
    summary="Start a backfill",
    responses={401: {"description": "Missing or invalid X-Backfill-Token"}},
)
async def start_backfill(
    container: ContainerDep,
    since: str | None = Query(default=None, description="Only products updated at/after"),
) -> BackfillResponse:
    """Returns as soon as the job is registered; poll GET /jobs/{job_id}."""
    since = since or None

    async def runner(job: Job) -> dict[str, Any]:
        return await container.backfill.run(since=since, source="backfill")

    job = container.job_queue.enqueue("backfill", {"since": since, "limit": None}, runner)
    logger.info("backfill_requested", job_id=job.id, since=since)
    return BackfillResponse(started=True, since=since, job_id=job.id)
