"""
Job Routes
==========

Endpoints:
- GET /jobs - most recent jobs first
- GET /jobs/{job_id} - one job record

Both require X-Command-Token.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from catalog_sync.api.security import ContainerDep, require_command_token
from catalog_sync.schemas.domain import Job
from catalog_sync.schemas.responses import JobListResponse
from catalog_sync.utils.errors import JobNotFoundError

router = APIRouter(dependencies=[Depends(require_command_token)])


@router.get("", response_model=JobListResponse, summary="List jobs")
async def list_jobs(
    container: ContainerDep,
    limit: int = Query(default=10, ge=1, le=100),
) -> JobListResponse:
    return JobListResponse(jobs=container.job_queue.list(limit))


@router.get(
    "/{job_id}",
    response_model=Job,
    summary="Get job status",
    responses={404: {"description": "Job not found"}},
)
async def get_job(job_id: str, container: ContainerDep) -> Job:
    try:
        return container.job_queue.status(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
