"""
Pydantic Response Models
========================

Response schemas for the HTTP surface.
"""

from typing import Any

from pydantic import BaseModel, Field

from catalog_sync.schemas.domain import Job


class CommandResponse(BaseModel):
    """Response body for POST /commands."""

    ok: bool = True
    used_ai: bool = Field(default=False, serialization_alias="usedAi")
    notes: str | None = None
    results: list[dict[str, Any]] = Field(default_factory=list)


class BackfillResponse(BaseModel):
    """Response body for POST /backfill."""

    started: bool = True
    since: str | None = None
    job_id: str


class JobListResponse(BaseModel):
    """Response body for GET /jobs."""

    jobs: list[Job]
