"""
Job system Pydantic schemas.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jobqueue.jobs.models import JobState


class JobCreate(BaseModel):
    """Schema for creating a new job."""

    name: str = Field(..., min_length=1, description="Handler name")
    args: dict[str, Any] = Field(default_factory=dict, description="Handler payload")
    start_after: datetime | None = Field(
        default=None, description="Earliest time the job may be claimed"
    )
    retries: int | None = Field(
        default=None, ge=1, description="Maximum number of attempts"
    )

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Job name cannot be empty")
        return value

    @field_validator("start_after")
    @classmethod
    def start_after_is_aware(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            raise ValueError("start_after must be timezone-aware")
        return value


class JobResponse(BaseModel):
    """Schema for a job as shown to operators."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    args: dict[str, Any]
    state: JobState
    created_at: datetime
    start_after: datetime
    started_at: datetime | None = None
    attempts: int
    retries: int
    completed_at: datetime | None = None
    error: str | None = None


class JobListResponse(BaseModel):
    """Schema for a page of jobs."""

    jobs: list[JobResponse]
    total: int
    limit: int
    offset: int


class JobStatsResponse(BaseModel):
    """Schema for job statistics."""

    total_jobs: int
    by_state: dict[str, int]
    by_name: dict[str, dict[str, int]]
    due_now: int = Field(description="Pending jobs claimable right now")
