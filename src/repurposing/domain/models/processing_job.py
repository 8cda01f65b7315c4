from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class JobType(str, Enum):
    TRANSCRIPTION = "transcription"
    CLIP_EXTRACTION = "clip_extraction"
    DERIVATIVE_GENERATION = "derivative_generation"
    TRANSLATION = "translation"
    IMAGE_GENERATION = "image_generation"
    BATCH_REPURPOSE = "batch_repurpose"


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Legal status transitions. Everything not listed here is rejected.
ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING, JobStatus.CANCELLED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.FAILED: frozenset({JobStatus.QUEUED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[JobStatus] = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class ProcessingJob(BaseModel):
    """A unit of queued work.

    Jobs are work orders: ``source_content_id`` is a lookup convenience and the
    job owns none of the content it produces. ``completed_at`` is set exactly
    when the job is completed or failed.
    """

    id: UUID
    job_type: JobType
    source_content_id: Optional[UUID] = None
    input_data: Dict[str, Any] = Field(default_factory=dict)
    priority: int = 5
    status: JobStatus = JobStatus.QUEUED
    progress: int = Field(default=0, ge=0, le=100)
    output_data: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
