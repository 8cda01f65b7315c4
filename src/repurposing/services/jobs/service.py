from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import UUID, uuid4

from src.repurposing.config import settings
from src.repurposing.domain.models.processing_job import JobStatus, JobType, ProcessingJob
from src.repurposing.errors import NotFound, ValidationError
from src.repurposing.infra.db import inmemory as repos
from src.repurposing.services.audit.service import audit_service

logger = logging.getLogger("pipeline.jobs")

MAX_PAGE_SIZE = 200


def parse_job_type(value: Union[str, JobType]) -> JobType:
    if isinstance(value, JobType):
        return value
    try:
        return JobType(value)
    except ValueError:
        valid = ", ".join(t.value for t in JobType)
        raise ValidationError(f"Invalid jobType '{value}'. Must be one of: {valid}") from None


def parse_job_status(value: Union[str, JobStatus]) -> JobStatus:
    if isinstance(value, JobStatus):
        return value
    try:
        return JobStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in JobStatus)
        raise ValidationError(f"Invalid status '{value}'. Must be one of: {valid}") from None


class JobService:
    """Durable record of queued, running and finished work items.

    Only creation happens here. Status, output and error fields are changed
    exclusively by the scheduler and the completion callback.
    """

    def enqueue(
        self,
        job_type: Union[str, JobType],
        *,
        source_content_id: Optional[UUID] = None,
        input_data: Optional[Dict[str, Any]] = None,
        priority: Optional[int] = None,
    ) -> ProcessingJob:
        job = ProcessingJob(
            id=uuid4(),
            job_type=parse_job_type(job_type),
            source_content_id=source_content_id,
            input_data=dict(input_data or {}),
            priority=settings.default_job_priority if priority is None else priority,
            status=JobStatus.QUEUED,
            progress=0,
            created_at=datetime.now(timezone.utc),
        )
        repos.job_repository.add(job)

        logger.info("Enqueued %s job %s at priority %d", job.job_type.value, job.id, job.priority)
        audit_service.log_event(
            action="enqueue",
            resource_type="processing_job",
            resource_id=str(job.id),
            extra={"job_type": job.job_type.value, "priority": job.priority},
        )
        return job

    def get(self, job_id: UUID) -> ProcessingJob:
        job = repos.job_repository.get(job_id)
        if job is None:
            raise NotFound(f"Job {job_id} not found")
        return job

    def list(
        self,
        *,
        status: Optional[Union[str, JobStatus]] = None,
        job_type: Optional[Union[str, JobType]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[ProcessingJob], int]:
        """List jobs most-urgent first, returning the page and the total match count."""

        if limit < 1 or offset < 0:
            raise ValidationError("limit must be positive and offset non-negative")
        return repos.job_repository.list_by_filters(
            status=parse_job_status(status) if status is not None else None,
            job_type=parse_job_type(job_type) if job_type is not None else None,
            limit=min(limit, MAX_PAGE_SIZE),
            offset=offset,
        )


job_service = JobService()
