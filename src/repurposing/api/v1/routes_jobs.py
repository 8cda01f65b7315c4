from __future__ import annotations

from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from src.repurposing.domain.models.processing_job import ProcessingJob
from src.repurposing.errors import PipelineError, to_http_exception
from src.repurposing.security import get_api_key
from src.repurposing.services.jobs.scheduler import job_scheduler
from src.repurposing.services.jobs.service import job_service

router = APIRouter(prefix="/jobs", tags=["jobs"], dependencies=[Depends(get_api_key)])


class EnqueueJobRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Plain string so an unknown type is reported as a 400 by the service.
    job_type: str = Field(alias="jobType")
    source_content_id: Optional[UUID] = Field(default=None, alias="sourceContentId")
    input_data: Optional[Dict[str, Any]] = Field(default=None, alias="inputData")
    priority: Optional[int] = None


class JobListResponse(BaseModel):
    jobs: List[ProcessingJob]
    total: int
    limit: int
    offset: int


class ProcessNextResponse(BaseModel):
    job: ProcessingJob
    outcome: str
    applied: bool


class NoQueuedJobsResponse(BaseModel):
    message: str


class MaintenanceResponse(BaseModel):
    count: int
    jobs: List[ProcessingJob]


@router.post("", response_model=ProcessingJob, status_code=status.HTTP_201_CREATED)
async def enqueue_job(request: EnqueueJobRequest) -> ProcessingJob:
    try:
        return job_service.enqueue(
            request.job_type,
            source_content_id=request.source_content_id,
            input_data=request.input_data,
            priority=request.priority,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.get("", response_model=JobListResponse)
async def list_jobs(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    job_type: Optional[str] = Query(default=None, alias="jobType"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> JobListResponse:
    try:
        jobs, total = job_service.list(status=status_filter, job_type=job_type, limit=limit, offset=offset)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
    return JobListResponse(jobs=jobs, total=total, limit=limit, offset=offset)


@router.post("/process-next", response_model=Union[ProcessNextResponse, NoQueuedJobsResponse])
async def process_next_job() -> Union[ProcessNextResponse, NoQueuedJobsResponse]:
    """Claim and run the most urgent queued job.

    Intended to be hit by an external trigger (cron, worker loop). Each call
    processes at most one job.
    """

    result = job_scheduler.process_next()
    if result is None:
        return NoQueuedJobsResponse(message="No queued jobs")
    return ProcessNextResponse(job=result.job, outcome=result.outcome, applied=result.applied)


@router.post("/maintenance/reap-stalled", response_model=MaintenanceResponse)
async def reap_stalled_jobs() -> MaintenanceResponse:
    reaped = job_scheduler.reap_stalled()
    return MaintenanceResponse(count=len(reaped), jobs=reaped)


@router.post("/maintenance/reconcile", response_model=MaintenanceResponse)
async def reconcile_batch_jobs() -> MaintenanceResponse:
    completed = job_scheduler.reconcile_batches()
    return MaintenanceResponse(count=len(completed), jobs=completed)


@router.get("/{job_id}", response_model=ProcessingJob)
async def get_job(job_id: UUID) -> ProcessingJob:
    try:
        return job_service.get(job_id)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{job_id}/cancel", response_model=ProcessingJob)
async def cancel_job(job_id: UUID) -> ProcessingJob:
    try:
        return job_scheduler.cancel(job_id)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{job_id}/retry", response_model=ProcessingJob)
async def retry_job(job_id: UUID) -> ProcessingJob:
    try:
        return job_scheduler.retry(job_id)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
