from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from src.repurposing.domain.models.processing_job import ProcessingJob
from src.repurposing.domain.models.source_content import MediaType, SourceContent
from src.repurposing.domain.models.translation import Translation
from src.repurposing.errors import PipelineError, to_http_exception
from src.repurposing.security import require_webhook_key
from src.repurposing.services.jobs.scheduler import job_scheduler
from src.repurposing.services.sources.service import source_service
from src.repurposing.services.translations.service import review_engine

router = APIRouter(prefix="/webhooks", tags=["webhooks"], dependencies=[Depends(require_webhook_key)])


class JobCompleteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: UUID = Field(alias="jobId")
    status: str
    output_data: Optional[Dict[str, Any]] = Field(default=None, alias="outputData")
    error_message: Optional[str] = Field(default=None, alias="errorMessage")


class JobCompleteResponse(BaseModel):
    success: bool
    applied: bool
    job: ProcessingJob


class TranslationReviewedRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    translation_id: UUID = Field(alias="translationId")
    action: str
    reviewer_notes: Optional[str] = Field(default=None, alias="reviewerNotes")
    edited_body: Optional[str] = Field(default=None, alias="editedBody")
    reviewer: Optional[str] = None


class TranslationReviewedResponse(BaseModel):
    success: bool
    translation: Translation


class SourceContentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content_id: str = Field(alias="contentId")
    title: str
    content_type: str = Field(default="article", alias="contentType")
    media_type: MediaType = Field(default=MediaType.TEXT, alias="mediaType")
    language: str = "en"
    transcription: Optional[str] = None
    # Article text; used as the source text when no transcription is given.
    body: Optional[str] = None
    duration_seconds: Optional[int] = Field(default=None, alias="durationSeconds")


class SourceContentResponse(BaseModel):
    success: bool
    source: SourceContent
    job: Optional[ProcessingJob] = None


@router.post("/job-complete", response_model=JobCompleteResponse)
async def job_complete(request: JobCompleteRequest) -> JobCompleteResponse:
    """Receive a terminal status from an external worker.

    Redelivery is expected: a report for a job that is no longer processing
    returns 200 with ``applied: false`` and changes nothing.
    """

    try:
        report = job_scheduler.report_completion(
            request.job_id,
            request.status,
            output_data=request.output_data,
            error_message=request.error_message,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
    return JobCompleteResponse(success=True, applied=report.applied, job=report.job)


@router.post("/translation-reviewed", response_model=TranslationReviewedResponse)
async def translation_reviewed(request: TranslationReviewedRequest) -> TranslationReviewedResponse:
    try:
        translation = review_engine.submit_review(
            request.translation_id,
            request.action,
            reviewer_notes=request.reviewer_notes,
            edited_body=request.edited_body,
            reviewer=request.reviewer,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
    return TranslationReviewedResponse(success=True, translation=translation)


@router.post("/source-content", response_model=SourceContentResponse, status_code=status.HTTP_201_CREATED)
async def source_content(request: SourceContentRequest) -> SourceContentResponse:
    try:
        result = source_service.ingest(
            content_id=request.content_id,
            title=request.title,
            content_type=request.content_type,
            media_type=request.media_type,
            language=request.language,
            transcription=request.transcription or request.body,
            duration_seconds=request.duration_seconds,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
    return SourceContentResponse(success=True, source=result["source"], job=result["job"])
