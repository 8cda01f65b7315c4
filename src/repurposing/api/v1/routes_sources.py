from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from src.repurposing.domain.models.derivative_queue import BatchProgress
from src.repurposing.domain.models.source_content import MediaType, SourceContent
from src.repurposing.errors import PipelineError, to_http_exception
from src.repurposing.security import get_api_key
from src.repurposing.services.batches.service import batch_tracker
from src.repurposing.services.sources.service import source_service

router = APIRouter(tags=["sources"], dependencies=[Depends(get_api_key)])


class CreateSourceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content_id: str = Field(alias="contentId")
    title: str
    content_type: str = Field(default="article", alias="contentType")
    media_type: MediaType = Field(default=MediaType.TEXT, alias="mediaType")
    language: str = "en"
    # Article text for text sources, or an existing transcript for media.
    transcription: Optional[str] = None
    duration_seconds: Optional[int] = Field(default=None, alias="durationSeconds")


class RepurposeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    derivative_types: Optional[List[str]] = Field(default=None, alias="derivativeTypes")
    languages: Optional[List[str]] = None


class RepurposeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    queue_id: UUID = Field(serialization_alias="queueId")
    job_id: UUID = Field(serialization_alias="jobId")
    expected_derivatives: int = Field(serialization_alias="expectedDerivatives")
    expected_translations: int = Field(serialization_alias="expectedTranslations")


@router.post("/sources", response_model=SourceContent, status_code=status.HTTP_201_CREATED)
async def create_source(request: CreateSourceRequest) -> SourceContent:
    try:
        return source_service.register(
            content_id=request.content_id,
            title=request.title,
            content_type=request.content_type,
            media_type=request.media_type,
            language=request.language,
            transcription=request.transcription,
            duration_seconds=request.duration_seconds,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.get("/sources/{source_id}", response_model=SourceContent)
async def get_source(source_id: UUID) -> SourceContent:
    try:
        return source_service.get(source_id)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.post(
    "/sources/{source_id}/repurpose",
    response_model=RepurposeResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_202_ACCEPTED,
)
async def repurpose_source(source_id: UUID, request: Optional[RepurposeRequest] = None) -> RepurposeResponse:
    """Open a fan-out batch for a ready source and queue the job that fills it."""

    request = request or RepurposeRequest()
    try:
        result = batch_tracker.repurpose_source(
            source_id,
            derivative_types=request.derivative_types,
            languages=request.languages,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
    return RepurposeResponse(**result)


@router.get("/batches/{queue_id}", response_model=BatchProgress)
async def get_batch_progress(queue_id: UUID) -> BatchProgress:
    try:
        return batch_tracker.progress(queue_id)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
