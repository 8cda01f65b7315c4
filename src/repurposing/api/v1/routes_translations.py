from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from src.repurposing.domain.models.translation import Translation
from src.repurposing.errors import PipelineError, ValidationError, to_http_exception
from src.repurposing.security import get_api_key
from src.repurposing.services.translations.service import MultiTranslationResult, review_engine

router = APIRouter(prefix="/translations", tags=["translations"], dependencies=[Depends(get_api_key)])


class TranslateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    derivative_id: UUID = Field(alias="derivativeId")
    target_language: Optional[str] = Field(default=None, alias="targetLanguage")
    languages: Optional[List[str]] = None


class ReviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    reviewer_notes: Optional[str] = Field(default=None, alias="reviewerNotes")
    edited_body: Optional[str] = Field(default=None, alias="editedBody")
    reviewer: Optional[str] = None


class FinalApproveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    approved_by: Optional[str] = Field(default=None, alias="approvedBy")


@router.post("/translate", response_model=MultiTranslationResult)
async def translate_derivative(request: TranslateRequest) -> MultiTranslationResult:
    """Machine-translate a derivative into one or more languages.

    Existing translations for a language are returned rather than
    duplicated.
    """

    languages = list(request.languages or [])
    if request.target_language:
        languages.insert(0, request.target_language)
    try:
        if not languages:
            raise ValidationError("targetLanguage or languages is required")
        return review_engine.translate_to_languages(request.derivative_id, languages)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{translation_id}", response_model=Translation)
async def get_translation(translation_id: UUID) -> Translation:
    try:
        return review_engine.get(translation_id)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{translation_id}/review", response_model=Translation)
async def submit_review(translation_id: UUID, request: ReviewRequest) -> Translation:
    try:
        return review_engine.submit_review(
            translation_id,
            request.action,
            reviewer_notes=request.reviewer_notes,
            edited_body=request.edited_body,
            reviewer=request.reviewer,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{translation_id}/approve", response_model=Translation)
async def final_approve(translation_id: UUID, request: Optional[FinalApproveRequest] = None) -> Translation:
    """Administrative one-step approval (pass 3, approved)."""

    try:
        return review_engine.final_approve(
            translation_id,
            approved_by=request.approved_by if request is not None else None,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
