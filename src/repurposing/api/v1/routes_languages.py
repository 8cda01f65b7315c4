from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from src.repurposing.domain.models.language import LanguageConfig
from src.repurposing.errors import PipelineError, to_http_exception
from src.repurposing.security import get_api_key
from src.repurposing.services.languages.service import language_service

router = APIRouter(prefix="/languages", tags=["languages"], dependencies=[Depends(get_api_key)])


class CreateLanguageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: Optional[str] = None
    name: Optional[str] = None
    native_name: Optional[str] = Field(default=None, alias="nativeName")
    priority: Optional[int] = None


class UpdateLanguageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    native_name: Optional[str] = Field(default=None, alias="nativeName")
    is_active: Optional[bool] = Field(default=None, alias="isActive")
    priority: Optional[int] = None
    has_local_reviewer: Optional[bool] = Field(default=None, alias="hasLocalReviewer")
    reviewer_contact: Optional[str] = Field(default=None, alias="reviewerContact")


class LanguageListResponse(BaseModel):
    languages: List[LanguageConfig]
    total: int


@router.get("", response_model=LanguageListResponse)
async def list_languages() -> LanguageListResponse:
    languages = language_service.list()
    return LanguageListResponse(languages=languages, total=len(languages))


@router.post("", response_model=LanguageConfig, status_code=status.HTTP_201_CREATED)
async def create_language(request: CreateLanguageRequest) -> LanguageConfig:
    try:
        return language_service.create(
            code=request.code,
            name=request.name,
            native_name=request.native_name,
            priority=request.priority,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{language_id}", response_model=LanguageConfig)
async def update_language(language_id: UUID, request: UpdateLanguageRequest) -> LanguageConfig:
    try:
        return language_service.update(language_id, **request.model_dump(exclude_none=True))
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
