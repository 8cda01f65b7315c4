from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from src.repurposing.domain.models.template import DerivativeTemplate
from src.repurposing.errors import PipelineError, to_http_exception
from src.repurposing.security import get_api_key
from src.repurposing.services.derivatives.templates import template_service

router = APIRouter(prefix="/templates", tags=["templates"], dependencies=[Depends(get_api_key)])


class CreateTemplateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Optional here so missing fields come back as the service's 400.
    name: Optional[str] = None
    derivative_type: Optional[str] = Field(default=None, alias="derivativeType")
    description: Optional[str] = None
    system_prompt: Optional[str] = Field(default=None, alias="systemPrompt")
    user_prompt_template: Optional[str] = Field(default=None, alias="userPromptTemplate")
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens")
    output_format: Optional[str] = Field(default=None, alias="outputFormat")


class UpdateTemplateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    system_prompt: Optional[str] = Field(default=None, alias="systemPrompt")
    user_prompt_template: Optional[str] = Field(default=None, alias="userPromptTemplate")
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens")
    output_format: Optional[str] = Field(default=None, alias="outputFormat")
    is_active: Optional[bool] = Field(default=None, alias="isActive")


class TemplateListResponse(BaseModel):
    templates: List[DerivativeTemplate]
    total: int


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    derivative_type: Optional[str] = Query(default=None, alias="derivativeType"),
    active_only: bool = Query(default=False, alias="activeOnly"),
) -> TemplateListResponse:
    templates = template_service.list(derivative_type=derivative_type, active_only=active_only)
    return TemplateListResponse(templates=templates, total=len(templates))


@router.post("", response_model=DerivativeTemplate, status_code=status.HTTP_201_CREATED)
async def create_template(request: CreateTemplateRequest) -> DerivativeTemplate:
    try:
        return template_service.create(
            name=request.name,
            derivative_type=request.derivative_type,
            description=request.description,
            system_prompt=request.system_prompt,
            user_prompt_template=request.user_prompt_template,
            max_tokens=request.max_tokens,
            output_format=request.output_format,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{template_id}", response_model=DerivativeTemplate)
async def get_template(template_id: UUID) -> DerivativeTemplate:
    try:
        return template_service.get(template_id)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{template_id}", response_model=DerivativeTemplate)
async def update_template(template_id: UUID, request: UpdateTemplateRequest) -> DerivativeTemplate:
    try:
        return template_service.update(template_id, **request.model_dump(exclude_none=True))
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
