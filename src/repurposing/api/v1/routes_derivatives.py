from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from src.repurposing.domain.models.derivative import Derivative, DerivativeStatus
from src.repurposing.errors import PipelineError, to_http_exception
from src.repurposing.security import get_api_key
from src.repurposing.services.derivatives.generator import BatchGenerationResult, derivative_generator

router = APIRouter(prefix="/derivatives", tags=["derivatives"], dependencies=[Depends(get_api_key)])


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_content_id: UUID = Field(alias="sourceContentId")
    derivative_types: Optional[List[str]] = Field(default=None, alias="derivativeTypes")


class UpdateDerivativeRequest(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    status: Optional[DerivativeStatus] = None


@router.post("/generate", response_model=BatchGenerationResult)
async def generate_derivatives(request: GenerateRequest) -> BatchGenerationResult:
    """Generate derivatives synchronously.

    A 200 response can still carry per-type failures; check ``success`` and
    each entry of ``results``.
    """

    try:
        return derivative_generator.generate_batch(request.source_content_id, request.derivative_types)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{derivative_id}", response_model=Derivative)
async def get_derivative(derivative_id: UUID) -> Derivative:
    try:
        return derivative_generator.get(derivative_id)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{derivative_id}", response_model=Derivative)
async def update_derivative(derivative_id: UUID, request: UpdateDerivativeRequest) -> Derivative:
    try:
        return derivative_generator.update_derivative(
            derivative_id,
            title=request.title,
            body=request.body,
            status=request.status,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{derivative_id}/send-to-distribution", response_model=Derivative)
async def send_to_distribution(derivative_id: UUID) -> Derivative:
    try:
        return derivative_generator.send_to_distribution(derivative_id)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
