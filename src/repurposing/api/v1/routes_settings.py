from __future__ import annotations

from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.repurposing.domain.models.metrics import DailyMetrics
from src.repurposing.errors import PipelineError, to_http_exception
from src.repurposing.security import get_api_key
from src.repurposing.services.metrics.service import metrics_service
from src.repurposing.services.settings.service import settings_service

router = APIRouter(tags=["settings"], dependencies=[Depends(get_api_key)])


class SettingsResponse(BaseModel):
    settings: Dict[str, str]
    portal_open: bool


class UpdateSettingsRequest(BaseModel):
    settings: Dict[str, str]


@router.get("/settings", response_model=SettingsResponse)
async def get_settings() -> SettingsResponse:
    return SettingsResponse(settings=settings_service.all(), portal_open=settings_service.is_portal_open())


@router.patch("/settings", response_model=SettingsResponse)
async def update_settings(request: UpdateSettingsRequest) -> SettingsResponse:
    try:
        values = settings_service.update_many(request.settings)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
    return SettingsResponse(settings=values, portal_open=settings_service.is_portal_open())


@router.get("/metrics", response_model=DailyMetrics)
async def get_metrics(day: Optional[date] = None) -> DailyMetrics:
    """Pipeline counters for one day (UTC, defaults to today)."""
    return metrics_service.for_day(day)
