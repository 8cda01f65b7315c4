from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from src.repurposing.domain.models.alert import Alert
from src.repurposing.errors import PipelineError, to_http_exception
from src.repurposing.security import get_api_key
from src.repurposing.services.alerts.service import alert_service

router = APIRouter(prefix="/alerts", tags=["alerts"], dependencies=[Depends(get_api_key)])


class AlertListResponse(BaseModel):
    alerts: List[Alert]
    total: int
    limit: int
    offset: int


class UpdateAlertRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_read: Optional[bool] = Field(default=None, alias="isRead")
    is_resolved: Optional[bool] = Field(default=None, alias="isResolved")


@router.get("", response_model=AlertListResponse)
async def list_alerts(
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> AlertListResponse:
    alerts, total = alert_service.list(unread_only=unread_only, limit=limit, offset=offset)
    return AlertListResponse(alerts=alerts, total=total, limit=limit, offset=offset)


@router.get("/{alert_id}", response_model=Alert)
async def get_alert(alert_id: UUID) -> Alert:
    try:
        return alert_service.get(alert_id)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{alert_id}", response_model=Alert)
async def update_alert(alert_id: UUID, request: UpdateAlertRequest) -> Alert:
    """Mark an alert read and/or resolved."""

    try:
        return alert_service.update(alert_id, is_read=request.is_read, is_resolved=request.is_resolved)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
