from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from src.repurposing.domain.models.alert import Alert, AlertSeverity
from src.repurposing.errors import NotFound
from src.repurposing.infra.db import inmemory as repos

logger = logging.getLogger("pipeline.alerts")


class AlertService:
    """Operator alerts raised by the pipeline (failed and stalled jobs)."""

    def raise_alert(
        self,
        *,
        severity: AlertSeverity,
        category: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        related_content_id: Optional[UUID] = None,
    ) -> Alert:
        alert = Alert(
            id=uuid4(),
            severity=severity,
            category=category,
            message=message,
            details=details,
            related_content_id=related_content_id,
            created_at=datetime.now(timezone.utc),
        )
        repos.alert_repository.add(alert)
        logger.warning("Alert [%s/%s]: %s", alert.severity.value, alert.category, alert.message)
        return alert

    def list(self, *, unread_only: bool = False, limit: int = 50, offset: int = 0) -> Tuple[List[Alert], int]:
        return repos.alert_repository.list(unread_only=unread_only, limit=limit, offset=offset)

    def get(self, alert_id: UUID) -> Alert:
        alert = repos.alert_repository.get(alert_id)
        if alert is None:
            raise NotFound("Alert not found")
        return alert

    def update(self, alert_id: UUID, *, is_read: Optional[bool] = None, is_resolved: Optional[bool] = None) -> Alert:
        alert = self.get(alert_id)
        if is_read is not None:
            alert.is_read = is_read
        if is_resolved is not None:
            alert.is_resolved = is_resolved
            alert.resolved_at = datetime.now(timezone.utc) if is_resolved else None
        repos.alert_repository.save(alert)
        return alert


alert_service = AlertService()
