from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Alert(BaseModel):
    """Operator-facing notice about something that went wrong.

    Alerts are never deleted; operators mark them read or resolved.
    """

    id: UUID
    severity: AlertSeverity
    category: str
    message: str
    details: Optional[Dict[str, Any]] = None
    related_content_id: Optional[UUID] = None
    is_read: bool = False
    is_resolved: bool = False
    resolved_at: Optional[datetime] = None
    created_at: datetime
