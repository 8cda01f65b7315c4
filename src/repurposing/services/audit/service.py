from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger("audit")


@dataclass
class AuditEvent:
    """One line of the audit trail.

    Only identifiers, types and counts go in here. Derivative and
    translation bodies stay out of the audit log.
    """

    timestamp: str
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    subject: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


class AuditService:
    def log_event(
        self,
        *,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        subject: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Write a JSON audit line for a state change.

        ``action`` is a short verb ("claim", "finish", "approve"),
        ``resource_type`` names the entity ("processing_job", "translation").
        When ``subject`` is not given, the caller identity recorded by the
        security dependencies for this request is used.
        """

        if subject is None:
            from src.repurposing.security import get_current_subject

            subject = get_current_subject()

        record = asdict(
            AuditEvent(
                timestamp=datetime.now(timezone.utc).isoformat(),
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                subject=subject,
                extra=extra,
            )
        )
        try:
            line = json.dumps(record)
        except TypeError:
            # Unserializable extra payload; keep the event without it.
            record["extra"] = None
            line = json.dumps(record)
        logger.info(line)


audit_service = AuditService()
