from __future__ import annotations

from typing import Dict, Optional

from src.repurposing.errors import ValidationError
from src.repurposing.infra.db import inmemory as repos
from src.repurposing.services.audit.service import audit_service

PORTAL_OPEN_KEY = "translation_portal_open"


class SettingsService:
    """Key/value system settings backed by the settings repository.

    Values are read from the repository on every call, never cached, so all
    requests see the same persisted value.
    """

    def get(self, key: str) -> Optional[str]:
        return repos.settings_repository.get(key)

    def set(self, key: str, value: str) -> None:
        key = key.strip()
        if not key:
            raise ValidationError("Setting key must not be empty")
        repos.settings_repository.set(key, value)
        audit_service.log_event(action="update", resource_type="system_setting", resource_id=key)

    def update_many(self, values: Dict[str, str]) -> Dict[str, str]:
        for key, value in values.items():
            self.set(key, value)
        return self.all()

    def all(self) -> Dict[str, str]:
        return repos.settings_repository.all()

    def is_portal_open(self) -> bool:
        """The translator portal is open unless explicitly set to "false"."""

        value = self.get(PORTAL_OPEN_KEY)
        return value is None or value.strip().lower() != "false"


settings_service = SettingsService()
