from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from src.repurposing.domain.models.language import LanguageConfig
from src.repurposing.errors import Conflict, NotFound, ValidationError
from src.repurposing.infra.db import inmemory as repos
from src.repurposing.services.audit.service import audit_service

_UPDATABLE_FIELDS = ("name", "native_name", "is_active", "priority", "has_local_reviewer", "reviewer_contact")


class LanguageService:
    """Registry of target languages.

    Active languages, in priority order, are where translations fan out to
    when a caller does not name languages itself.
    """

    def list(self, *, active_only: bool = False) -> List[LanguageConfig]:
        return repos.language_config_repository.list(active_only=active_only)

    def get(self, language_id: UUID) -> LanguageConfig:
        language = repos.language_config_repository.get(language_id)
        if language is None:
            raise NotFound("Language not found")
        return language

    def create(
        self,
        *,
        code: Optional[str],
        name: Optional[str],
        native_name: Optional[str] = None,
        priority: Optional[int] = None,
    ) -> LanguageConfig:
        code = (code or "").strip()
        if not code or not name:
            raise ValidationError("code and name are required")
        if repos.language_config_repository.get_by_code(code) is not None:
            raise Conflict(f"Language {code} already exists")

        now = datetime.now(timezone.utc)
        language = LanguageConfig(
            id=uuid4(),
            code=code,
            name=name,
            native_name=native_name or None,
            priority=priority or 5,
            created_at=now,
            updated_at=now,
        )
        repos.language_config_repository.add(language)
        audit_service.log_event(action="create", resource_type="language", resource_id=language.code)
        return language

    def update(self, language_id: UUID, **fields: object) -> LanguageConfig:
        language = self.get(language_id)
        changes = {key: value for key, value in fields.items() if key in _UPDATABLE_FIELDS and value is not None}
        if "name" in changes and not str(changes["name"]).strip():
            raise ValidationError("name must not be empty")

        updated = language.model_copy(update={**changes, "updated_at": datetime.now(timezone.utc)})
        repos.language_config_repository.save(updated)
        audit_service.log_event(
            action="update",
            resource_type="language",
            resource_id=updated.code,
            extra={"fields": sorted(changes)},
        )
        return updated

    def active_codes(self) -> List[str]:
        return [language.code for language in repos.language_config_repository.list(active_only=True)]

    def display_name(self, code: str) -> str:
        language = repos.language_config_repository.get_by_code(code)
        return language.name if language is not None else code.upper()

    def record_translation(self, code: str) -> None:
        repos.language_config_repository.increment_translations(code)


language_service = LanguageService()
