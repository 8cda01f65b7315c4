from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from src.repurposing.domain.models.template import DerivativeTemplate
from src.repurposing.errors import NotFound, ValidationError
from src.repurposing.infra.db import inmemory as repos
from src.repurposing.services.audit.service import audit_service

logger = logging.getLogger("pipeline.templates")

_UPDATABLE_FIELDS = (
    "name",
    "description",
    "system_prompt",
    "user_prompt_template",
    "max_tokens",
    "output_format",
    "is_active",
)


class TemplateService:
    """Registry of prompt templates, one or more per derivative type.

    The generator only ever uses the newest active template of a type, and
    the set of types with an active template is the default fan-out of a
    repurposing batch.
    """

    def list(self, *, derivative_type: Optional[str] = None, active_only: bool = False) -> List[DerivativeTemplate]:
        return repos.derivative_template_repository.list(derivative_type=derivative_type, active_only=active_only)

    def get(self, template_id: UUID) -> DerivativeTemplate:
        template = repos.derivative_template_repository.get(template_id)
        if template is None:
            raise NotFound("Template not found")
        return template

    def create(
        self,
        *,
        name: Optional[str],
        derivative_type: Optional[str],
        system_prompt: Optional[str],
        user_prompt_template: Optional[str],
        description: Optional[str] = None,
        max_tokens: Optional[int] = None,
        output_format: Optional[str] = None,
    ) -> DerivativeTemplate:
        if not name or not derivative_type or not system_prompt or not user_prompt_template:
            raise ValidationError("name, derivativeType, systemPrompt, and userPromptTemplate are required")
        if max_tokens is not None and max_tokens <= 0:
            raise ValidationError("maxTokens must be positive")

        now = datetime.now(timezone.utc)
        template = DerivativeTemplate(
            id=uuid4(),
            name=name,
            derivative_type=derivative_type.strip(),
            description=description or None,
            system_prompt=system_prompt,
            user_prompt_template=user_prompt_template,
            max_tokens=max_tokens or 1024,
            output_format=output_format or "text",
            created_at=now,
            updated_at=now,
        )
        repos.derivative_template_repository.add(template)
        audit_service.log_event(
            action="create",
            resource_type="derivative_template",
            resource_id=str(template.id),
            extra={"derivative_type": template.derivative_type},
        )
        return template

    def update(self, template_id: UUID, **fields: object) -> DerivativeTemplate:
        """Apply the given fields; ``None`` means "leave unchanged"."""

        template = self.get(template_id)
        changes = {key: value for key, value in fields.items() if key in _UPDATABLE_FIELDS and value is not None}
        if "max_tokens" in changes and int(changes["max_tokens"]) <= 0:
            raise ValidationError("maxTokens must be positive")
        for key in ("name", "system_prompt", "user_prompt_template"):
            if key in changes and not str(changes[key]).strip():
                raise ValidationError(f"{key} must not be empty")

        updated = template.model_copy(update={**changes, "updated_at": datetime.now(timezone.utc)})
        repos.derivative_template_repository.save(updated)
        audit_service.log_event(
            action="update",
            resource_type="derivative_template",
            resource_id=str(updated.id),
            extra={"fields": sorted(changes)},
        )
        return updated

    def active_for(self, derivative_type: str) -> Optional[DerivativeTemplate]:
        templates = repos.derivative_template_repository.list(derivative_type=derivative_type, active_only=True)
        return templates[0] if templates else None

    def active_types(self) -> List[str]:
        types: List[str] = []
        for template in repos.derivative_template_repository.list(active_only=True):
            if template.derivative_type not in types:
                types.append(template.derivative_type)
        return types

    def record_usage(self, template: DerivativeTemplate) -> None:
        repos.derivative_template_repository.increment_usage(template.id)


template_service = TemplateService()
