from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.repurposing.domain.models.source_content import SourceContent


class DerivativeTemplate(BaseModel):
    """Prompt pair used to generate one derivative type.

    Several templates may exist for a type; the generator uses the newest
    active one. ``usage_count`` goes up by one per generated derivative.
    """

    id: UUID
    name: str
    derivative_type: str
    description: Optional[str] = None
    system_prompt: str
    user_prompt_template: str
    max_tokens: int = Field(default=1024, gt=0)
    output_format: str = "text"
    is_active: bool = True
    usage_count: int = 0
    created_at: datetime
    updated_at: datetime

    def render(self, source: SourceContent, source_text: str) -> str:
        return (
            self.user_prompt_template.replace("{title}", source.title)
            .replace("{contentType}", source.content_type)
            .replace("{transcription}", source_text)
            .replace("{duration}", str(source.duration_seconds or 0))
        )
