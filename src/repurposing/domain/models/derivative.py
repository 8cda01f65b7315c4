from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, computed_field


def count_words(text: str) -> int:
    return len(text.split())


class DerivativeStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    SENT_TO_DISTRIBUTION = "sent_to_distribution"


class Derivative(BaseModel):
    """A generated artifact (blog post, quote list, ...) in the source language.

    ``word_count`` is derived from ``body`` and cannot be set independently.
    """

    id: UUID
    content_id: str
    source_content_id: UUID
    derivative_type: str
    title: str
    body: str
    language: str = "en"
    format: str = "text"
    is_ai_generated: bool = False
    ai_model: Optional[str] = None
    status: DerivativeStatus = DerivativeStatus.DRAFT
    sent_to_distribution: bool = False
    distributed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @computed_field  # type: ignore[misc]
    @property
    def word_count(self) -> int:
        return count_words(self.body)
