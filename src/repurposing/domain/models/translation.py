from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

# Review pass at which a translation counts as fully approved.
FINAL_REVIEW_PASS = 3


class TranslationStatus(str, Enum):
    DRAFT = "draft"
    REVIEWED = "reviewed"
    APPROVED = "approved"


class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    EDIT = "edit"


class Translation(BaseModel):
    """Per-language rendering of a derivative with its own review lifecycle.

    ``review_pass`` starts at 0 for machine output and only moves forward on
    approval. ``reviewer_notes`` is an audit trail with the newest note first.
    """

    id: UUID
    content_id: str
    derivative_id: UUID
    source_language: str
    target_language: str
    title: str
    body: str
    status: TranslationStatus = TranslationStatus.DRAFT
    review_pass: int = Field(default=0, ge=0, le=FINAL_REVIEW_PASS)
    is_ai_generated: bool = False
    last_edited_by: Optional[str] = None
    reviewer_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
