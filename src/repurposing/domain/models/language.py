from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class LanguageConfig(BaseModel):
    """A target language the pipeline translates into.

    Active languages are the default fan-out for repurposing and bulk
    translation, ordered by ``priority`` (lower first).
    """

    id: UUID
    code: str
    name: str
    native_name: Optional[str] = None
    is_active: bool = True
    priority: int = 5
    has_local_reviewer: bool = False
    reviewer_contact: Optional[str] = None
    total_translations: int = 0
    created_at: datetime
    updated_at: datetime
