from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class TranslatorRole(str, Enum):
    TRANSLATOR = "translator"
    REVIEWER = "reviewer"
    ADMIN = "admin"


class TranslatorUser(BaseModel):
    id: UUID
    username: str
    display_name: str
    role: TranslatorRole = TranslatorRole.TRANSLATOR
    # Language codes this person works in (e.g. ["hi", "mai"]).
    languages: List[str] = Field(default_factory=list)
    password_hash: str = Field(exclude=True)
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: datetime
