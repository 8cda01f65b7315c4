from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class MediaType(str, Enum):
    TEXT = "text"
    AUDIO = "audio"
    VIDEO = "video"


class SourceStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"


class SourceContent(BaseModel):
    """A sermon, teaching or article that derivatives are generated from.

    Text sources are ready on arrival; audio/video sources become ready once a
    transcription is attached.
    """

    id: UUID
    content_id: str
    title: str
    content_type: str
    media_type: MediaType = MediaType.TEXT
    language: str = "en"
    transcription: Optional[str] = None
    duration_seconds: Optional[int] = None
    status: SourceStatus = SourceStatus.PENDING
    created_at: datetime
    updated_at: datetime
