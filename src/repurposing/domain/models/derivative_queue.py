from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field


class QueueStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class DerivativeQueue(BaseModel):
    """Fan-out contract for one repurposing run of a source.

    ``total_expected`` is fixed when the batch is opened; progress is always
    recounted from the derivative and translation rows.
    """

    id: UUID
    source_content_id: UUID
    derivative_types: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    total_expected: int
    status: QueueStatus = QueueStatus.PENDING
    created_at: datetime
    updated_at: datetime


class BatchProgress(BaseModel):
    queue_id: UUID
    expected: int
    completed: int
    status: QueueStatus
