from __future__ import annotations

from datetime import date

from pydantic import BaseModel


class DailyMetrics(BaseModel):
    """Per-day pipeline counters.

    Counters are bumped only when the underlying state change actually
    happened, so replayed webhooks never inflate them.
    """

    day: date
    jobs_processed: int = 0
    jobs_failed: int = 0
    derivatives_generated: int = 0
    translations_completed: int = 0
    sent_to_distribution: int = 0
