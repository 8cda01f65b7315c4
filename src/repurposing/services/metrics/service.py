from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Optional

from src.repurposing.domain.models.metrics import DailyMetrics
from src.repurposing.infra.db import inmemory as repos

logger = logging.getLogger("pipeline.metrics")

COUNTERS = (
    "jobs_processed",
    "jobs_failed",
    "derivatives_generated",
    "translations_completed",
    "sent_to_distribution",
)


class MetricsService:
    """Daily pipeline counters.

    Callers bump a counter only after the state change it measures has been
    applied, so duplicate deliveries and lost races never count twice.
    """

    def record(self, counter: str, amount: int = 1, *, day: Optional[date] = None) -> None:
        if counter not in COUNTERS:
            raise ValueError(f"Unknown metrics counter: {counter}")
        if amount <= 0:
            return
        day = day or datetime.now(timezone.utc).date()
        repos.metrics_repository.increment(day, {counter: amount})
        logger.debug("metrics %s += %d for %s", counter, amount, day)

    def for_day(self, day: Optional[date] = None) -> DailyMetrics:
        return repos.metrics_repository.get(day or datetime.now(timezone.utc).date())


metrics_service = MetricsService()
