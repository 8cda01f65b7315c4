from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID, uuid4

from src.repurposing.config import settings
from src.repurposing.domain.models.derivative_queue import BatchProgress, DerivativeQueue, QueueStatus
from src.repurposing.domain.models.processing_job import JobType
from src.repurposing.domain.models.source_content import SourceStatus
from src.repurposing.errors import NotFound, ValidationError
from src.repurposing.infra.db import inmemory as repos
from src.repurposing.services.audit.service import audit_service
from src.repurposing.services.derivatives.templates import template_service
from src.repurposing.services.languages.service import language_service

logger = logging.getLogger("pipeline.batches")

# Status only ever moves forward along this order.
_STATUS_RANK = {
    QueueStatus.PENDING: 0,
    QueueStatus.IN_PROGRESS: 1,
    QueueStatus.COMPLETED: 2,
}


def _ordered_unique(values: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.append(value)
    return seen


class BatchTracker:
    """Fan-out accounting for repurposing runs.

    A batch expects one derivative per type plus one translation per
    (type, language) pair. Progress is recounted from the derivative and
    translation rows on every read; the only thing stored is the monotonic
    status.
    """

    def open_batch(
        self,
        source_content_id: UUID,
        derivative_types: Iterable[str],
        languages: Iterable[str],
    ) -> DerivativeQueue:
        types = _ordered_unique(derivative_types)
        langs = _ordered_unique(languages)
        if not types:
            raise ValidationError("derivativeTypes must contain at least one type")

        now = datetime.now(timezone.utc)
        queue = DerivativeQueue(
            id=uuid4(),
            source_content_id=source_content_id,
            derivative_types=types,
            languages=langs,
            total_expected=len(types) * (1 + len(langs)),
            status=QueueStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        repos.derivative_queue_repository.add(queue)
        logger.info(
            "Opened batch %s for source %s expecting %d items",
            queue.id,
            source_content_id,
            queue.total_expected,
        )
        return queue

    def get(self, queue_id: UUID) -> DerivativeQueue:
        queue = repos.derivative_queue_repository.get(queue_id)
        if queue is None:
            raise NotFound(f"Derivative queue {queue_id} not found")
        return queue

    def count_completed(self, queue: DerivativeQueue) -> int:
        types = set(queue.derivative_types)
        languages = set(queue.languages)

        type_by_derivative: Dict[UUID, str] = {}
        for derivative in repos.derivative_repository.list_by_source(queue.source_content_id):
            if derivative.derivative_type in types:
                type_by_derivative[derivative.id] = derivative.derivative_type

        translated_pairs = set()
        if languages and type_by_derivative:
            for translation in repos.translation_repository.list_by_derivatives(list(type_by_derivative)):
                if translation.target_language in languages:
                    translated_pairs.add((type_by_derivative[translation.derivative_id], translation.target_language))

        # Distinct types and pairs: regenerating a type never pushes the
        # count past what the batch can expect.
        return len(set(type_by_derivative.values())) + len(translated_pairs)

    def progress(self, queue_id: UUID) -> BatchProgress:
        queue = self.get(queue_id)
        completed = self.count_completed(queue)

        if completed >= queue.total_expected:
            observed = QueueStatus.COMPLETED
        elif completed > 0:
            observed = QueueStatus.IN_PROGRESS
        else:
            observed = QueueStatus.PENDING

        if _STATUS_RANK[observed] > _STATUS_RANK[queue.status]:
            logger.info("Batch %s: %s -> %s (%d/%d)", queue.id, queue.status.value, observed.value, completed, queue.total_expected)
            queue.status = observed
            queue.updated_at = datetime.now(timezone.utc)
            repos.derivative_queue_repository.save(queue)

        return BatchProgress(
            queue_id=queue.id,
            expected=queue.total_expected,
            completed=completed,
            status=queue.status,
        )

    def repurpose_source(
        self,
        source_id: UUID,
        *,
        derivative_types: Optional[List[str]] = None,
        languages: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Open a batch for a ready source and queue the job that fills it.

        Types default to every type with an active template and languages to
        every active language other than the source's own. Explicit lists are
        checked against the same rules so the batch can always be filled.
        """

        from src.repurposing.services.jobs.service import job_service

        source = repos.source_content_repository.get(source_id)
        if source is None:
            raise NotFound(f"Source content {source_id} not found")
        if source.status != SourceStatus.READY:
            raise ValidationError(
                f"Source content must be in 'ready' status to repurpose (current: {source.status.value})"
            )

        if derivative_types:
            types = _ordered_unique(derivative_types)
            inactive = [t for t in types if template_service.active_for(t) is None]
            if inactive:
                raise ValidationError(f"No active template for derivative type: {', '.join(inactive)}")
        else:
            types = template_service.active_types()

        if languages is not None:
            langs = _ordered_unique(languages)
            if source.language in langs:
                raise ValidationError(f"Cannot translate into the source language: {source.language}")
        else:
            langs = [code for code in language_service.active_codes() if code != source.language]

        queue = self.open_batch(source.id, types, langs)
        job = job_service.enqueue(
            JobType.BATCH_REPURPOSE,
            source_content_id=source.id,
            input_data={
                "queueId": str(queue.id),
                "derivativeTypes": queue.derivative_types,
                "languages": queue.languages,
            },
            priority=settings.batch_repurpose_priority,
        )
        audit_service.log_event(
            action="repurpose",
            resource_type="source_content",
            resource_id=str(source.id),
            extra={"queue_id": str(queue.id), "job_id": str(job.id), "total_expected": queue.total_expected},
        )
        return {
            "queue_id": queue.id,
            "job_id": job.id,
            "expected_derivatives": len(queue.derivative_types),
            "expected_translations": len(queue.derivative_types) * len(queue.languages),
        }


batch_tracker = BatchTracker()
