from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from src.repurposing.domain.models.processing_job import JobType, ProcessingJob
from src.repurposing.domain.models.source_content import MediaType, SourceContent, SourceStatus
from src.repurposing.errors import Conflict, NotFound, ValidationError
from src.repurposing.infra.db import inmemory as repos
from src.repurposing.services.audit.service import audit_service

logger = logging.getLogger("pipeline.sources")

# Transcription of newly ingested media jumps ahead of regular work.
TRANSCRIPTION_PRIORITY = 1


class SourceContentService:
    def register(
        self,
        *,
        content_id: str,
        title: str,
        content_type: str,
        media_type: MediaType = MediaType.TEXT,
        language: str = "en",
        transcription: Optional[str] = None,
        duration_seconds: Optional[int] = None,
    ) -> SourceContent:
        """Store a new source content unit.

        Text sources, and media that arrive with a transcription, are ready
        for repurposing immediately. Other media stay pending until
        :meth:`attach_transcription` is called.
        """

        content_id = content_id.strip()
        if not content_id or not title.strip():
            raise ValidationError("contentId and title are required")
        if repos.source_content_repository.get_by_content_id(content_id) is not None:
            raise Conflict(f"Source content '{content_id}' already exists")

        ready = media_type == MediaType.TEXT or bool(transcription)
        now = datetime.now(timezone.utc)
        source = SourceContent(
            id=uuid4(),
            content_id=content_id,
            title=title,
            content_type=content_type,
            media_type=media_type,
            language=language,
            transcription=transcription,
            duration_seconds=duration_seconds,
            status=SourceStatus.READY if ready else SourceStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        repos.source_content_repository.add(source)
        audit_service.log_event(
            action="create",
            resource_type="source_content",
            resource_id=str(source.id),
            extra={"media_type": media_type.value, "status": source.status.value},
        )
        return source

    def ingest(self, **fields: Any) -> Dict[str, Any]:
        """Register a source delivered by the ingestion webhook.

        Media without a transcription also gets a transcription job queued
        at high priority.
        """

        from src.repurposing.services.jobs.service import job_service

        source = self.register(**fields)
        job: Optional[ProcessingJob] = None
        if source.status == SourceStatus.PENDING:
            job = job_service.enqueue(
                JobType.TRANSCRIPTION,
                source_content_id=source.id,
                input_data={"mediaType": source.media_type.value},
                priority=TRANSCRIPTION_PRIORITY,
            )
            logger.info("Queued transcription job %s for source %s", job.id, source.id)
        return {"source": source, "job": job}

    def get(self, source_id: UUID) -> SourceContent:
        source = repos.source_content_repository.get(source_id)
        if source is None:
            raise NotFound(f"Source content {source_id} not found")
        return source

    def attach_transcription(self, source_id: UUID, transcription: str) -> SourceContent:
        if not transcription.strip():
            raise ValidationError("transcription must not be empty")
        source = self.get(source_id)
        source.transcription = transcription
        source.status = SourceStatus.READY
        source.updated_at = datetime.now(timezone.utc)
        repos.source_content_repository.save(source)
        return source

    def source_text(self, source: SourceContent) -> Optional[str]:
        text = source.transcription
        return text if text and text.strip() else None


source_service = SourceContentService()
