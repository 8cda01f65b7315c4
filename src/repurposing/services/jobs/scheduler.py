from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import UUID

from src.repurposing.config import settings
from src.repurposing.domain.models.derivative_queue import QueueStatus
from src.repurposing.domain.models.alert import AlertSeverity
from src.repurposing.domain.models.processing_job import (
    ALLOWED_TRANSITIONS,
    JobStatus,
    JobType,
    ProcessingJob,
)
from src.repurposing.domain.models.source_content import MediaType
from src.repurposing.errors import InvalidTransition, NotFound, StalledJob, ValidationError
from src.repurposing.infra.db import inmemory as repos
from src.repurposing.services.alerts.service import alert_service
from src.repurposing.services.audit.service import audit_service
from src.repurposing.services.batches.service import batch_tracker
from src.repurposing.services.derivatives.generator import derivative_generator
from src.repurposing.services.jobs.service import parse_job_status
from src.repurposing.services.metrics.service import metrics_service
from src.repurposing.services.sources.service import source_service
from src.repurposing.services.translations.service import review_engine

logger = logging.getLogger("pipeline.scheduler")

CLAIM_PROGRESS = 5


@dataclass(frozen=True)
class Completed:
    output: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Failed:
    error: str
    # Alert category raised when the failure is applied.
    category: str = "processing_failure"


@dataclass(frozen=True)
class Pending:
    """The job was handed off and stays processing until a callback arrives."""

    reason: str = "awaiting external worker"


Outcome = Union[Completed, Failed, Pending]


@dataclass
class ProcessResult:
    job: ProcessingJob
    outcome: str
    applied: bool


@dataclass
class CompletionReport:
    job: ProcessingJob
    applied: bool


def _outcome_name(outcome: Outcome) -> str:
    if isinstance(outcome, Completed):
        return JobStatus.COMPLETED.value
    if isinstance(outcome, Failed):
        return JobStatus.FAILED.value
    return "pending"


class JobScheduler:
    """Owns the job state machine.

    Transitions: queued → processing | cancelled, processing → completed |
    failed, failed → queued. Every status change is a compare-and-set on the
    current status, so concurrent schedulers, callbacks and the stall reaper
    can never apply conflicting transitions to the same job. Terminal
    outcomes from in-process handlers and from the completion webhook go
    through the same :meth:`_finish`.
    """

    def __init__(self) -> None:
        self._handlers: Dict[JobType, Callable[[ProcessingJob], Outcome]] = {
            JobType.TRANSCRIPTION: self._handle_transcription,
            JobType.CLIP_EXTRACTION: self._handle_external,
            JobType.IMAGE_GENERATION: self._handle_external,
            JobType.DERIVATIVE_GENERATION: self._handle_derivative_generation,
            JobType.TRANSLATION: self._handle_translation,
            JobType.BATCH_REPURPOSE: self._handle_batch_repurpose,
        }

    # -- selection and dispatch ----------------------------------------------

    def process_next(self) -> Optional[ProcessResult]:
        """Claim the most urgent queued job and run it.

        Returns ``None`` when nothing is queued.
        """

        job = repos.job_repository.claim_next(started_at=datetime.now(timezone.utc), progress=CLAIM_PROGRESS)
        if job is None:
            return None

        logger.info("Claimed %s job %s (priority %d)", job.job_type.value, job.id, job.priority)
        audit_service.log_event(
            action="claim",
            resource_type="processing_job",
            resource_id=str(job.id),
            extra={"job_type": job.job_type.value},
        )

        outcome = self.dispatch(job)
        if isinstance(outcome, Pending):
            logger.info("Job %s left processing: %s", job.id, outcome.reason)
            return ProcessResult(job=self._get(job.id), outcome=_outcome_name(outcome), applied=False)

        finished = self._finish(job.id, outcome)
        return ProcessResult(
            job=finished if finished is not None else self._get(job.id),
            outcome=_outcome_name(outcome),
            applied=finished is not None,
        )

    def dispatch(self, job: ProcessingJob) -> Outcome:
        handler = self._handlers.get(job.job_type)
        if handler is None:
            return Failed(f"Unknown job type: {job.job_type}")
        try:
            return handler(job)
        except Exception as exc:
            logger.exception("Handler for %s job %s raised", job.job_type.value, job.id)
            return Failed(f"Job processing failed: {exc}")

    # -- handlers ------------------------------------------------------------

    def _handle_transcription(self, job: ProcessingJob) -> Outcome:
        if job.source_content_id is None:
            return Failed("No source content ID for transcription job")
        source = repos.source_content_repository.get(job.source_content_id)
        if source is None:
            return Failed("Source content not found")

        if source.media_type == MediaType.TEXT:
            return Completed({"message": "Text content does not need transcription"})
        if source.transcription:
            return Completed({"message": "Using existing transcription", "wordCount": len(source.transcription.split())})
        return Pending("awaiting external transcription worker")

    def _handle_external(self, job: ProcessingJob) -> Outcome:
        return Pending(f"{job.job_type.value} runs on an external worker")

    def _handle_derivative_generation(self, job: ProcessingJob) -> Outcome:
        if job.source_content_id is None:
            return Failed("No source content ID for derivative generation job")

        result = derivative_generator.generate_batch(job.source_content_id, job.input_data.get("derivativeTypes"))
        output = {
            "success": result.success,
            "results": [r.model_dump(mode="json") for r in result.results],
        }
        if not result.succeeded:
            return Failed("All derivative generations failed")
        return Completed(output)

    def _handle_translation(self, job: ProcessingJob) -> Outcome:
        raw_id = job.input_data.get("derivativeId")
        if not raw_id:
            return Failed("inputData.derivativeId is required for translation jobs")

        languages = job.input_data.get("languages")
        if not languages and job.input_data.get("targetLanguage"):
            languages = [job.input_data["targetLanguage"]]
        if languages:
            result = review_engine.translate_to_languages(UUID(str(raw_id)), languages)
        else:
            result = review_engine.translate_to_active_languages(UUID(str(raw_id)))
        output = {
            "success": result.success,
            "results": [r.model_dump(mode="json") for r in result.results],
        }
        if not any(r.success for r in result.results):
            return Failed("All translations failed")
        return Completed(output)

    def _handle_batch_repurpose(self, job: ProcessingJob) -> Outcome:
        raw_queue_id = job.input_data.get("queueId")
        if not raw_queue_id:
            return Failed("inputData.queueId is required for batch_repurpose jobs")
        queue = batch_tracker.get(UUID(str(raw_queue_id)))
        errors: List[str] = []

        # Only generate types the source does not have yet so a retried job
        # does not duplicate earlier work.
        first_by_type: Dict[str, UUID] = {}
        for derivative in repos.derivative_repository.list_by_source(queue.source_content_id):
            first_by_type.setdefault(derivative.derivative_type, derivative.id)
        missing = [t for t in queue.derivative_types if t not in first_by_type]
        if missing:
            generation = derivative_generator.generate_batch(queue.source_content_id, missing)
            for result in generation.results:
                if result.success and result.derivative_id is not None:
                    first_by_type.setdefault(result.derivative_type, result.derivative_id)
                else:
                    logger.warning("Batch %s: %s not generated: %s", queue.id, result.derivative_type, result.error)
                    errors.append(f"{result.derivative_type}: {result.error}")
        self._set_progress(job.id, 50)

        if queue.languages:
            for derivative_type in queue.derivative_types:
                derivative_id = first_by_type.get(derivative_type)
                if derivative_id is None:
                    continue
                translations = review_engine.translate_to_languages(derivative_id, queue.languages)
                errors.extend(
                    f"{derivative_type}/{r.target_language}: {r.error}" for r in translations.results if not r.success
                )

        # All of the batch's work runs in this handler, so a batch that is
        # still short here has nothing left in flight. Retrying the job fills
        # in only what is missing.
        progress = batch_tracker.progress(queue.id)
        output = {"queueId": str(queue.id), "expected": progress.expected, "completed": progress.completed}
        if progress.status == QueueStatus.COMPLETED:
            return Completed(output)

        summary = f"Batch {queue.id} incomplete: {progress.completed}/{progress.expected} items"
        return Failed(f"{summary} ({'; '.join(errors)})" if errors else summary)

    # -- operator actions ----------------------------------------------------

    def cancel(self, job_id: UUID) -> ProcessingJob:
        """Cancel a job that is still waiting in the queue."""

        job = self._get(job_id)
        updated = self._transition(job, JobStatus.CANCELLED, {"status": JobStatus.CANCELLED})
        audit_service.log_event(action="cancel", resource_type="processing_job", resource_id=str(job_id))
        return updated

    def retry(self, job_id: UUID) -> ProcessingJob:
        """Put a failed job back in the queue. It is not executed inline."""

        job = self._get(job_id)
        updated = self._transition(
            job,
            JobStatus.QUEUED,
            {
                "status": JobStatus.QUEUED,
                "progress": 0,
                "error_message": None,
                "output_data": None,
                "started_at": None,
                "completed_at": None,
                "retry_count": job.retry_count + 1,
            },
        )
        audit_service.log_event(
            action="retry",
            resource_type="processing_job",
            resource_id=str(job_id),
            extra={"retry_count": updated.retry_count},
        )
        return updated

    # -- completion ----------------------------------------------------------

    def report_completion(
        self,
        job_id: UUID,
        status: Union[str, JobStatus],
        *,
        output_data: Optional[Dict[str, Any]] = None,
        error_message: Optional[str] = None,
    ) -> CompletionReport:
        """Apply a terminal status reported by an external worker.

        Only a processing job changes. A report for a job in any other status
        is acknowledged without effect, so redelivered callbacks are safe.
        """

        terminal = parse_job_status(status)
        if terminal not in (JobStatus.COMPLETED, JobStatus.FAILED):
            raise ValidationError("status must be 'completed' or 'failed'")
        job = self._get(job_id)

        if terminal == JobStatus.COMPLETED:
            outcome: Outcome = Completed(dict(output_data or {}))
        else:
            outcome = Failed(error_message or "Job reported as failed by external worker")

        finished = self._finish(job.id, outcome)
        if finished is None:
            current = self._get(job.id)
            logger.warning(
                "Ignoring %s report for job %s in status %s",
                terminal.value,
                job.id,
                current.status.value,
            )
            return CompletionReport(job=current, applied=False)
        return CompletionReport(job=finished, applied=True)

    # -- hardening -----------------------------------------------------------

    def reap_stalled(self, now: Optional[datetime] = None) -> List[ProcessingJob]:
        """Fail every job that has been processing longer than the stall timeout."""

        now = now or datetime.now(timezone.utc)
        limit = settings.job_stall_timeout_seconds
        reaped: List[ProcessingJob] = []
        for job in repos.job_repository.list_processing():
            started = job.started_at or job.created_at
            elapsed = (now - started).total_seconds()
            if elapsed <= limit:
                continue
            error = StalledJob(job.id, elapsed, limit)
            finished = self._finish(job.id, Failed(error.message, category="stalled_job"))
            if finished is not None:
                logger.warning(error.message)
                reaped.append(finished)
        return reaped

    def reconcile_batches(self) -> List[ProcessingJob]:
        """Complete processing batch jobs whose batch has since filled up.

        Covers batch jobs left processing by a crashed worker whose work was
        finished some other way; the stall reaper fails the rest.
        """

        completed: List[ProcessingJob] = []
        for job in repos.job_repository.list_processing(job_type=JobType.BATCH_REPURPOSE):
            raw_queue_id = job.input_data.get("queueId")
            if not raw_queue_id:
                continue
            try:
                progress = batch_tracker.progress(UUID(str(raw_queue_id)))
            except (NotFound, ValueError):
                logger.warning("Batch job %s references unknown queue %s", job.id, raw_queue_id)
                continue
            if progress.status != QueueStatus.COMPLETED:
                continue
            finished = self._finish(
                job.id,
                Completed({"queueId": str(progress.queue_id), "expected": progress.expected, "completed": progress.completed}),
            )
            if finished is not None:
                completed.append(finished)
        return completed

    # -- internals -----------------------------------------------------------

    def _get(self, job_id: UUID) -> ProcessingJob:
        job = repos.job_repository.get(job_id)
        if job is None:
            raise NotFound(f"Job {job_id} not found")
        return job

    def _transition(self, job: ProcessingJob, target: JobStatus, changes: Dict[str, Any]) -> ProcessingJob:
        if target not in ALLOWED_TRANSITIONS[job.status]:
            raise InvalidTransition(f"Cannot move job {job.id} from {job.status.value} to {target.value}")
        updated = repos.job_repository.compare_and_set(job.id, expected=[job.status], changes=changes)
        if updated is None:
            current = self._get(job.id)
            raise InvalidTransition(
                f"Job {job.id} changed to {current.status.value} before it could move to {target.value}"
            )
        logger.info("Job %s: %s -> %s", job.id, job.status.value, target.value)
        return updated

    def _set_progress(self, job_id: UUID, progress: int) -> None:
        repos.job_repository.compare_and_set(job_id, expected=[JobStatus.PROCESSING], changes={"progress": progress})

    def _finish(self, job_id: UUID, outcome: Union[Completed, Failed]) -> Optional[ProcessingJob]:
        """Move a processing job to its terminal status.

        Returns ``None`` without touching anything when the job is no longer
        processing.
        """

        now = datetime.now(timezone.utc)
        if isinstance(outcome, Completed):
            changes: Dict[str, Any] = {
                "status": JobStatus.COMPLETED,
                "progress": 100,
                "output_data": outcome.output,
                "error_message": None,
                "completed_at": now,
            }
        else:
            changes = {
                "status": JobStatus.FAILED,
                "output_data": None,
                "error_message": outcome.error,
                "completed_at": now,
            }

        finished = repos.job_repository.compare_and_set(job_id, expected=[JobStatus.PROCESSING], changes=changes)
        if finished is None:
            return None

        metrics_service.record("jobs_processed" if finished.status == JobStatus.COMPLETED else "jobs_failed")
        logger.info("Job %s: processing -> %s", job_id, finished.status.value)
        audit_service.log_event(
            action="finish",
            resource_type="processing_job",
            resource_id=str(job_id),
            extra={"status": finished.status.value, "job_type": finished.job_type.value},
        )
        if isinstance(outcome, Failed):
            self._raise_failure_alert(finished, outcome)
        self._after_completion(finished)
        return finished

    def _raise_failure_alert(self, job: ProcessingJob, outcome: Failed) -> None:
        stalled = outcome.category == "stalled_job"
        alert_service.raise_alert(
            severity=AlertSeverity.WARNING if stalled else AlertSeverity.ERROR,
            category=outcome.category,
            message=f"Job {job.job_type.value} {'stalled' if stalled else 'failed'} after {job.retry_count} retries",
            details={"jobId": str(job.id), "jobType": job.job_type.value, "error": outcome.error},
            related_content_id=job.source_content_id,
        )

    def _after_completion(self, job: ProcessingJob) -> None:
        # A transcription worker may deliver the text with its completion.
        if (
            job.job_type == JobType.TRANSCRIPTION
            and job.status == JobStatus.COMPLETED
            and job.source_content_id is not None
            and isinstance((job.output_data or {}).get("transcription"), str)
            and job.output_data["transcription"].strip()
        ):
            try:
                source_service.attach_transcription(job.source_content_id, job.output_data["transcription"])
            except NotFound:
                logger.warning("Transcription job %s completed for missing source %s", job.id, job.source_content_id)
                return
            logger.info("Attached transcription from job %s to source %s", job.id, job.source_content_id)


job_scheduler = JobScheduler()
