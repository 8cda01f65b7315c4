import threading
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from src.repurposing.config import settings
from src.repurposing.domain.models.alert import AlertSeverity
from src.repurposing.domain.models.derivative_queue import QueueStatus
from src.repurposing.domain.models.processing_job import JobStatus, JobType
from src.repurposing.domain.models.source_content import MediaType
from src.repurposing.errors import InvalidTransition, NotFound, ValidationError
from src.repurposing.infra.db import inmemory as repos
from src.repurposing.services.alerts.service import alert_service
from src.repurposing.services.batches.service import batch_tracker
from src.repurposing.services.derivatives.generator import derivative_generator
from src.repurposing.services.jobs.scheduler import job_scheduler
from src.repurposing.services.jobs.service import job_service
from src.repurposing.services.metrics.service import metrics_service
from src.repurposing.services.sources.service import source_service
from src.repurposing.services.translations.service import review_engine
from tests.repurposing.helpers import FlakyBackend, assert_completion_invariant, make_text_source


def test_process_next_orders_by_priority_then_fifo():
    p3 = job_service.enqueue(JobType.CLIP_EXTRACTION, priority=3)
    p1_first = job_service.enqueue(JobType.CLIP_EXTRACTION, priority=1)
    p1_second = job_service.enqueue(JobType.CLIP_EXTRACTION, priority=1)
    p5 = job_service.enqueue(JobType.CLIP_EXTRACTION, priority=5)

    claimed = [job_scheduler.process_next().job.id for _ in range(4)]

    assert claimed == [p1_first.id, p1_second.id, p3.id, p5.id]
    assert job_scheduler.process_next() is None


def test_process_next_with_empty_queue_is_a_noop():
    assert job_scheduler.process_next() is None


def test_process_next_never_returns_the_same_job_twice():
    job_service.enqueue(JobType.IMAGE_GENERATION)
    job_service.enqueue(JobType.IMAGE_GENERATION)

    first = job_scheduler.process_next()
    second = job_scheduler.process_next()

    assert first.job.id != second.job.id
    assert first.job.status == JobStatus.PROCESSING
    assert first.outcome == "pending"
    assert first.job.started_at is not None
    assert_completion_invariant(first.job)


def test_concurrent_claims_never_share_a_job():
    for _ in range(40):
        job_service.enqueue(JobType.CLIP_EXTRACTION)

    claimed = []
    lock = threading.Lock()

    def worker():
        while True:
            job = repos.job_repository.claim_next(started_at=datetime.now(timezone.utc), progress=5)
            if job is None:
                return
            with lock:
                claimed.append(job.id)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(claimed) == 40
    assert len(set(claimed)) == 40


def test_cancel_only_from_queued():
    job = job_service.enqueue(JobType.CLIP_EXTRACTION)
    cancelled = job_scheduler.cancel(job.id)
    assert cancelled.status == JobStatus.CANCELLED
    assert_completion_invariant(cancelled)

    with pytest.raises(InvalidTransition):
        job_scheduler.cancel(job.id)


def test_cancel_processing_job_is_rejected_and_leaves_status():
    job = job_service.enqueue(JobType.CLIP_EXTRACTION)
    job_scheduler.process_next()

    with pytest.raises(InvalidTransition):
        job_scheduler.cancel(job.id)

    assert job_service.get(job.id).status == JobStatus.PROCESSING


def test_cancel_unknown_job_raises_not_found():
    with pytest.raises(NotFound):
        job_scheduler.cancel(uuid4())


def test_retry_requeues_failed_job_without_running_it():
    job = job_service.enqueue(JobType.CLIP_EXTRACTION)
    job_scheduler.process_next()
    job_scheduler.report_completion(job.id, "failed", error_message="worker crashed")

    retried = job_scheduler.retry(job.id)

    assert retried.status == JobStatus.QUEUED
    assert retried.error_message is None
    assert retried.progress == 0
    assert retried.retry_count == 1
    assert_completion_invariant(retried)

    # A second retry while queued is illegal.
    with pytest.raises(InvalidTransition):
        job_scheduler.retry(job.id)

    # The retried job is eligible for selection again.
    assert job_scheduler.process_next().job.id == job.id


def test_retry_non_failed_job_is_rejected():
    job = job_service.enqueue(JobType.CLIP_EXTRACTION)
    with pytest.raises(InvalidTransition):
        job_scheduler.retry(job.id)


def test_report_completion_applies_once_and_counts_once():
    job = job_service.enqueue(JobType.CLIP_EXTRACTION)
    job_scheduler.process_next()

    first = job_scheduler.report_completion(job.id, "completed", output_data={"clips": 3})
    second = job_scheduler.report_completion(job.id, "completed", output_data={"clips": 99})

    assert first.applied is True
    assert second.applied is False
    assert second.job.status == JobStatus.COMPLETED
    assert second.job.output_data == {"clips": 3}
    assert second.job.progress == 100
    assert_completion_invariant(second.job)
    assert metrics_service.for_day().jobs_processed == 1


def test_report_completion_on_queued_job_is_ignored():
    job = job_service.enqueue(JobType.CLIP_EXTRACTION)

    report = job_scheduler.report_completion(job.id, "failed", error_message="late")

    assert report.applied is False
    assert report.job.status == JobStatus.QUEUED
    assert report.job.error_message is None


def test_report_completion_validates_before_lookup():
    job = job_service.enqueue(JobType.CLIP_EXTRACTION)
    with pytest.raises(ValidationError):
        job_scheduler.report_completion(job.id, "cancelled")
    with pytest.raises(ValidationError):
        job_scheduler.report_completion(job.id, "bogus")


def test_failed_callback_records_error_and_metric():
    job = job_service.enqueue(JobType.IMAGE_GENERATION)
    job_scheduler.process_next()

    report = job_scheduler.report_completion(job.id, "failed", error_message="render error")

    assert report.job.status == JobStatus.FAILED
    assert report.job.error_message == "render error"
    assert report.job.output_data is None
    assert metrics_service.for_day().jobs_failed == 1


def test_handler_exception_becomes_failed_outcome():
    # A translation job pointing at a derivative that does not exist.
    job = job_service.enqueue(
        JobType.TRANSLATION,
        input_data={"derivativeId": "00000000-0000-0000-0000-000000000001", "languages": ["hi"]},
    )

    result = job_scheduler.process_next()

    assert result.outcome == "failed"
    assert result.applied is True
    assert result.job.id == job.id
    assert result.job.status == JobStatus.FAILED
    assert "not found" in result.job.error_message
    assert_completion_invariant(result.job)


def test_transcription_of_text_source_completes_inline():
    source = make_text_source()
    job_service.enqueue(JobType.TRANSCRIPTION, source_content_id=source.id)

    result = job_scheduler.process_next()

    assert result.job.status == JobStatus.COMPLETED
    assert result.job.progress == 100


def test_transcription_of_media_waits_for_callback_and_attaches_text():
    ingest = source_service.ingest(
        content_id="src-prayer",
        title="Persistent Prayer",
        content_type="teaching",
        media_type=MediaType.AUDIO,
    )
    job = ingest["job"]
    assert job.priority == 1

    result = job_scheduler.process_next()
    assert result.outcome == "pending"
    assert result.job.status == JobStatus.PROCESSING

    job_scheduler.report_completion(job.id, "completed", output_data={"transcription": "Welcome to our teaching."})

    source = source_service.get(ingest["source"].id)
    assert source.status.value == "ready"
    assert source.transcription == "Welcome to our teaching."


def test_derivative_generation_job_completes_with_partial_failures():
    source = make_text_source()
    job_service.enqueue(
        JobType.DERIVATIVE_GENERATION,
        source_content_id=source.id,
        input_data={"derivativeTypes": ["blog_post", "no_such_type"]},
    )

    result = job_scheduler.process_next()

    assert result.job.status == JobStatus.COMPLETED
    assert result.job.output_data["success"] is False
    outcomes = {r["derivative_type"]: r["success"] for r in result.job.output_data["results"]}
    assert outcomes == {"blog_post": True, "no_such_type": False}


def test_derivative_generation_job_fails_when_nothing_generated():
    source = make_text_source()
    job_service.enqueue(
        JobType.DERIVATIVE_GENERATION,
        source_content_id=source.id,
        input_data={"derivativeTypes": ["no_such_type"]},
    )

    result = job_scheduler.process_next()

    assert result.job.status == JobStatus.FAILED
    assert result.job.error_message == "All derivative generations failed"


def test_batch_repurpose_job_completes_when_batch_is_filled():
    source = make_text_source()
    opened = batch_tracker.repurpose_source(source.id, derivative_types=["blog_post", "social_quote"], languages=["hi", "bn"])

    result = job_scheduler.process_next()

    assert result.job.id == opened["job_id"]
    assert result.job.status == JobStatus.COMPLETED
    assert result.job.output_data == {"queueId": str(opened["queue_id"]), "expected": 6, "completed": 6}
    assert batch_tracker.progress(opened["queue_id"]).status == QueueStatus.COMPLETED


def test_batch_repurpose_job_fails_when_work_is_missing_and_retry_fills_it(monkeypatch):
    source = make_text_source()
    opened = batch_tracker.repurpose_source(source.id, derivative_types=["blog_post", "social_quote"], languages=["hi"])
    monkeypatch.setattr(derivative_generator, "_backend", FlakyBackend("Extract 5-8"))

    result = job_scheduler.process_next()

    assert result.outcome == "failed"
    assert result.job.status == JobStatus.FAILED
    assert result.job.error_message.startswith(f"Batch {opened['queue_id']} incomplete: 2/4 items")
    assert "social_quote: Generation failed: model overloaded" in result.job.error_message
    assert_completion_invariant(result.job)
    assert job_service.list(status=JobStatus.PROCESSING)[1] == 0

    # The retry only generates what is missing.
    monkeypatch.setattr(derivative_generator, "_backend", None)
    job_scheduler.retry(opened["job_id"])
    retried = job_scheduler.process_next()

    assert retried.job.status == JobStatus.COMPLETED
    assert retried.job.output_data == {"queueId": str(opened["queue_id"]), "expected": 4, "completed": 4}
    assert len(list(repos.derivative_repository.list_by_source(source.id))) == 2


def test_failed_job_raises_an_alert():
    source = make_text_source()
    job = job_service.enqueue(
        JobType.DERIVATIVE_GENERATION,
        source_content_id=source.id,
        input_data={"derivativeTypes": ["no_such_type"]},
    )

    job_scheduler.process_next()

    alerts, total = alert_service.list()
    assert total == 1
    alert = alerts[0]
    assert alert.severity == AlertSeverity.ERROR
    assert alert.category == "processing_failure"
    assert alert.message == "Job derivative_generation failed after 0 retries"
    assert alert.related_content_id == source.id
    assert alert.details == {
        "jobId": str(job.id),
        "jobType": "derivative_generation",
        "error": "All derivative generations failed",
    }


def test_completed_and_ignored_reports_raise_no_alert():
    job = job_service.enqueue(JobType.CLIP_EXTRACTION)
    job_scheduler.process_next()

    job_scheduler.report_completion(job.id, "completed", output_data={})
    job_scheduler.report_completion(job.id, "failed", error_message="late duplicate")

    assert alert_service.list()[1] == 0


def test_reconcile_completes_batch_job_orphaned_by_a_crashed_worker():
    source = make_text_source()
    opened = batch_tracker.repurpose_source(source.id, derivative_types=["blog_post"], languages=["hi"])
    # Claimed by a worker that died before running the handler.
    claimed = repos.job_repository.claim_next(started_at=datetime.now(timezone.utc), progress=5)
    assert claimed.id == opened["job_id"]

    assert job_scheduler.reconcile_batches() == []

    generated = derivative_generator.generate_batch(source.id, ["blog_post"])
    review_engine.translate_derivative(generated.results[0].derivative_id, "hi")

    reconciled = job_scheduler.reconcile_batches()
    assert [job.id for job in reconciled] == [opened["job_id"]]
    assert reconciled[0].status == JobStatus.COMPLETED
    assert reconciled[0].output_data == {"queueId": str(opened["queue_id"]), "expected": 2, "completed": 2}


def test_translation_job_without_languages_uses_active_languages():
    source = make_text_source()
    derivative_id = derivative_generator.generate_batch(source.id, ["blog_post"]).results[0].derivative_id
    job_service.enqueue(JobType.TRANSLATION, input_data={"derivativeId": str(derivative_id)})

    result = job_scheduler.process_next()

    assert result.job.status == JobStatus.COMPLETED
    assert [r["target_language"] for r in result.job.output_data["results"]] == ["hi", "bn", "mai"]


def test_reap_stalled_fails_only_overdue_jobs(monkeypatch):
    monkeypatch.setattr(settings, "job_stall_timeout_seconds", 60)
    stale = job_service.enqueue(JobType.CLIP_EXTRACTION, priority=1)
    fresh = job_service.enqueue(JobType.CLIP_EXTRACTION, priority=2)
    job_scheduler.process_next()
    job_scheduler.process_next()

    started = job_service.get(stale.id).started_at
    reaped = job_scheduler.reap_stalled(now=started + timedelta(seconds=61))

    # Both were claimed at nearly the same instant; both are overdue.
    assert {job.id for job in reaped} == {stale.id, fresh.id}
    for job in reaped:
        assert job.status == JobStatus.FAILED
        assert job.error_message.startswith("StalledJob:")
        assert_completion_invariant(job)

    alerts, total = alert_service.list()
    assert total == 2
    assert {alert.category for alert in alerts} == {"stalled_job"}
    assert {alert.severity for alert in alerts} == {AlertSeverity.WARNING}
    assert {alert.details["jobId"] for alert in alerts} == {str(stale.id), str(fresh.id)}

    # A late callback for a reaped job is acknowledged without effect.
    late = job_scheduler.report_completion(stale.id, "completed", output_data={})
    assert late.applied is False
    assert late.job.status == JobStatus.FAILED


def test_reap_stalled_leaves_recent_jobs(monkeypatch):
    monkeypatch.setattr(settings, "job_stall_timeout_seconds", 3600)
    job = job_service.enqueue(JobType.CLIP_EXTRACTION)
    job_scheduler.process_next()

    assert job_scheduler.reap_stalled() == []
    assert job_service.get(job.id).status == JobStatus.PROCESSING
