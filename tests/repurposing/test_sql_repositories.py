from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from src.repurposing.domain.models.alert import AlertSeverity
from src.repurposing.domain.models.derivative_queue import QueueStatus
from src.repurposing.domain.models.processing_job import JobStatus, JobType
from src.repurposing.domain.models.source_content import MediaType
from src.repurposing.domain.models.translation import TranslationStatus
from src.repurposing.errors import AlreadyApproved, AuthenticationError, Conflict, InvalidTransition
from src.repurposing.infra.db import inmemory as repos
from src.repurposing.infra.db.bootstrap import install_sql_repositories
from src.repurposing.services.alerts.service import alert_service
from src.repurposing.services.batches.service import batch_tracker
from src.repurposing.services.derivatives.generator import derivative_generator
from src.repurposing.services.derivatives.templates import template_service
from src.repurposing.services.jobs.scheduler import job_scheduler
from src.repurposing.services.jobs.service import job_service
from src.repurposing.services.languages.service import language_service
from src.repurposing.services.metrics.service import metrics_service
from src.repurposing.services.settings.service import PORTAL_OPEN_KEY, settings_service
from src.repurposing.services.sources.service import source_service
from src.repurposing.services.translations.service import review_engine
from src.repurposing.services.translators.service import translator_auth_service
from tests.repurposing.helpers import assert_completion_invariant, make_text_source


@pytest.fixture(autouse=True)
def sql_repos():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    install_sql_repositories(engine)
    yield engine
    engine.dispose()


def test_claim_order_and_single_claim():
    later = job_service.enqueue(JobType.CLIP_EXTRACTION, priority=6)
    first = job_service.enqueue(JobType.CLIP_EXTRACTION, priority=1)
    middle = job_service.enqueue(JobType.CLIP_EXTRACTION, priority=3)

    claimed = [job_scheduler.process_next().job for _ in range(3)]

    assert [job.id for job in claimed] == [first.id, middle.id, later.id]
    assert all(job.status == JobStatus.PROCESSING for job in claimed)
    assert claimed[0].started_at.tzinfo is not None
    assert job_scheduler.process_next() is None


def test_compare_and_set_refuses_stale_expectation():
    job = job_service.enqueue(JobType.IMAGE_GENERATION)

    moved = repos.job_repository.compare_and_set(
        job.id,
        expected=[JobStatus.QUEUED],
        changes={"status": JobStatus.CANCELLED, "completed_at": datetime.now(timezone.utc)},
    )
    stale = repos.job_repository.compare_and_set(
        job.id,
        expected=[JobStatus.QUEUED],
        changes={"status": JobStatus.PROCESSING},
    )

    assert moved.status == JobStatus.CANCELLED
    assert stale is None
    assert job_service.get(job.id).status == JobStatus.CANCELLED


def test_compare_and_set_rejects_unknown_fields():
    job = job_service.enqueue(JobType.IMAGE_GENERATION)

    with pytest.raises(ValueError, match="updated_at"):
        repos.job_repository.compare_and_set(
            job.id,
            expected=[JobStatus.QUEUED],
            changes={"status": JobStatus.CANCELLED, "updated_at": datetime.now(timezone.utc)},
        )
    with pytest.raises(ValueError, match="id"):
        repos.job_repository.compare_and_set(job.id, expected=[JobStatus.QUEUED], changes={"id": job.id})

    assert job_service.get(job.id).status == JobStatus.QUEUED


def test_callback_lifecycle_and_metrics_persist():
    job = job_service.enqueue(JobType.CLIP_EXTRACTION)
    job_scheduler.process_next()

    first = job_scheduler.report_completion(job.id, "completed", output_data={"clips": [1, 2]})
    replay = job_scheduler.report_completion(job.id, "failed", error_message="late")

    assert first.applied is True
    assert replay.applied is False
    stored = job_service.get(job.id)
    assert stored.status == JobStatus.COMPLETED
    assert stored.output_data == {"clips": [1, 2]}
    assert_completion_invariant(stored)
    assert metrics_service.for_day().jobs_processed == 1

    metrics_service.record("jobs_processed", 2)
    assert metrics_service.for_day().jobs_processed == 3


def test_cancel_retry_through_sql():
    job = job_service.enqueue(JobType.CLIP_EXTRACTION)
    job_scheduler.process_next()
    job_scheduler.report_completion(job.id, "failed", error_message="boom")

    retried = job_scheduler.retry(job.id)
    assert retried.status == JobStatus.QUEUED
    assert retried.retry_count == 1
    assert retried.completed_at is None

    cancelled = job_scheduler.cancel(job.id)
    assert cancelled.status == JobStatus.CANCELLED
    with pytest.raises(InvalidTransition):
        job_scheduler.retry(job.id)


def test_batch_repurpose_end_to_end_on_sql():
    source = make_text_source()
    opened = batch_tracker.repurpose_source(source.id, derivative_types=["blog_post", "study_guide"], languages=["hi"])

    result = job_scheduler.process_next()

    assert result.job.status == JobStatus.COMPLETED
    progress = batch_tracker.progress(opened["queue_id"])
    assert progress.completed == 4
    assert progress.status == QueueStatus.COMPLETED
    assert batch_tracker.get(opened["queue_id"]).derivative_types == ["blog_post", "study_guide"]


def test_translation_lookup_and_review_on_sql():
    source = make_text_source()
    derivative_id = derivative_generator.generate_batch(source.id, ["blog_post"]).results[0].derivative_id

    created = review_engine.translate_derivative(derivative_id, "bn")
    again = review_engine.translate_derivative(derivative_id, "bn")
    assert created.translation_id == again.translation_id

    for _ in range(3):
        translation = review_engine.submit_review(created.translation_id, "approve", reviewer_notes="ok")
    assert translation.status == TranslationStatus.APPROVED
    assert review_engine.get(created.translation_id).review_pass == 3


def test_sources_settings_and_translators_on_sql():
    pending = source_service.ingest(
        content_id="src-sql-audio",
        title="Audio",
        content_type="sermon",
        media_type=MediaType.AUDIO,
    )
    with pytest.raises(Conflict):
        source_service.register(content_id="src-sql-audio", title="dup", content_type="sermon")

    source_service.attach_transcription(pending["source"].id, "Transcribed words.")
    assert source_service.get(pending["source"].id).status.value == "ready"

    settings_service.set(PORTAL_OPEN_KEY, "false")
    assert settings_service.is_portal_open() is False

    user = translator_auth_service.register(username="sql-user", password="pw", languages=["mai"])
    token = translator_auth_service.issue_token(user)
    resolved = translator_auth_service.resolve_token(token)
    assert resolved.id == user.id
    assert resolved.languages == ["mai"]


def test_translation_compare_and_set_on_sql():
    source = make_text_source()
    derivative_id = derivative_generator.generate_batch(source.id, ["blog_post"]).results[0].derivative_id
    translation = review_engine.get(review_engine.translate_derivative(derivative_id, "hi").translation_id)

    edited = repos.translation_repository.compare_and_set(
        translation.id,
        expected=translation,
        changes={"body": "new body", "updated_at": datetime.now(timezone.utc)},
    )
    stale = repos.translation_repository.compare_and_set(
        translation.id,
        expected=translation,
        changes={"body": "stale body"},
    )

    assert edited.body == "new body"
    assert stale is None
    assert review_engine.get(translation.id).body == "new body"
    with pytest.raises(ValueError):
        repos.translation_repository.compare_and_set(translation.id, expected=edited, changes={"approved": True})


def test_final_approval_wins_over_a_stale_review_on_sql(monkeypatch):
    source = make_text_source()
    derivative_id = derivative_generator.generate_batch(source.id, ["blog_post"]).results[0].derivative_id
    translation_id = review_engine.translate_derivative(derivative_id, "bn").translation_id
    stale = review_engine.get(translation_id)

    review_engine.final_approve(translation_id, approved_by="admin")
    real_get = repos.translation_repository.get
    reads = []

    def get(requested_id):
        reads.append(requested_id)
        return stale if len(reads) == 1 else real_get(requested_id)

    monkeypatch.setattr(repos.translation_repository, "get", get)
    with pytest.raises(AlreadyApproved):
        review_engine.submit_review(translation_id, "reject", reviewer_notes="too late")

    current = real_get(translation_id)
    assert current.status == TranslationStatus.APPROVED
    assert current.reviewer_notes == "[Final approval by admin]"


def test_registries_are_seeded_and_count_usage_on_sql():
    assert len(template_service.list(active_only=True)) == 8
    assert language_service.active_codes() == ["hi", "bn", "mai"]

    source = make_text_source()
    derivative_id = derivative_generator.generate_batch(source.id, ["blog_post"]).results[0].derivative_id
    review_engine.translate_derivative(derivative_id, "mai")

    assert template_service.active_for("blog_post").usage_count == 1
    maithili = next(language for language in language_service.list() if language.code == "mai")
    assert maithili.total_translations == 1

    language_service.update(maithili.id, is_active=False, priority=9)
    assert language_service.active_codes() == ["hi", "bn"]
    assert language_service.get(maithili.id).total_translations == 1


def test_alerts_page_and_resolve_on_sql():
    first = alert_service.raise_alert(severity=AlertSeverity.WARNING, category="stalled_job", message="one")
    second = alert_service.raise_alert(
        severity=AlertSeverity.ERROR,
        category="processing_failure",
        message="two",
        details={"jobType": "translation"},
    )

    page, total = alert_service.list(limit=1)
    assert total == 2
    assert [alert.id for alert in page] == [second.id]

    resolved = alert_service.update(first.id, is_read=True, is_resolved=True)
    assert resolved.resolved_at is not None
    unread, unread_total = alert_service.list(unread_only=True)
    assert unread_total == 1
    assert unread[0].details == {"jobType": "translation"}


def test_translator_accounts_listed_on_sql():
    translator_auth_service.register(username="first", password="pw")
    admin = translator_auth_service.register(username="second", password="pw", role="admin")

    users = translator_auth_service.list_users()
    assert {user.username for user in users} == {"first", "second"}

    updated = translator_auth_service.update_user(admin.id, is_active=False)
    assert updated.is_active is False
    with pytest.raises(AuthenticationError):
        translator_auth_service.authenticate("SECOND", "pw")
    assert translator_auth_service.authenticate(" First ", "pw").last_login_at is not None
