from uuid import uuid4

from fastapi import status
from httpx import ASGITransport, AsyncClient

from src.repurposing.config import settings
from src.repurposing.domain.models.processing_job import JobType
from src.repurposing.main import app
from src.repurposing.services.derivatives.generator import derivative_generator
from src.repurposing.services.jobs.scheduler import job_scheduler
from src.repurposing.services.jobs.service import job_service
from src.repurposing.services.translations.service import review_engine
from tests.repurposing.helpers import WEBHOOK_KEY, make_text_source

HEADERS = {"X-API-Key": WEBHOOK_KEY}


async def test_webhook_requires_key_even_with_operator_auth_disabled():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        missing = await ac.post("/api/v1/webhooks/job-complete", json={"jobId": str(uuid4()), "status": "completed"})
        wrong = await ac.post(
            "/api/v1/webhooks/job-complete",
            json={"jobId": str(uuid4()), "status": "completed"},
            headers={"X-API-Key": "guess"},
        )
    assert missing.status_code == status.HTTP_401_UNAUTHORIZED
    assert wrong.status_code == status.HTTP_401_UNAUTHORIZED


async def test_webhook_rejected_when_no_key_configured(monkeypatch):
    monkeypatch.setattr(settings, "webhook_api_key", None)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post(
            "/api/v1/webhooks/job-complete",
            json={"jobId": str(uuid4()), "status": "completed"},
            headers=HEADERS,
        )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


async def test_job_complete_redelivery_is_acknowledged_without_effect():
    job = job_service.enqueue(JobType.CLIP_EXTRACTION)
    job_scheduler.process_next()
    payload = {"jobId": str(job.id), "status": "completed", "outputData": {"clips": 2}}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        first = await ac.post("/api/v1/webhooks/job-complete", json=payload, headers=HEADERS)
        second = await ac.post(
            "/api/v1/webhooks/job-complete",
            json={**payload, "outputData": {"clips": 40}},
            headers=HEADERS,
        )

    assert first.status_code == status.HTTP_200_OK
    assert first.json()["applied"] is True
    assert second.status_code == status.HTTP_200_OK
    assert second.json()["success"] is True
    assert second.json()["applied"] is False
    assert second.json()["job"]["output_data"] == {"clips": 2}


async def test_job_complete_unknown_job_and_bad_status():
    job = job_service.enqueue(JobType.CLIP_EXTRACTION)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        unknown = await ac.post(
            "/api/v1/webhooks/job-complete",
            json={"jobId": str(uuid4()), "status": "completed"},
            headers=HEADERS,
        )
        bad_status = await ac.post(
            "/api/v1/webhooks/job-complete",
            json={"jobId": str(job.id), "status": "processing"},
            headers=HEADERS,
        )
    assert unknown.status_code == status.HTTP_404_NOT_FOUND
    assert bad_status.status_code == status.HTTP_400_BAD_REQUEST


async def test_source_content_ingest_queues_transcription_for_media():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        created = await ac.post(
            "/api/v1/webhooks/source-content",
            json={"contentId": "yt-123", "title": "Sunday service", "contentType": "sermon", "mediaType": "video"},
            headers=HEADERS,
        )
        duplicate = await ac.post(
            "/api/v1/webhooks/source-content",
            json={"contentId": "yt-123", "title": "Sunday service again"},
            headers=HEADERS,
        )

    assert created.status_code == status.HTTP_201_CREATED
    body = created.json()
    assert body["source"]["status"] == "pending"
    assert body["job"]["job_type"] == "transcription"
    assert body["job"]["priority"] == 1
    assert duplicate.status_code == status.HTTP_409_CONFLICT


async def test_source_content_with_body_is_ready_immediately():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        created = await ac.post(
            "/api/v1/webhooks/source-content",
            json={"contentId": "blog-9", "title": "Hope", "body": "Hope does not disappoint."},
            headers=HEADERS,
        )
    assert created.json()["source"]["status"] == "ready"
    assert created.json()["source"]["transcription"] == "Hope does not disappoint."
    assert created.json()["job"] is None


async def test_translation_reviewed_advances_pass():
    source = make_text_source()
    derivative_id = derivative_generator.generate_batch(source.id, ["blog_post"]).results[0].derivative_id
    translation_id = review_engine.translate_derivative(derivative_id, "mai").translation_id

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        approved = await ac.post(
            "/api/v1/webhooks/translation-reviewed",
            json={"translationId": str(translation_id), "action": "approve", "reviewer": "editor-1"},
            headers=HEADERS,
        )
        bad = await ac.post(
            "/api/v1/webhooks/translation-reviewed",
            json={"translationId": str(translation_id), "action": "shred"},
            headers=HEADERS,
        )

    assert approved.status_code == status.HTTP_200_OK
    assert approved.json()["translation"]["review_pass"] == 1
    assert approved.json()["translation"]["status"] == "reviewed"
    assert bad.status_code == status.HTTP_400_BAD_REQUEST
