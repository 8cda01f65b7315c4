from uuid import uuid4

from fastapi import status
from httpx import ASGITransport, AsyncClient

from src.repurposing.config import settings
from src.repurposing.main import app
from tests.repurposing.helpers import SERMON_TEXT


async def test_enqueue_and_fetch_job():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        created = await ac.post("/api/v1/jobs", json={"jobType": "image_generation", "priority": 3})
        fetched = await ac.get(f"/api/v1/jobs/{created.json()['id']}")

    assert created.status_code == status.HTTP_201_CREATED
    assert created.json()["status"] == "queued"
    assert created.json()["priority"] == 3
    assert fetched.status_code == status.HTTP_200_OK
    assert fetched.json()["job_type"] == "image_generation"


async def test_enqueue_unknown_type_is_bad_request():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/api/v1/jobs", json={"jobType": "render_video"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


async def test_process_next_on_empty_queue_reports_message():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/api/v1/jobs/process-next")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"message": "No queued jobs"}


async def test_process_next_claims_most_urgent_job():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        await ac.post("/api/v1/jobs", json={"jobType": "clip_extraction", "priority": 7})
        urgent = await ac.post("/api/v1/jobs", json={"jobType": "clip_extraction", "priority": 1})
        response = await ac.post("/api/v1/jobs/process-next")

    body = response.json()
    assert body["job"]["id"] == urgent.json()["id"]
    assert body["job"]["status"] == "processing"
    assert body["outcome"] == "pending"


async def test_cancel_and_retry_rules_over_http():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        job = (await ac.post("/api/v1/jobs", json={"jobType": "clip_extraction"})).json()

        retry_queued = await ac.post(f"/api/v1/jobs/{job['id']}/retry")
        cancelled = await ac.post(f"/api/v1/jobs/{job['id']}/cancel")
        cancel_again = await ac.post(f"/api/v1/jobs/{job['id']}/cancel")
        missing = await ac.post(f"/api/v1/jobs/{uuid4()}/cancel")

    assert retry_queued.status_code == status.HTTP_400_BAD_REQUEST
    assert cancelled.status_code == status.HTTP_200_OK
    assert cancelled.json()["status"] == "cancelled"
    assert cancel_again.status_code == status.HTTP_400_BAD_REQUEST
    assert missing.status_code == status.HTTP_404_NOT_FOUND


async def test_list_jobs_with_filters():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        await ac.post("/api/v1/jobs", json={"jobType": "translation"})
        await ac.post("/api/v1/jobs", json={"jobType": "clip_extraction"})
        filtered = await ac.get("/api/v1/jobs", params={"jobType": "translation"})
        invalid = await ac.get("/api/v1/jobs", params={"status": "paused"})

    assert filtered.json()["total"] == 1
    assert filtered.json()["jobs"][0]["job_type"] == "translation"
    assert invalid.status_code == status.HTTP_400_BAD_REQUEST


async def test_operator_routes_require_api_key_when_enabled(monkeypatch):
    monkeypatch.setattr(settings, "enable_api_auth", True)
    monkeypatch.setattr(settings, "api_keys", "ops-key-1, ops-key-2")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        missing = await ac.get("/api/v1/jobs")
        wrong = await ac.get("/api/v1/jobs", headers={"X-API-Key": "nope"})
        ok = await ac.get("/api/v1/jobs", headers={"X-API-Key": "ops-key-2"})

    assert missing.status_code == status.HTTP_401_UNAUTHORIZED
    assert wrong.status_code == status.HTTP_401_UNAUTHORIZED
    assert ok.status_code == status.HTTP_200_OK


async def test_repurpose_flow_over_http():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        source = await ac.post(
            "/api/v1/sources",
            json={"contentId": "src-http", "title": "Grace", "contentType": "sermon", "transcription": SERMON_TEXT},
        )
        accepted = await ac.post(
            f"/api/v1/sources/{source.json()['id']}/repurpose",
            json={"derivativeTypes": ["blog_post"], "languages": ["hi"]},
        )
        processed = await ac.post("/api/v1/jobs/process-next")
        batch = await ac.get(f"/api/v1/batches/{accepted.json()['queueId']}")

    assert source.status_code == status.HTTP_201_CREATED
    assert accepted.status_code == status.HTTP_202_ACCEPTED
    assert accepted.json()["expectedDerivatives"] == 1
    assert accepted.json()["expectedTranslations"] == 1
    assert processed.json()["job"]["id"] == accepted.json()["jobId"]
    assert processed.json()["outcome"] == "completed"
    assert batch.json()["status"] == "completed"
    assert batch.json()["completed"] == 2
