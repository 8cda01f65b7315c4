from uuid import uuid4

from fastapi import status
from httpx import ASGITransport, AsyncClient

from src.repurposing.main import app
from tests.repurposing.helpers import make_text_source


async def test_generate_edit_and_distribute_derivative():
    source = make_text_source()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        generated = await ac.post(
            "/api/v1/derivatives/generate",
            json={"sourceContentId": str(source.id), "derivativeTypes": ["newsletter_excerpt", "sermon_remix"]},
        )
        derivative_id = generated.json()["results"][0]["derivative_id"]
        patched = await ac.patch(f"/api/v1/derivatives/{derivative_id}", json={"body": "Short and sweet", "status": "approved"})
        sent = await ac.post(f"/api/v1/derivatives/{derivative_id}/send-to-distribution")
        resent = await ac.post(f"/api/v1/derivatives/{derivative_id}/send-to-distribution")
        missing = await ac.get(f"/api/v1/derivatives/{uuid4()}")

    assert generated.status_code == status.HTTP_200_OK
    assert generated.json()["success"] is False
    assert [r["success"] for r in generated.json()["results"]] == [True, False]
    assert patched.json()["word_count"] == 3
    assert patched.json()["status"] == "approved"
    assert sent.json()["sent_to_distribution"] is True
    assert resent.status_code == status.HTTP_409_CONFLICT
    assert missing.status_code == status.HTTP_404_NOT_FOUND


async def test_translate_review_and_final_approve():
    source = make_text_source()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        generated = await ac.post(
            "/api/v1/derivatives/generate",
            json={"sourceContentId": str(source.id), "derivativeTypes": ["thread_summary"]},
        )
        derivative_id = generated.json()["results"][0]["derivative_id"]
        translated = await ac.post(
            "/api/v1/translations/translate",
            json={"derivativeId": derivative_id, "targetLanguage": "hi", "languages": ["bn"]},
        )
        hindi_id, bengali_id = (r["translation_id"] for r in translated.json()["results"])

        reviewed = await ac.post(
            f"/api/v1/translations/{hindi_id}/review",
            json={"action": "edit", "editedBody": "बेहतर अनुवाद", "reviewer": "meera"},
        )
        approved = await ac.post(f"/api/v1/translations/{bengali_id}/approve", json={"approvedBy": "admin"})
        after_approval = await ac.post(f"/api/v1/translations/{bengali_id}/review", json={"action": "reject"})
        no_language = await ac.post("/api/v1/translations/translate", json={"derivativeId": derivative_id})

    assert translated.json()["success"] is True
    assert [r["target_language"] for r in translated.json()["results"]] == ["hi", "bn"]
    assert reviewed.json()["body"] == "बेहतर अनुवाद"
    assert reviewed.json()["review_pass"] == 0
    assert approved.json()["status"] == "approved"
    assert approved.json()["review_pass"] == 3
    assert after_approval.status_code == status.HTTP_400_BAD_REQUEST
    assert no_language.status_code == status.HTTP_400_BAD_REQUEST
