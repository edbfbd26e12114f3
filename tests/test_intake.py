import io

import httpx
import pytest
from sqlalchemy import func, select

from damage_intake.models.assessment import Assessment
from damage_intake.services.intake import IntakeService
from damage_intake.services.webhook import AnalysisWebhook
from damage_intake.main import app

from conftest import JPEG_BYTES, FakeStorage


def _files(before_type="image/jpeg", after_type="image/jpeg"):
    return {
        "beforeImage": ("before.jpg", io.BytesIO(JPEG_BYTES), before_type),
        "afterImage": ("after.jpg", io.BytesIO(JPEG_BYTES), after_type),
    }


async def _count(database) -> int:
    async with database.session() as session:
        return await session.scalar(select(func.count()).select_from(Assessment))


@pytest.mark.asyncio
async def test_intake_creates_processing_assessment(client, storage, webhook, intake):
    response = await client.post("/api/assessments/complete", files=_files())

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["beforeBlob"]["url"] == "https://blob.test/before_before.jpg"
    assert body["afterBlob"]["url"] == "https://blob.test/after_after.jpg"
    assert set(storage.objects) == {"before_before.jpg", "after_after.jpg"}

    await intake.wait_for_notifications()
    assert len(webhook.payloads) == 1
    payload = webhook.payloads[0]
    assert payload["assessmentId"] == body["assessmentId"]
    assert payload["status"] == "uploaded"
    assert payload["beforeImage"]["filename"] == "before.jpg"
    assert payload["beforeImage"]["size"] == len(JPEG_BYTES)
    assert payload["afterImage"]["type"] == "image/jpeg"
    assert payload["uploadedAt"]


@pytest.mark.asyncio
async def test_intake_then_status_round_trip(client):
    body = (await client.post("/api/assessments/complete", files=_files())).json()

    response = await client.get("/api/assessments/status", params={"assessmentId": body["assessmentId"]})

    assert response.status_code == 200
    status = response.json()
    assert status["assessmentId"] == body["assessmentId"]
    assert status["status"] == "processing"
    assert status["beforeImageUrl"] == body["beforeBlob"]["url"]
    assert status["afterImageUrl"] == body["afterBlob"]["url"]
    assert status["analysisResult"] is None
    assert status["completedAt"] is None


@pytest.mark.asyncio
async def test_intake_missing_file(client, database):
    files = _files()
    del files["afterImage"]

    response = await client.post("/api/assessments/complete", files=files)

    assert response.status_code == 400
    assert response.json()["message"] == "Both before and after images are required"
    assert await _count(database) == 0


@pytest.mark.asyncio
async def test_intake_rejects_non_image(client, database, webhook):
    response = await client.post("/api/assessments/complete", files=_files(after_type="application/pdf"))

    assert response.status_code == 400
    assert response.json()["message"] == "Both files must be images"
    assert await _count(database) == 0
    assert webhook.payloads == []


@pytest.mark.asyncio
async def test_intake_rejects_oversized_image(client, database):
    files = _files()
    files["beforeImage"] = ("big.jpg", io.BytesIO(b"\xff" * (1024 * 1024 + 1)), "image/jpeg")

    response = await client.post("/api/assessments/complete", files=files)

    assert response.status_code == 400
    assert await _count(database) == 0


@pytest.mark.asyncio
async def test_failed_upload_creates_no_record(client, database, webhook):
    app.state.intake = IntakeService(FakeStorage(fail_prefix="after_"), webhook, 1024 * 1024)

    response = await client.post("/api/assessments/complete", files=_files())

    assert response.status_code == 500
    assert response.json()["message"] == "Assessment upload failed"
    assert await _count(database) == 0
    assert webhook.payloads == []


@pytest.mark.asyncio
async def test_webhook_failure_does_not_fail_intake(client, database, storage):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    webhook = AnalysisWebhook("https://hooks.test/analysis", "t", transport=httpx.MockTransport(refuse))
    intake = IntakeService(storage, webhook, 1024 * 1024)
    app.state.intake = intake

    response = await client.post("/api/assessments/complete", files=_files())
    await intake.wait_for_notifications()

    assert response.status_code == 200
    assessment_id = response.json()["assessmentId"]
    async with database.session() as session:
        assessment = await session.get(Assessment, assessment_id)
    assert assessment is not None
    assert assessment.status == "processing"


@pytest.mark.asyncio
async def test_single_upload_returns_blob(client, storage, webhook, intake):
    response = await client.post(
        "/api/assessments/upload",
        params={"filename": "front.jpg", "type": "before"},
        content=JPEG_BYTES,
        headers={"content-type": "image/jpeg"},
    )

    assert response.status_code == 200
    assert response.json()["url"] == "https://blob.test/front.jpg"
    assert storage.objects["front.jpg"] == JPEG_BYTES

    await intake.wait_for_notifications()
    assert webhook.payloads[0]["type"] == "before"
    assert webhook.payloads[0]["imageUrl"] == "https://blob.test/front.jpg"


@pytest.mark.asyncio
async def test_single_upload_empty_body(client):
    response = await client.post("/api/assessments/upload", params={"filename": "front.jpg"})
    assert response.status_code == 400
    assert response.json()["message"] == "Request body is empty"


@pytest.mark.asyncio
async def test_single_upload_invalid_type(client):
    response = await client.post(
        "/api/assessments/upload",
        params={"filename": "front.jpg", "type": "during"},
        content=JPEG_BYTES,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_single_upload_storage_failure(client, webhook):
    app.state.intake = IntakeService(FakeStorage(fail_prefix="front"), webhook, 1024 * 1024)

    response = await client.post(
        "/api/assessments/upload",
        params={"filename": "front.jpg"},
        content=JPEG_BYTES,
    )

    assert response.status_code == 500
    assert response.json()["message"] == "Upload failed"
