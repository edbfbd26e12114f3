import os

# must be set before damage_intake.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["STORAGE_BACKEND"] = "local"
os.environ["WEBHOOK_URL"] = ""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from damage_intake.database import Database
from damage_intake.main import app
from damage_intake.services.intake import IntakeService
from damage_intake.services.storage import ObjectStorage, StorageError
from damage_intake.services.webhook import AnalysisWebhook

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 100


class FakeStorage(ObjectStorage):
    """In-memory storage; names starting with ``fail_prefix`` raise."""

    def __init__(self, fail_prefix: str | None = None):
        self.fail_prefix = fail_prefix
        self.objects: dict[str, bytes] = {}

    async def put(self, filename: str, content: bytes, content_type: str | None = None) -> dict:
        if self.fail_prefix and filename.startswith(self.fail_prefix):
            raise StorageError(f"simulated failure for {filename}")
        self.objects[filename] = content
        return {
            "url": f"https://blob.test/{filename}",
            "pathname": filename,
            "contentType": content_type,
        }


class RecordingWebhook(AnalysisWebhook):
    def __init__(self):
        super().__init__("https://hooks.test/analysis", "test-token")
        self.payloads: list[dict] = []

    async def notify(self, payload: dict) -> bool:
        self.payloads.append(payload)
        return True


@pytest_asyncio.fixture
async def database():
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.connect()
    yield db
    await db.dispose()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def webhook():
    return RecordingWebhook()


@pytest.fixture
def intake(storage, webhook):
    return IntakeService(storage, webhook, max_image_size_bytes=1024 * 1024)


@pytest_asyncio.fixture
async def client(database, intake):
    app.state.database = database
    app.state.intake = intake
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    await app.state.intake.wait_for_notifications()
