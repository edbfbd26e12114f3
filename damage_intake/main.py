import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from damage_intake.config import settings
from damage_intake.database import Database
from damage_intake.logging import setup_logging
from damage_intake.routers.assessments import router as assessments_router
from damage_intake.services.intake import IntakeService
from damage_intake.services.storage import build_storage, uploads_dir
from damage_intake.services.webhook import AnalysisWebhook
from damage_intake.utils.exceptions import register_exception_handlers
from damage_intake.utils.response import success_response

SERVICE_NAME = "damage-intake-api"
VERSION = "0.1.0"

setup_logging(level=settings.log_level)
logger = logging.getLogger(__name__)


def build_intake_service() -> IntakeService:
    webhook = AnalysisWebhook(
        settings.webhook_url,
        settings.webhook_token,
        timeout=settings.webhook_timeout_seconds,
    )
    return IntakeService(build_storage(settings), webhook, settings.max_image_size_bytes)


@asynccontextmanager
async def lifespan(app: FastAPI):
    os.makedirs(settings.data_dir, exist_ok=True)
    database = Database(settings.database_url)
    await database.connect()
    app.state.database = database
    app.state.intake = build_intake_service()
    logger.info("Storage backend: %s, webhook %s", settings.storage_backend,
                "enabled" if app.state.intake.webhook.enabled else "disabled")
    yield
    await app.state.intake.wait_for_notifications()
    await database.dispose()


app = FastAPI(
    title="Damage Intake API",
    description="Vehicle damage assessment intake: before/after images, analysis hand-off and reports",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(assessments_router, prefix="/api")

if settings.storage_backend == "local":
    app.mount("/files", StaticFiles(directory=uploads_dir(settings), check_dir=False), name="files")


@app.get("/health")
async def health_check():
    return success_response(data={"service": SERVICE_NAME, "version": VERSION})
