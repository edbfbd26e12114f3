import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from damage_intake.models.assessment import Assessment
from damage_intake.services.assessments import create_processing_assessment
from damage_intake.services.storage import ObjectStorage, StorageError
from damage_intake.services.webhook import AnalysisWebhook
from damage_intake.utils.exceptions import UpstreamFailure, ValidationError

logger = logging.getLogger(__name__)

IMAGE_KINDS = ("before", "after")


@dataclass
class ImageUpload:
    filename: str
    content_type: str | None
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def is_image(self) -> bool:
        return bool(self.content_type) and self.content_type.startswith("image/")


@dataclass
class IntakeResult:
    assessment: Assessment
    before_blob: dict
    after_blob: dict


def _image_payload(image: ImageUpload, blob: dict) -> dict:
    return {
        "url": blob["url"],
        "filename": image.filename,
        "size": image.size,
        "type": image.content_type,
        "blobData": blob,
    }


class IntakeService:
    """Stores intake images, records the assessment and notifies the workflow."""

    def __init__(self, storage: ObjectStorage, webhook: AnalysisWebhook, max_image_size_bytes: int):
        self.storage = storage
        self.webhook = webhook
        self.max_image_size_bytes = max_image_size_bytes
        self._notifications: set[asyncio.Task] = set()

    def validate_image(self, image: ImageUpload | None, label: str) -> ImageUpload:
        if image is None or not image.filename:
            raise ValidationError("Both before and after images are required")
        if not image.is_image:
            raise ValidationError("Both files must be images")
        if image.size == 0:
            raise ValidationError(f"The {label} image is empty")
        if image.size > self.max_image_size_bytes:
            raise ValidationError(
                f"The {label} image exceeds {self.max_image_size_bytes // (1024 * 1024)}MB"
            )
        return image

    async def submit(
        self,
        db: AsyncSession,
        before: ImageUpload | None,
        after: ImageUpload | None,
    ) -> IntakeResult:
        before = self.validate_image(before, "before")
        after = self.validate_image(after, "after")

        # both uploads finish before anything is decided, so no half-written record
        results = await asyncio.gather(
            self.storage.put(f"before_{before.filename}", before.content, before.content_type),
            self.storage.put(f"after_{after.filename}", after.content, after.content_type),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            for failure in failures:
                logger.error("Image upload failed: %r", failure, exc_info=failure)
            if not all(isinstance(f, StorageError) for f in failures):
                raise failures[0]
            raise UpstreamFailure("Assessment upload failed")
        before_blob, after_blob = results

        assessment = await create_processing_assessment(db, before_blob["url"], after_blob["url"])
        logger.info("Assessment %s created, analysis pending", assessment.id)

        self.schedule_notification({
            "assessmentId": assessment.id,
            "beforeImage": _image_payload(before, before_blob),
            "afterImage": _image_payload(after, after_blob),
            "uploadedAt": datetime.now(timezone.utc).isoformat(),
            "status": "uploaded",
        })
        return IntakeResult(assessment=assessment, before_blob=before_blob, after_blob=after_blob)

    async def upload_single(self, filename: str, content: bytes, kind: str = "", content_type: str | None = None) -> dict:
        """Store one image without creating an assessment."""
        if not content:
            raise ValidationError("Request body is empty")
        if kind and kind not in IMAGE_KINDS:
            raise ValidationError('Invalid type parameter. Must be "before" or "after"')
        if len(content) > self.max_image_size_bytes:
            raise ValidationError(f"Image exceeds {self.max_image_size_bytes // (1024 * 1024)}MB")

        try:
            blob = await self.storage.put(filename or "upload", content, content_type)
        except StorageError as e:
            logger.error("Upload failed for %s: %s", filename, e, exc_info=e)
            raise UpstreamFailure("Upload failed") from e

        self.schedule_notification({
            "imageUrl": blob["url"],
            "filename": filename,
            "type": kind,
            "uploadedAt": datetime.now(timezone.utc).isoformat(),
            "blobData": blob,
        })
        return blob

    def schedule_notification(self, payload: dict) -> None:
        """Fire-and-forget webhook call; the response never waits on it."""
        task = asyncio.create_task(self.webhook.notify(payload))
        self._notifications.add(task)
        task.add_done_callback(self._notifications.discard)

    async def wait_for_notifications(self) -> None:
        if self._notifications:
            await asyncio.gather(*self._notifications, return_exceptions=True)
