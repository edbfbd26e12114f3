import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from damage_intake.models.assessment import Assessment, STATUS_COMPLETED, STATUS_PROCESSING
from damage_intake.schemas.assessment import AssessmentCreate, as_utc
from damage_intake.utils.exceptions import Conflict, NotFound, UpstreamFailure, ValidationError

logger = logging.getLogger(__name__)


def new_assessment_id() -> str:
    return uuid.uuid4().hex


async def get_assessment(db: AsyncSession, assessment_id: str) -> Assessment:
    try:
        assessment = await db.get(Assessment, assessment_id)
    except SQLAlchemyError as e:
        logger.exception("Failed to load assessment %s", assessment_id)
        raise UpstreamFailure("Failed to check assessment status") from e
    if assessment is None:
        raise NotFound()
    return assessment


async def list_assessments(db: AsyncSession, page: int = 1, limit: int = 20) -> tuple[list[Assessment], int]:
    """One page of assessments, newest first, plus the total count."""
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive integers")

    offset = (page - 1) * limit
    try:
        total = await db.scalar(select(func.count()).select_from(Assessment)) or 0
        # past the end: no query, and no offset too large for the driver
        if offset >= total:
            return [], total
        result = await db.execute(
            select(Assessment)
            .order_by(Assessment.created_at.desc())
            .offset(offset)
            .limit(min(limit, total - offset))
        )
    except SQLAlchemyError as e:
        logger.exception("Failed to list assessments (page=%d, limit=%d)", page, limit)
        raise UpstreamFailure("Failed to fetch assessments") from e
    return list(result.scalars().all()), total


async def list_all_assessments(db: AsyncSession) -> list[Assessment]:
    try:
        result = await db.execute(select(Assessment).order_by(Assessment.created_at.desc()))
    except SQLAlchemyError as e:
        logger.exception("Failed to list assessments")
        raise UpstreamFailure("Failed to fetch assessments") from e
    return list(result.scalars().all())


async def _insert(db: AsyncSession, assessment: Assessment) -> Assessment:
    db.add(assessment)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise Conflict("A document with this _id already exists") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Failed to save assessment %s", assessment.id)
        raise UpstreamFailure("Failed to save assessment") from e
    await db.refresh(assessment)
    return assessment


async def create_assessment(db: AsyncSession, payload: AssessmentCreate) -> Assessment:
    """Manual (simple-form) assessment with caller-supplied costs."""
    if (
        not payload.title
        or not payload.before_image_url
        or not payload.after_image_url
        or payload.total_cost is None
    ):
        raise ValidationError("Missing required fields")
    if payload.total_cost < 0:
        raise ValidationError("totalCost must not be negative")

    assessment_id = payload.id or new_assessment_id()
    if await db.get(Assessment, assessment_id) is not None:
        raise Conflict("A document with this _id already exists")

    now = datetime.now(timezone.utc)
    assessment = Assessment(
        id=assessment_id,
        title=payload.title,
        before_image_url=payload.before_image_url,
        after_image_url=payload.after_image_url,
        status=STATUS_COMPLETED,
        total_cost=payload.total_cost,
        damages=[d.model_dump(by_alias=True) for d in payload.damages],
        created_at=as_utc(payload.created_at) or now,
        completed_at=now,
    )
    return await _insert(db, assessment)


async def create_processing_assessment(
    db: AsyncSession,
    before_image_url: str,
    after_image_url: str,
    assessment_id: str | None = None,
) -> Assessment:
    """Record for an intake whose analysis is still running externally."""
    assessment = Assessment(
        id=assessment_id or new_assessment_id(),
        before_image_url=before_image_url,
        after_image_url=after_image_url,
        status=STATUS_PROCESSING,
        damages=[],
        created_at=datetime.now(timezone.utc),
    )
    return await _insert(db, assessment)
