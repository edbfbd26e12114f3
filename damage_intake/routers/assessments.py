import logging

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from damage_intake.database import get_db
from damage_intake.dependencies import get_intake_service
from damage_intake.models.assessment import Assessment
from damage_intake.schemas.assessment import (
    AssessmentCreate,
    AssessmentResponse,
    AssessmentStatusResponse,
    IntakeResponse,
)
from damage_intake.services.assessments import (
    create_assessment,
    get_assessment,
    list_all_assessments,
    list_assessments,
)
from damage_intake.services.intake import ImageUpload, IntakeService
from damage_intake.services.report_view import build_report_view
from damage_intake.utils.exceptions import ValidationError
from damage_intake.utils.response import pagination

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assessments", tags=["assessments"])


def _document(assessment: Assessment) -> dict:
    return AssessmentResponse.model_validate(assessment).model_dump(by_alias=True, mode="json")


async def _to_image(file: UploadFile | None) -> ImageUpload | None:
    if file is None:
        return None
    content = await file.read()
    return ImageUpload(filename=file.filename or "", content_type=file.content_type, content=content)


@router.get("")
async def get_all_assessments(db: AsyncSession = Depends(get_db)):
    return [_document(a) for a in await list_all_assessments(db)]


@router.post("", status_code=201)
async def post_assessment(payload: AssessmentCreate, db: AsyncSession = Depends(get_db)):
    assessment = await create_assessment(db, payload)
    return _document(assessment)


@router.get("/list")
async def get_assessment_page(
    page: int = Query(1),
    limit: int = Query(20),
    db: AsyncSession = Depends(get_db),
):
    items, total = await list_assessments(db, page=page, limit=limit)
    return {
        "assessments": [_document(a) for a in items],
        "pagination": pagination(total, page, limit),
    }


@router.get("/status")
async def get_assessment_status(
    assessment_id: str | None = Query(None, alias="assessmentId"),
    db: AsyncSession = Depends(get_db),
):
    if not assessment_id:
        raise ValidationError("assessmentId is required")
    assessment = await get_assessment(db, assessment_id)
    return AssessmentStatusResponse(
        assessment_id=assessment.id,
        status=assessment.status,
        before_image_url=assessment.before_image_url,
        after_image_url=assessment.after_image_url,
        analysis_result=assessment.analysis_result,
        created_at=assessment.created_at,
        completed_at=assessment.completed_at,
    ).model_dump(by_alias=True, mode="json")


@router.get("/{assessment_id}/report")
async def get_assessment_report(assessment_id: str, db: AsyncSession = Depends(get_db)):
    assessment = await get_assessment(db, assessment_id)
    return build_report_view(assessment)


@router.post("/upload")
async def upload_image(
    request: Request,
    filename: str = Query(""),
    kind: str = Query("", alias="type"),
    intake: IntakeService = Depends(get_intake_service),
):
    content = await request.body()
    return await intake.upload_single(
        filename,
        content,
        kind=kind,
        content_type=request.headers.get("content-type"),
    )


@router.post("/complete")
async def complete_intake(
    before_image: UploadFile | None = File(None, alias="beforeImage"),
    after_image: UploadFile | None = File(None, alias="afterImage"),
    db: AsyncSession = Depends(get_db),
    intake: IntakeService = Depends(get_intake_service),
):
    result = await intake.submit(db, await _to_image(before_image), await _to_image(after_image))
    return IntakeResponse(
        assessment_id=result.assessment.id,
        before_blob=result.before_blob,
        after_blob=result.after_blob,
    ).model_dump(by_alias=True)
