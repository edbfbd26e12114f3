from damage_intake.models.assessment import Assessment, STATUS_FAILED, STATUS_PROCESSING
from damage_intake.schemas.assessment import as_utc
from damage_intake.services.result_extraction import ExtractionStatus, extract_report

VIEW_PROCESSING = "processing"
VIEW_FAILED = "failed"
VIEW_NO_DATA = "no_data"
VIEW_UNPARSEABLE = "unparseable"
VIEW_VALIDATION_FAILURE = "validation_failure"
VIEW_REPORT = "report"


def build_report_view(assessment: Assessment) -> dict:
    """What the report page shows for one assessment.

    ``view`` tells the front end which layout to use; only the keys relevant
    to that layout are filled in.
    """
    view = {
        "assessmentId": assessment.id,
        "status": assessment.status,
        "beforeImageUrl": assessment.before_image_url,
        "afterImageUrl": assessment.after_image_url,
        "createdAt": as_utc(assessment.created_at).isoformat() if assessment.created_at else None,
        "completedAt": as_utc(assessment.completed_at).isoformat() if assessment.completed_at else None,
        "view": VIEW_PROCESSING,
        "report": None,
        "isComplete": None,
        "validationFailure": None,
        "rawText": None,
        "error": None,
        "repaired": False,
    }

    if assessment.status == STATUS_PROCESSING:
        return view
    if not assessment.analysis_result:
        view["view"] = VIEW_FAILED if assessment.status == STATUS_FAILED else VIEW_NO_DATA
        return view

    result = extract_report(assessment.analysis_result)
    view["repaired"] = result.repaired

    if result.status == ExtractionStatus.NO_DATA:
        view["view"] = VIEW_NO_DATA
    elif result.status == ExtractionStatus.VALIDATION_FAILURE:
        failure = result.validation_failure
        view["view"] = VIEW_VALIDATION_FAILURE
        view["validationFailure"] = {**failure.model_dump(), "title": failure.title}
    elif result.status == ExtractionStatus.DAMAGE_REPORT:
        view["view"] = VIEW_REPORT
        report = result.report.model_dump()
        for dumped, component in zip(report["damaged_components"], result.report.damaged_components):
            dumped["severity_level"] = component.severity_level
        view["report"] = report
        view["isComplete"] = result.report.is_complete
    else:
        view["view"] = VIEW_UNPARSEABLE
        view["rawText"] = result.raw_text
        view["error"] = result.error
    return view
