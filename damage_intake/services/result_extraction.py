"""Recover the damage report embedded in the analysis workflow's text output.

The workflow stores its answer as chat-style messages::

    [{"content": [{"text": "...```json\\n{...}\\n```..."}]}]

The JSON inside the text is frequently cut off when the report is long, so a
failed strict parse is followed by one brace-balancing repair attempt. None of
the functions here raise on bad upstream data; callers branch on
``ExtractionResult.status``.
"""
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from damage_intake.schemas.report import DamageReport, ValidationFailure

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```json\s*\n(.*?)```", re.DOTALL)


class ExtractionStatus(str, Enum):
    NO_DATA = "no_data"
    NO_JSON_FOUND = "no_json_found"
    MALFORMED_JSON = "malformed_json"
    DAMAGE_REPORT = "damage_report"
    VALIDATION_FAILURE = "validation_failure"


@dataclass
class ExtractionResult:
    status: ExtractionStatus
    data: dict[str, Any] | None = None
    report: DamageReport | None = None
    validation_failure: ValidationFailure | None = None
    raw_text: str | None = None
    repaired: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (ExtractionStatus.DAMAGE_REPORT, ExtractionStatus.VALIDATION_FAILURE)


def get_analysis_text(analysis_result: Any) -> str | None:
    """Text of the first content block of the first message, if there is one."""
    if not isinstance(analysis_result, list) or not analysis_result:
        return None
    message = analysis_result[0]
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not isinstance(content, list) or not content:
        return None
    block = content[0]
    if not isinstance(block, dict):
        return None
    text = block.get("text")
    return text if isinstance(text, str) else None


def find_json_candidate(text: str) -> str | None:
    match = _FENCED_JSON.search(text)
    if match and match.group(1):
        return match.group(1)

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return None


def repair_truncated_json(candidate: str) -> str:
    """Close a JSON document that was cut off after a property or element.

    Drops a dangling fragment that follows the last comma (when nothing closes
    after that comma), then appends the missing ``]`` and ``}`` in that order.
    Brackets inside string values are counted too; this only handles
    truncation at the end of the document.

    Brackets are counted after the fragment is dropped, not before. Counting
    first would also close brackets opened inside the discarded fragment and
    leave inputs like ``{"a": [1], "b": [2`` unparseable.
    """
    fixed = candidate
    last_comma = fixed.rfind(",")
    if last_comma > max(fixed.rfind("}"), fixed.rfind("]")):
        fixed = fixed[:last_comma]

    open_braces = fixed.count("{")
    close_braces = fixed.count("}")
    open_brackets = fixed.count("[")
    close_brackets = fixed.count("]")

    fixed += "]" * max(open_brackets - close_brackets, 0)
    fixed += "}" * max(open_braces - close_braces, 0)
    return fixed


def parse_json_candidate(candidate: str) -> tuple[Any, bool]:
    """Strict parse, then one repair attempt.

    Returns ``(value, repaired)``; raises ``json.JSONDecodeError`` when the
    repaired text does not parse either.
    """
    try:
        return json.loads(candidate), False
    except json.JSONDecodeError:
        logger.warning("Analysis JSON did not parse (%d chars), trying truncation repair", len(candidate))
    return json.loads(repair_truncated_json(candidate)), True


def classify(data: dict[str, Any], raw_text: str, repaired: bool = False) -> ExtractionResult:
    """Tag a parsed object as a validation failure or a damage report.

    ``validation_status == "failed"`` alone decides the variant; the report
    models drop individual values of the wrong type rather than rejecting
    the document.
    """
    if data.get("validation_status") == "failed":
        return ExtractionResult(
            status=ExtractionStatus.VALIDATION_FAILURE,
            data=data,
            validation_failure=ValidationFailure.model_validate(data),
            raw_text=raw_text,
            repaired=repaired,
        )
    return ExtractionResult(
        status=ExtractionStatus.DAMAGE_REPORT,
        data=data,
        report=DamageReport.model_validate(data),
        raw_text=raw_text,
        repaired=repaired,
    )


def extract_report(analysis_result: Any) -> ExtractionResult:
    text = get_analysis_text(analysis_result)
    if text is None:
        return ExtractionResult(status=ExtractionStatus.NO_DATA)

    candidate = find_json_candidate(text)
    if candidate is None:
        logger.warning("No JSON boundaries found in analysis text (%d chars)", len(text))
        return ExtractionResult(
            status=ExtractionStatus.NO_JSON_FOUND,
            raw_text=text,
            error="No valid JSON found",
        )

    try:
        data, repaired = parse_json_candidate(candidate)
    except json.JSONDecodeError as e:
        logger.warning("Analysis JSON could not be repaired: %s", e)
        return ExtractionResult(
            status=ExtractionStatus.MALFORMED_JSON,
            raw_text=text,
            repaired=True,
            error=str(e),
        )

    if not isinstance(data, dict):
        return ExtractionResult(
            status=ExtractionStatus.MALFORMED_JSON,
            raw_text=text,
            repaired=repaired,
            error="Analysis JSON is not an object",
        )

    if repaired:
        logger.info("Parsed analysis JSON after truncation repair")
    return classify(data, raw_text=text, repaired=repaired)
