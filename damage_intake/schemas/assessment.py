from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def as_utc(value: datetime | None) -> datetime | None:
    """Aware UTC datetime; naive values (SQLite drops the offset) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Damage(BaseModel):
    type: str
    repair_cost: float = Field(ge=0)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AssessmentCreate(BaseModel):
    """Simple-form payload. Presence of required fields is checked by the
    service so that a missing field is a 400, not a schema error."""

    id: str | None = Field(default=None, alias="_id")
    title: str | None = None
    before_image_url: str | None = None
    after_image_url: str | None = None
    total_cost: float | None = None
    damages: list[Damage] = []
    created_at: datetime | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AssessmentResponse(BaseModel):
    id: str = Field(serialization_alias="_id")
    title: str | None = None
    before_image_url: str
    after_image_url: str
    status: str
    total_cost: float | None = None
    damages: list[dict[str, Any]] = []
    analysis_result: Any = None
    created_at: datetime
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    timestamps_utc = field_validator("created_at", "completed_at")(as_utc)


class AssessmentStatusResponse(BaseModel):
    assessment_id: str
    status: str
    before_image_url: str
    after_image_url: str
    analysis_result: Any = None
    created_at: datetime
    completed_at: datetime | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    timestamps_utc = field_validator("created_at", "completed_at")(as_utc)


class IntakeResponse(BaseModel):
    assessment_id: str
    before_blob: dict[str, Any]
    after_blob: dict[str, Any]
    status: str = "success"

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
