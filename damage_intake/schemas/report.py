import logging

from pydantic import BaseModel, ConfigDict, ValidationError, ValidationInfo, field_validator

logger = logging.getLogger(__name__)


class _Lenient(BaseModel):
    # upstream output is free-form: keep unknown keys, never require a field
    model_config = ConfigDict(extra="allow")

    @field_validator("*", mode="wrap")
    @classmethod
    def drop_invalid(cls, value, handler, info: ValidationInfo):
        """A value of the wrong type falls back to the field default instead
        of failing the whole document."""
        try:
            return handler(value)
        except ValidationError:
            logger.warning("Dropping %s.%s with unexpected value %r", cls.__name__, info.field_name, value)
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)


class VehicleInfo(_Lenient):
    visible_make_model: str | None = None
    color: str | None = None


class DamageSummary(_Lenient):
    overall_severity: str | None = None
    impact_type: str | None = None
    impact_description: str | None = None


class CostSummary(_Lenient):
    labor_total_min: float | None = None
    labor_total_max: float | None = None
    paint_materials_min: float | None = None
    paint_materials_max: float | None = None
    parts_total_min: float | None = None
    parts_total_max: float | None = None
    grand_total_min: float | None = None
    grand_total_max: float | None = None
    currency: str | None = None


class DamagedComponent(_Lenient):
    component_name: str | None = None
    location: str | None = None
    damage_type: str | None = None
    severity: str | None = None
    labor_hours: float | str | None = None
    labor_cost_min: float | None = None
    labor_cost_max: float | None = None
    notes: str | None = None

    @property
    def severity_level(self) -> str:
        """Minor, Moderate, or Severe (anything else)."""
        if self.severity in ("Minor", "Moderate"):
            return self.severity
        return "Severe"


class RepairOption(_Lenient):
    option_name: str | None = None
    total_cost_min: float | None = None
    total_cost_max: float | None = None
    estimated_days: float | str | None = None
    description: str | None = None


class DamageReport(_Lenient):
    vehicle_info: VehicleInfo | None = None
    damage_summary: DamageSummary | None = None
    cost_summary: CostSummary | None = None
    damaged_components: list[DamagedComponent] = []
    repair_options: list[RepairOption] = []
    recommendations: list[str] = []
    potential_hidden_damage: list[str] = []

    @property
    def is_complete(self) -> bool:
        """False when the upstream text was cut before the cost totals."""
        return self.cost_summary is not None and self.cost_summary.grand_total_min is not None


class ErrorDetails(_Lenient):
    before_image_analysis: str | None = None
    after_image_analysis: str | None = None
    issue_detected: str | None = None


class CustomerSummary(_Lenient):
    bottom_line: str | None = None
    what_this_means: str | None = None
    next_steps: list[str] = []


class ValidationFailure(_Lenient):
    validation_status: str = "failed"
    error_code: str | None = None
    error_message: str | None = None
    error_details: ErrorDetails | str | None = None
    customer_summary: CustomerSummary | None = None
    suggested_action: str | None = None

    @property
    def title(self) -> str:
        if self.error_code:
            return self.error_code.replace("_", " ")
        return "Validation Error"
