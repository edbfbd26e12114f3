from damage_intake.models.assessment import Assessment

__all__ = ["Assessment"]
