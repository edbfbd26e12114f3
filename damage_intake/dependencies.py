from fastapi import Request

from damage_intake.services.intake import IntakeService


def get_intake_service(request: Request) -> IntakeService:
    return request.app.state.intake
