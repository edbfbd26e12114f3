import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from damage_intake.utils.response import error_response

logger = logging.getLogger(__name__)


class AppException(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class NotFound(AppException):
    def __init__(self, message: str = "Assessment not found"):
        super().__init__(message, status_code=404)


class Conflict(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=409)


class UpstreamFailure(AppException):
    """Storage or record store failed; the cause is logged, not returned."""

    def __init__(self, message: str):
        super().__init__(message, status_code=500)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        field = ".".join(str(p) for p in errors[0].get("loc", ())[1:]) if errors else ""
        message = f"Invalid value for {field}" if field else "Invalid request"
        return JSONResponse(
            status_code=400,
            content=error_response(message),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_response("Internal server error"),
        )
