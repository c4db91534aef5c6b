"""Error responses shared by all routers."""
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sparkcall.core.exceptions import (
    CallServiceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    InvalidStateError: 409,
}


def error_response(status_code: int, error: str, details=None) -> JSONResponse:
    """Build the {error, details?} body used by every endpoint."""
    content = {"error": error}
    if details is not None:
        content["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content=content)


def method_not_allowed() -> JSONResponse:
    return error_response(405, "Method not allowed")


async def call_service_error_handler(request: Request, exc: CallServiceError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
        500,
    )
    log = logger.warning if status_code < 500 else logger.error
    log(
        f"[API ERROR] {request.method} {request.url.path} -> {status_code} "
        f"{type(exc).__name__}: {exc.message}"
    )
    return error_response(status_code, exc.message, exc.details)


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.warning(f"[API ERROR] {request.method} {request.url.path} -> 400 validation failed")
    return error_response(400, "Validation failed", exc.errors())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CallServiceError, call_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
