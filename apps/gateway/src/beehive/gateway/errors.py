"""错误响应 -- BeehiveError 到 HTTP 状态码的集中映射

所有错误统一渲染为 {"error": {"code", "message", "retryable"}}。
"""

import structlog
from beehive.core.exceptions import (
    BeehiveError,
    ConflictError,
    ForbiddenError,
    GenerationExhaustedError,
    NotFoundError,
    UnauthorizedError,
    UpstreamError,
    ValidationError,
)
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

log = structlog.get_logger()

_STATUS_BY_ERROR: tuple[tuple[type[BeehiveError], int], ...] = (
    (NotFoundError, 404),
    (ConflictError, 409),
    (ValidationError, 400),
    (UnauthorizedError, 401),
    (ForbiddenError, 403),
    (GenerationExhaustedError, 503),
    (UpstreamError, 502),
)


def status_for(exc: BeehiveError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def error_response(
    status_code: int,
    code: str,
    message: str,
    retryable: bool = False,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "retryable": retryable,
            }
        },
    )


async def beehive_error_handler(request: Request, exc: BeehiveError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        log.warning("request_failed", code=exc.code, error=exc.message, status_code=status_code)
    return error_response(status_code, exc.code, exc.message, exc.retryable)


def _describe(errors: list[dict]) -> str:
    parts = []
    for error in errors:
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        message = error.get("msg", "invalid")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


async def validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    return error_response(400, ValidationError.code, _describe(exc.errors()))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BeehiveError, beehive_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
