from typing import Any, Optional

from fastapi import Request, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from triagebot.middleware.tracing import TRACE_ID_CTX_VAR


class AppError(Exception):
    """Base error carrying an HTTP status and a stable error code."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InputError(AppError):
    """Empty or invalid narrative or language. Raised before the pipeline runs."""

    status_code = 400
    code = "VALIDATION_ERROR"


class CollaboratorUnavailable(AppError):
    """An external service (generation or classification) failed.

    The triage engine absorbs these as absent votes; they never reach the caller.
    """

    status_code = 503
    code = "AI_PROCESSING_ERROR"


class GenerationError(CollaboratorUnavailable):
    code = "AI_UNKNOWN_ERROR"


class GenerationAuthError(GenerationError):
    status_code = 502
    code = "AI_AUTH_ERROR"


class GenerationQuotaError(GenerationError):
    status_code = 429
    code = "AI_QUOTA_ERROR"


class GenerationTransportError(GenerationError):
    status_code = 502
    code = "AI_TRANSPORT_ERROR"


class GenerationEmptyResponse(GenerationError):
    code = "AI_EMPTY_RESPONSE"


class ClassifierUnavailable(CollaboratorUnavailable):
    code = "CLASSIFIER_UNAVAILABLE"


def status_to_code(status_code: int) -> str:
    mapping = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        413: "PAYLOAD_TOO_LARGE",
        415: "UNSUPPORTED_MEDIA_TYPE",
        422: "UNPROCESSABLE_ENTITY",
        429: "TOO_MANY_REQUESTS",
        500: "INTERNAL_SERVER_ERROR",
    }
    return mapping.get(status_code, f"HTTP_{status_code}")


async def handle_http_exception(request: Request, exc: HTTPException):
    trace_id = TRACE_ID_CTX_VAR.get()
    detail: Any = exc.detail
    message = detail if isinstance(detail, str) else "HTTP error"
    body = {"code": status_to_code(exc.status_code), "message": message, "trace_id": trace_id}
    if detail is not None:
        body["details"] = detail
    return JSONResponse(status_code=exc.status_code, content=body)


async def handle_app_error(request: Request, exc: AppError):
    body = {"code": exc.code, "message": exc.message, "trace_id": TRACE_ID_CTX_VAR.get()}
    if exc.details is not None:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


async def handle_request_validation(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    body = {
        "code": InputError.code,
        "message": "Invalid request body",
        "details": details,
        "trace_id": TRACE_ID_CTX_VAR.get(),
    }
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


async def handle_unhandled_exception(request: Request, exc: Exception):
    trace_id = TRACE_ID_CTX_VAR.get()
    body = {
        "code": "INTERNAL_SERVER_ERROR",
        "message": "An unexpected error occurred",
        "details": str(exc),
        "trace_id": trace_id,
    }
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)
