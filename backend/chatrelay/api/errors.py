"""Exception handlers mapping typed errors to JSON responses."""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from chatrelay.errors import ChatRelayError, ErrorCode
from chatrelay.middleware.logging import get_logger

logger = get_logger()

STATUS_CODES = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INVALID_TIMESTAMP: 400,
    ErrorCode.INVALID_TITLE: 400,
    ErrorCode.NO_MESSAGES_FOUND: 400,
    ErrorCode.INVALID_MESSAGE: 400,
    ErrorCode.PROVIDER_UNAVAILABLE: 400,
    ErrorCode.UNSUPPORTED_MODEL: 400,
    ErrorCode.LLM_PROVIDER_ERROR: 502,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.STORAGE_ERROR: 500,
}


def error_body(code: str, message: str, details=None) -> dict:
    return {"error": code, "message": message, "details": details or {}}


async def chatrelay_error_handler(request: Request, exc: ChatRelayError):
    status_code = STATUS_CODES.get(exc.error_code, 500)
    if status_code >= 500:
        logger.error(
            "request_error",
            error_code=exc.error_code.value,
            error=exc.message,
            path=request.url.path
        )
    headers = None
    if exc.error_code == ErrorCode.RATE_LIMIT_EXCEEDED:
        headers = {"X-RateLimit-Limit": str(exc.details.get("limit", "")), "X-RateLimit-Remaining": "0"}
    return JSONResponse(
        status_code=status_code,
        content=error_body(exc.error_code.value, exc.message, exc.details),
        headers=headers
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        status_code=400,
        content=error_body(
            "VALIDATION_ERROR",
            message,
            {"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors]}
        )
    )


async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path
    )
    return JSONResponse(
        status_code=500,
        content=error_body("INTERNAL_ERROR", "An unexpected error occurred")
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ChatRelayError, chatrelay_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
