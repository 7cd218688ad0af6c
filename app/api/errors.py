"""
Exception handlers
Translate domain errors into {success: false, statusMessage} envelopes
"""
import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import SessionEngineError

logger = logging.getLogger(__name__)


def _envelope(status_code: int, message: str, data=None) -> JSONResponse:
    content = {"success": False, "statusMessage": message}
    if data is not None:
        content["data"] = data
    return JSONResponse(status_code=status_code, content=content)


async def session_engine_error_handler(request: Request, exc: SessionEngineError):
    if exc.status_code >= 500:
        logger.error(f"❌ {exc.kind} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return _envelope(exc.status_code, exc.message)


async def http_exception_handler(request: Request, exc: HTTPException):
    return _envelope(exc.status_code, str(exc.detail))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg")
        }
        for err in exc.errors()
    ]
    logger.info(f"Invalid request data on {request.method} {request.url.path}: {errors}")
    return _envelope(status.HTTP_400_BAD_REQUEST, "Invalid request data", {"errors": errors})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(
        f"❌ Unexpected error on {request.method} {request.url.path}: {exc}",
        exc_info=exc
    )
    return _envelope(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred"
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(SessionEngineError, session_engine_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
