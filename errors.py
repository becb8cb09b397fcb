"""
Application error taxonomy and the FastAPI handlers that turn errors into
the `{success: false, message}` envelope.
"""
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from config import get_settings

logger = logging.getLogger("fitfix")


class AppError(Exception):
    """Base class for errors that map to an HTTP status."""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    """Bad or missing input"""
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(AppError):
    """Missing or invalid bearer token"""
    status_code = 401
    default_message = "Unauthorized: Invalid or missing token"


class AuthorizationError(AppError):
    """Role or ownership check failed"""
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    """Duplicate or out-of-state request"""
    status_code = 409
    default_message = "Conflict"


class DependencyError(AppError):
    """Identity provider or notifier unreachable or timed out"""
    status_code = 503
    default_message = "Service unavailable"


class InternalError(AppError):
    status_code = 500


def error_body(message: str, exc: Exception = None) -> dict:
    body = {"success": False, "message": message}
    if exc is not None and get_settings().is_development:
        body["detail"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def register_error_handlers(app: FastAPI):
    """Register global error handlers"""

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc))

    @app.exception_handler(HTTPException)
    async def handle_http_error(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else "Invalid request body"
        logger.warning(f"Validation error on {request.url.path}: {message}")
        return JSONResponse(status_code=400, content=error_body(message))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(f"Unexpected error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content=error_body("An unexpected error occurred", exc))
