"""Error taxonomy for the upload pipeline and the handlers that render it.

Every failure that leaves the ingestion or lifecycle layer is one of the
``UploadError`` subclasses below. Handlers turn them into the envelope
``{"success": false, "message": ..., "error": ...}``; the ``error`` detail of
sensitive failures is replaced by a generic string in production.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from facility_docs.config import settings

logger = logging.getLogger(__name__)


class UploadError(Exception):
    status_code = 500
    default_message = "Internal server error"
    generic_error: Optional[str] = "Upload failed"
    sensitive = True

    def __init__(
        self,
        message: Optional[str] = None,
        error: Any = None,
        generic_error: Optional[str] = None,
        **extra: Any,
    ):
        self.message = message or self.default_message
        self.error = error
        if generic_error is not None:
            self.generic_error = generic_error
        self.extra = extra
        super().__init__(self.message if error is None else f"{self.message}: {error}")

    def envelope(self, is_prod: bool) -> dict:
        body: dict[str, Any] = {"success": False, "message": self.message}
        body.update(self.extra)
        error = self.error
        if self.sensitive and is_prod:
            error = self.generic_error
        if error is not None:
            body["error"] = error
        return body


class ValidationError(UploadError):
    status_code = 400
    default_message = "Invalid request"
    sensitive = False


class ConfigurationError(UploadError):
    default_message = "Storage configuration is missing"


class AuthorizationError(UploadError):
    status_code = 401
    default_message = "Storage credentials are invalid"
    sensitive = False


class NetworkError(UploadError):
    status_code = 503
    default_message = "Cannot connect to storage service"
    sensitive = False

    def __init__(self, message: Optional[str] = None, error: Any = "Network error", **extra: Any):
        super().__init__(message, error, **extra)


class NotFoundError(UploadError):
    status_code = 404
    default_message = "Not found"
    sensitive = False


class PartialConsistencyError(UploadError):
    default_message = "File stored but its record could not be saved"


class UploadFailure(UploadError):
    pass


class RemoteDeleteError(UploadError):
    status_code = 400
    default_message = "Failed to delete file"
    sensitive = False


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid request", "error": errors},
    )


async def _upload_error_handler(request: Request, exc: UploadError) -> JSONResponse:
    if isinstance(exc, ConfigurationError):
        logger.error("Storage configuration error on %s: %s", request.url.path, exc)
    elif exc.status_code >= 500:
        logger.error("%s on %s (%s): %s", type(exc).__name__, request.url.path, exc.status_code, exc)
    else:
        logger.info("%s on %s (%s): %s", type(exc).__name__, request.url.path, exc.status_code, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.envelope(settings.is_prod))


class CatchAllExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(f"{type(exc).__name__} on {request.url.path} (500): {exc}", exc_info=True)
            body = {"success": False, "message": "Internal server error"}
            body["error"] = "Request failed" if settings.is_prod else str(exc)
            return JSONResponse(status_code=500, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(UploadError, _upload_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_middleware(CatchAllExceptionMiddleware)
