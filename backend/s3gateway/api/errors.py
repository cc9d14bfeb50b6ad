"""
Exception handlers mapping gateway errors to enveloped JSON responses.

Validation and configuration errors keep their message; storage service
and unexpected errors answer with a generic message so internals do not
leak. Details always go to the log.
"""
import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from s3gateway.exceptions import (
    FileValidationError,
    StorageConfigurationError,
    StorageServiceError,
)
from s3gateway.schemas.storage import ApiResponse

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, error_code: str) -> JSONResponse:
    body = ApiResponse.error(message, error_code)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True)
    )


async def file_validation_error_handler(request: Request, exc: FileValidationError) -> JSONResponse:
    logger.warning(
        f"File validation failed: {exc.message} - URI: {request.url.path}",
        extra={"event": "file_validation_failed", "error": exc.message}
    )
    return error_response(status.HTTP_400_BAD_REQUEST, exc.message, exc.error_code)


async def storage_configuration_error_handler(request: Request, exc: StorageConfigurationError) -> JSONResponse:
    logger.error(
        f"Storage configuration error: {exc.message} - URI: {request.url.path}",
        extra={"event": "storage_configuration_error", "error": exc.message}
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message, exc.error_code)


async def storage_service_error_handler(request: Request, exc: StorageServiceError) -> JSONResponse:
    logger.error(
        f"Storage service error: {exc.message} - URI: {request.url.path}",
        extra={"event": "storage_service_error", "error": exc.message},
        exc_info=exc
    )
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Storage service temporarily unavailable, please retry later",
        exc.error_code
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(f"Invalid request: {exc.errors()} - URI: {request.url.path}")
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Invalid request parameters",
        "REQUEST_VALIDATION_ERROR"
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled error: {exc} - URI: {request.url.path}",
        extra={"event": "unhandled_error", "error": str(exc)},
        exc_info=exc
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error, please contact the administrator",
        "INTERNAL_ERROR"
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FileValidationError, file_validation_error_handler)
    app.add_exception_handler(StorageConfigurationError, storage_configuration_error_handler)
    app.add_exception_handler(StorageServiceError, storage_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
