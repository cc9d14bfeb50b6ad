"""
Gateway exception hierarchy.

Each error carries a machine-readable error_code that the HTTP layer
returns alongside the message (see s3gateway.api.errors).
"""
from typing import Any, Optional


class GatewayError(Exception):
    """Base class for errors raised by the storage gateway."""

    error_code = "GATEWAY_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code


class FileValidationError(GatewayError):
    """Client-supplied file or name was rejected before any backend call."""

    error_code = "FILE_VALIDATION_ERROR"


class StorageConfigurationError(GatewayError):
    """
    No usable target backend, or an operation that requires full success
    did not get it.

    The aggregate result that triggered the error, if any, is kept on
    `result` for logging.
    """

    error_code = "STORAGE_CONFIG_ERROR"

    def __init__(self, message: str, result: Optional[Any] = None):
        super().__init__(message)
        self.result = result


class StorageServiceError(GatewayError):
    """A backend call failed unexpectedly (network, permissions, status)."""

    error_code = "STORAGE_SERVICE_ERROR"

    def __init__(self, message: str, result: Optional[Any] = None):
        super().__init__(message)
        self.result = result
