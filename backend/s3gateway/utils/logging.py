"""
Production logging utility for structured JSON logging.

Provides event-specific logging functions with mandatory fields:
- timestamp (ISO8601)
- level
- service
- event

Optional fields (included when applicable):
- file_name
- backend
- operation
- duration_ms

Usage:
    from s3gateway.utils.logging import configure_logging, log_operation_completed

    configure_logging('s3-gateway', 'INFO')
    log_operation_completed(logger, 'upload', file_name='a.png', success_count=2, total=2)
"""
import logging
import sys
from typing import Optional, Dict, Any
from pythonjsonlogger import jsonlogger


class StructuredLogger:
    """Structured JSON logger with mandatory fields."""

    _service_name = None
    _configured = False

    @classmethod
    def configure(cls, service_name: str, log_level: str = "INFO"):
        """
        Configure structured JSON logging for the application.

        Args:
            service_name: Service identifier stamped on every record
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        if cls._configured:
            return  # Already configured

        cls._service_name = service_name

        # Remove default handlers
        root_logger = logging.getLogger()
        root_logger.handlers = []

        formatter = jsonlogger.JsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s',
            timestamp=True,
            json_ensure_ascii=False
        )

        # Console handler (for docker logs)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)

        root_logger.addHandler(handler)
        root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        # botocore is very chatty at DEBUG
        logging.getLogger("botocore").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)

        class ServiceFilter(logging.Filter):
            def filter(self, record):
                record.service = cls._service_name
                return True

        handler.addFilter(ServiceFilter())
        cls._configured = True


def _build_log_extra(
    event: str,
    file_name: Optional[str] = None,
    backend: Optional[str] = None,
    operation: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Build extra fields for structured logging.

    Args:
        event: Event name (mandatory)
        file_name: Optional object file name
        backend: Optional backend (service) name
        operation: Optional operation name (upload, delete, ...)
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields

    Returns:
        Dictionary of extra fields
    """
    extra = {
        "event": event,
        **kwargs
    }

    if file_name:
        extra["file_name"] = file_name
    if backend:
        extra["backend"] = backend
    if operation:
        extra["operation"] = operation
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    return extra


def log_request_received(
    logger: logging.Logger,
    operation: str,
    file_name: Optional[str] = None,
    client_ip: Optional[str] = None,
    size_bytes: Optional[int] = None,
    **kwargs
):
    """
    Log an incoming client request.

    Args:
        logger: Logger instance
        operation: Operation name (required)
        file_name: Optional file name the request is about
        client_ip: Optional resolved client IP
        size_bytes: Optional payload size
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="request_received",
        file_name=file_name,
        operation=operation,
        **kwargs
    )
    if client_ip:
        extra["client_ip"] = client_ip
    if size_bytes is not None:
        extra["size_bytes"] = size_bytes

    logger.info(f"Request received: {operation} {file_name or ''}".rstrip(), extra=extra)


def log_operation_completed(
    logger: logging.Logger,
    operation: str,
    file_name: str,
    success_count: int,
    total: int,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """
    Log a fan-out operation where every targeted backend succeeded.

    Args:
        logger: Logger instance
        operation: Operation name (required)
        file_name: File name (required)
        success_count: Backends that succeeded
        total: Backends targeted
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event=f"{operation}_completed",
        file_name=file_name,
        operation=operation,
        duration_ms=duration_ms,
        success_count=success_count,
        total=total,
        **kwargs
    )

    logger.info(f"{operation.capitalize()} completed: {file_name} ({success_count}/{total})", extra=extra)


def log_operation_partial(
    logger: logging.Logger,
    operation: str,
    file_name: str,
    success_count: int,
    total: int,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """
    Log a fan-out operation where at least one backend failed.

    Args:
        logger: Logger instance
        operation: Operation name (required)
        file_name: File name (required)
        success_count: Backends that succeeded
        total: Backends targeted
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event=f"{operation}_partial",
        file_name=file_name,
        operation=operation,
        duration_ms=duration_ms,
        success_count=success_count,
        total=total,
        **kwargs
    )

    logger.warning(
        f"{operation.capitalize()} not completed on every backend: {file_name} ({success_count}/{total})",
        extra=extra
    )


def log_backend_failure(
    logger: logging.Logger,
    backend: str,
    operation: str,
    error: str,
    duration_ms: Optional[float] = None,
    include_traceback: bool = True,
    **kwargs
):
    """
    Log a failure of one backend call inside a fan-out.

    Args:
        logger: Logger instance
        backend: Backend name (required)
        operation: Operation name (required)
        error: Error message (required)
        duration_ms: Optional duration in milliseconds
        include_traceback: Whether to include stack trace
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="backend_failure",
        backend=backend,
        operation=operation,
        duration_ms=duration_ms,
        error=str(error),
        **kwargs
    )

    message = f"Backend failure: {backend}.{operation} - {error}"

    if include_traceback:
        exc_info = sys.exc_info()
        if exc_info[0] is not None:
            logger.error(message, extra=extra, exc_info=exc_info)
            return
    logger.error(message, extra=extra)


def log_bucket_created(
    logger: logging.Logger,
    backend: str,
    bucket: str,
    policy_applied: bool,
    **kwargs
):
    """
    Log creation of a bucket on a backend.

    Args:
        logger: Logger instance
        backend: Backend name (required)
        bucket: Bucket name (required)
        policy_applied: Whether the public-read policy was applied
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="bucket_created",
        backend=backend,
        bucket=bucket,
        policy_applied=policy_applied,
        **kwargs
    )

    logger.info(f"Bucket created: {backend}/{bucket}", extra=extra)


# Convenience alias
def configure_logging(service_name: str, log_level: str = "INFO"):
    """Configure logging (alias for StructuredLogger.configure)."""
    StructuredLogger.configure(service_name, log_level)
