"""
Multi-backend storage coordinator.

Fans client operations out across the configured S3-compatible backends
and reduces the per-backend outcomes into one result.

Failure policy differs per operation:
- upload / replace: any backend failure fails the whole call
- delete: partial success is still a success, reported with counts
- rename: all targeted backends must succeed, otherwise the call fails
- get-info: a backend without the object simply reports "does not exist"

Object keys are always <prefix><file name>; uploads use a date partition
("YYYYMMDD/") as prefix. Prefix slashes are never normalized.
"""
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypeVar

from botocore.exceptions import ClientError

from s3gateway.config import Settings, UploadStrategy
from s3gateway.exceptions import (
    FileValidationError,
    StorageConfigurationError,
    StorageServiceError,
)
from s3gateway.services.validation_service import FileValidationService, UploadedFile
from s3gateway.storage.bucket_provisioner import BucketProvisioner
from s3gateway.storage.client_registry import BackendClient, ClientRegistry
from s3gateway.storage.dispatcher import OperationDispatcher
from s3gateway.storage.results import (
    AggregateResult,
    FileInfoResult,
    FileItem,
    FileListResult,
    ObjectInfo,
)
from s3gateway.storage.url_resolver import AccessUrlResolver
from s3gateway.utils.logging import log_operation_completed, log_operation_partial

logger = logging.getLogger(__name__)

H = TypeVar("H")

# HeadObject answers that mean "object is not there"
OBJECT_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}

NO_BACKEND_MESSAGE = "No storage service available"


def select_targets(
    strategy: UploadStrategy,
    enabled: Mapping[str, H],
    specific_targets: Optional[Sequence[str]] = None
) -> Dict[str, H]:
    """
    Pick the backends an operation is sent to.

    FIRST takes the first enabled backend in mapping order, ALL takes every
    enabled backend, SPECIFIC takes the enabled backends named in
    `specific_targets` (unknown or disabled names are skipped). The result
    is always a subset of `enabled` without duplicates.
    """
    if strategy == UploadStrategy.FIRST:
        for name, handle in enabled.items():
            return {name: handle}
        return {}

    if strategy == UploadStrategy.ALL:
        return dict(enabled)

    if strategy == UploadStrategy.SPECIFIC:
        selected: Dict[str, H] = {}
        for name in specific_targets or ():
            if name in enabled and name not in selected:
                selected[name] = enabled[name]
        return selected

    return {}


def generate_file_name(original_filename: Optional[str], now: Optional[datetime] = None) -> str:
    """Collision-resistant object name: <YYYYMMDD_HHMMSS>_<8 hex chars><original extension>."""
    extension = ""
    if original_filename and "." in original_filename:
        extension = original_filename[original_filename.rfind("."):]

    timestamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"{timestamp}_{uuid.uuid4().hex[:8]}{extension}"


def date_partition(now: Optional[datetime] = None) -> str:
    """Key prefix for new uploads, e.g. "20250809/"."""
    return (now or datetime.now()).strftime("%Y%m%d") + "/"


def _is_not_found(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    status_code = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in OBJECT_NOT_FOUND_CODES or status_code == 404


class StorageCoordinator:
    """Implements upload, delete, replace, rename, get-info and list."""

    def __init__(
        self,
        settings: Settings,
        registry: ClientRegistry,
        dispatcher: OperationDispatcher,
        validator: Optional[FileValidationService] = None,
        provisioner: Optional[BucketProvisioner] = None,
        url_resolver: Optional[AccessUrlResolver] = None
    ):
        self.settings = settings
        self.registry = registry
        self.dispatcher = dispatcher
        self.validator = validator or FileValidationService(settings)
        self.provisioner = provisioner or BucketProvisioner()
        self.url_resolver = url_resolver or AccessUrlResolver()

    # ------------------------------------------------------------------
    # Target selection
    # ------------------------------------------------------------------

    def target_clients(self) -> Dict[str, BackendClient]:
        """Backends selected by the configured strategy; never empty."""
        targets = select_targets(
            self.settings.storage_upload_strategy,
            self.registry.enabled_clients(),
            self.settings.storage_specific_targets
        )
        if not targets:
            raise StorageConfigurationError(NO_BACKEND_MESSAGE)
        return targets

    def _all_enabled_clients(self) -> Dict[str, BackendClient]:
        clients = self.registry.enabled_clients()
        if not clients:
            raise StorageConfigurationError(NO_BACKEND_MESSAGE)
        return clients

    def _resolve_url(self, handle: BackendClient, key: str) -> str:
        return self.url_resolver.resolve(handle.config, key, handle.signer)

    # ------------------------------------------------------------------
    # Upload / replace
    # ------------------------------------------------------------------

    def upload(self, data: bytes, filename: Optional[str], content_type: Optional[str]) -> AggregateResult[str]:
        """
        Validate and upload a new file to every target backend.

        Raises:
            FileValidationError: The file was rejected
            StorageConfigurationError: No target backend, or any backend failed
        """
        file = UploadedFile(filename=filename, content_type=content_type, data=data)
        self.validator.validate(file)

        file_name = generate_file_name(filename)
        result = self._upload(file, file_name, date_partition())

        if not result.fully_successful:
            log_operation_partial(
                logger, "upload", file_name,
                success_count=result.success_count,
                total=result.total,
                duration_ms=result.elapsed_ms
            )
            raise StorageConfigurationError(
                f"Upload failed on {result.failure_count} of {result.total} storage service(s)",
                result=result
            )

        log_operation_completed(
            logger, "upload", file_name,
            success_count=result.success_count,
            total=result.total,
            duration_ms=result.elapsed_ms
        )
        return result

    def _upload(self, file: UploadedFile, file_name: str, prefix: str) -> AggregateResult[str]:
        targets = self.target_clients()
        key = prefix + file_name

        def put(name: str, handle: BackendClient) -> str:
            bucket = handle.config.bucket
            self.provisioner.ensure(name, handle, bucket)

            logger.info(f"Uploading {key} to {name} - size: {file.size / 1024 / 1024:.2f}MB")
            start_time = time.time()
            handle.client.put_object(
                Bucket=bucket,
                Key=key,
                Body=file.data,
                ContentType=file.content_type,
                ContentLength=file.size
            )
            logger.info(f"Uploaded {key} to {name}/{bucket} in {time.time() - start_time:.3f}s")
            return self._resolve_url(handle, key)

        start_time = time.time()
        outcomes = self.dispatcher.dispatch(targets, put, operation="upload")
        elapsed_ms = int((time.time() - start_time) * 1000)
        return AggregateResult(file_name=file_name, prefix=prefix, outcomes=tuple(outcomes), elapsed_ms=elapsed_ms)

    def replace(
        self,
        file_name: str,
        prefix: str,
        data: bytes,
        content_type: Optional[str],
        declared_name: Optional[str] = None
    ) -> AggregateResult[str]:
        """
        Replace an object: delete it everywhere, then upload the new content
        under the same <prefix><file_name> key.

        `declared_name` is the uploaded file's own name, used for validation
        (defaults to `file_name`).

        Raises:
            FileValidationError: The new file was rejected
            StorageConfigurationError: No target backend, or the re-upload
                did not succeed everywhere
        """
        file = UploadedFile(filename=declared_name or file_name, content_type=content_type, data=data)
        self.validator.validate(file)

        deleted = self.delete(file_name, prefix)
        if not deleted.fully_successful:
            logger.warning(
                f"Replace continues after partial delete of {prefix}{file_name} "
                f"({deleted.success_count}/{deleted.total})"
            )

        result = self._upload(file, file_name, prefix)
        if not result.fully_successful:
            log_operation_partial(
                logger, "replace", file_name,
                success_count=result.success_count,
                total=result.total,
                duration_ms=result.elapsed_ms
            )
            raise StorageConfigurationError("File replace failed", result=result)

        log_operation_completed(
            logger, "replace", file_name,
            success_count=result.success_count,
            total=result.total,
            duration_ms=result.elapsed_ms
        )
        return result

    # ------------------------------------------------------------------
    # Delete / rename
    # ------------------------------------------------------------------

    def delete(self, file_name: str, prefix: str) -> AggregateResult[None]:
        """
        Delete <prefix><file_name> from every target backend.

        Partial failure is reported through the result, not raised.
        """
        targets = self.target_clients()
        key = prefix + file_name

        def remove(name: str, handle: BackendClient) -> None:
            handle.client.delete_object(Bucket=handle.config.bucket, Key=key)
            logger.debug(f"Deleted {key} from {name}")

        start_time = time.time()
        outcomes = self.dispatcher.dispatch(targets, remove, operation="delete")
        elapsed_ms = int((time.time() - start_time) * 1000)
        result = AggregateResult(file_name=file_name, prefix=prefix, outcomes=tuple(outcomes), elapsed_ms=elapsed_ms)

        if result.fully_successful:
            log_operation_completed(
                logger, "delete", file_name,
                success_count=result.success_count,
                total=result.total,
                duration_ms=elapsed_ms
            )
        else:
            log_operation_partial(
                logger, "delete", file_name,
                success_count=result.success_count,
                total=result.total,
                duration_ms=elapsed_ms
            )
        return result

    def rename(self, old_name: str, new_name: str, prefix: str) -> AggregateResult[str]:
        """
        Rename <prefix><old_name> to <prefix><new_name> on every target backend
        by copy-then-delete. A backend whose copy fails keeps the old object.

        Raises:
            FileValidationError: The new name is invalid
            StorageConfigurationError: No target backend
            StorageServiceError: Any targeted backend failed
        """
        logger.info(f"Renaming {prefix}{old_name} -> {prefix}{new_name}")
        if not new_name or not new_name.strip():
            raise FileValidationError("New file name must not be empty")
        self.validator.validate_file_name(new_name)
        if new_name == old_name:
            raise FileValidationError("New file name must differ from the current name")

        targets = self.target_clients()
        old_key = prefix + old_name
        new_key = prefix + new_name

        def move(name: str, handle: BackendClient) -> str:
            bucket = handle.config.bucket
            handle.client.copy_object(
                Bucket=bucket,
                Key=new_key,
                CopySource={"Bucket": bucket, "Key": old_key}
            )
            handle.client.delete_object(Bucket=bucket, Key=old_key)
            return self._resolve_url(handle, new_key)

        start_time = time.time()
        outcomes = self.dispatcher.dispatch(targets, move, operation="rename")
        elapsed_ms = int((time.time() - start_time) * 1000)
        result = AggregateResult(file_name=new_name, prefix=prefix, outcomes=tuple(outcomes), elapsed_ms=elapsed_ms)

        if not result.fully_successful:
            log_operation_partial(
                logger, "rename", new_name,
                success_count=result.success_count,
                total=result.total,
                duration_ms=elapsed_ms,
                old_file_name=old_name
            )
            raise StorageServiceError("File rename failed", result=result)

        log_operation_completed(
            logger, "rename", new_name,
            success_count=result.success_count,
            total=result.total,
            duration_ms=elapsed_ms,
            old_file_name=old_name
        )
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_info(self, file_name: str, prefix: str) -> Optional[FileInfoResult]:
        """
        Look <prefix><file_name> up on every enabled backend, regardless of
        strategy. Returns None when no backend has the object.
        """
        logger.info(f"Querying file info: {prefix}{file_name}")
        clients = self._all_enabled_clients()
        key = prefix + file_name

        def head(name: str, handle: BackendClient) -> Optional[ObjectInfo]:
            try:
                response = handle.client.head_object(Bucket=handle.config.bucket, Key=key)
            except ClientError as e:
                if _is_not_found(e):
                    logger.debug(f"File not found in service: {name} - {key}")
                    return None
                raise

            etag = response.get("ETag")
            return ObjectInfo(
                url=self._resolve_url(handle, key),
                size=response.get("ContentLength", 0),
                content_type=response.get("ContentType"),
                last_modified=response.get("LastModified"),
                etag=etag.strip('"') if etag else None
            )

        outcomes = self.dispatcher.dispatch(clients, head, operation="info")
        result = FileInfoResult(file_name=file_name, outcomes=tuple(outcomes))
        if not result.exists_in_any_service:
            return None
        return result

    def list_files(self, prefix: Optional[str], limit: int, continuation_token: Optional[str] = None) -> FileListResult:
        """
        One page of objects under `prefix` from the first enabled backend.

        Listings are not merged across backends.

        Raises:
            StorageConfigurationError: No enabled backend
            StorageServiceError: The listing failed
        """
        clients = self._all_enabled_clients()
        name, handle = next(iter(clients.items()))
        bucket = handle.config.bucket
        full_prefix = prefix or ""

        self.provisioner.ensure(name, handle, bucket)

        params: Dict[str, Any] = {
            "Bucket": bucket,
            "Prefix": full_prefix,
            "MaxKeys": limit,
        }
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        try:
            response = handle.client.list_objects_v2(**params)
        except Exception as e:
            logger.error(f"List files from {name}/{bucket} failed: {e}", exc_info=True)
            raise StorageServiceError("Failed to list files") from e

        files: List[FileItem] = []
        for obj in response.get("Contents", []):
            key = obj["Key"]
            files.append(FileItem(
                file_name=key[len(full_prefix):] if key.startswith(full_prefix) else key,
                size=obj.get("Size", 0),
                last_modified=obj.get("LastModified"),
                available_urls=[self._resolve_url(handle, key)]
            ))

        return FileListResult(
            files=files,
            has_more=bool(response.get("IsTruncated", False)),
            next_token=response.get("NextContinuationToken")
        )

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def storage_info(self, prefix: Optional[str] = None) -> Dict[str, Any]:
        """Strategy and per-service settings, without credentials."""
        services = {
            name: {
                "enabled": config.enabled,
                "endpoint": config.endpoint,
                "region": config.region,
                "bucket": config.bucket,
                "path_prefix": prefix,
            }
            for name, config in self.settings.storage_services.items()
        }
        return {
            "upload_strategy": self.settings.storage_upload_strategy.value,
            "specific_targets": list(self.settings.storage_specific_targets),
            "services": services,
        }

    def service_compatibility(self) -> Dict[str, Any]:
        """Per enabled backend: whether bucket policies are expected to work."""
        return {
            name: {
                "supports_bucket_policy": self.provisioner.supports_policy(handle.config.endpoint),
                "endpoint": handle.config.endpoint,
                "bucket_creation_enabled": True,
            }
            for name, handle in self.registry.enabled_clients().items()
        }

    def bucket_statistics(self) -> Dict[str, Any]:
        """Buckets known to exist, per backend."""
        return {
            "known_buckets_count": self.provisioner.cache.count(),
            "known_buckets_by_service": self.provisioner.cache.snapshot(),
        }
