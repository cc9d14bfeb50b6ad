"""
Read-only diagnostics: effective configuration, validation limits,
bucket cache contents and per-backend policy support.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from s3gateway.api.dependencies import get_coordinator
from s3gateway.schemas.storage import ApiResponse, ValidationInfoResponse
from s3gateway.services.storage_coordinator import StorageCoordinator

router = APIRouter()


@router.get("/info")
async def storage_info(
    prefix: Optional[str] = Query(None, description="Prefix echoed back per service"),
    coordinator: StorageCoordinator = Depends(get_coordinator)
):
    """Upload strategy and per-service settings (credentials are never returned)."""
    return ApiResponse.ok(coordinator.storage_info(prefix), "Storage info retrieved")


@router.get(
    "/validation-info",
    response_model=ApiResponse[ValidationInfoResponse],
    response_model_exclude_none=True
)
async def validation_info(coordinator: StorageCoordinator = Depends(get_coordinator)):
    """Upload limits enforced by the validator."""
    info = coordinator.validator.get_validation_info()
    response = ValidationInfoResponse(
        max_file_size_bytes=info.max_file_size_bytes,
        min_file_size_bytes=info.min_file_size_bytes,
        max_file_size_mb=info.max_file_size_mb,
        min_file_size_kb=info.min_file_size_kb,
        allowed_content_types=info.allowed_content_types,
        allowed_extensions=info.allowed_extensions,
        content_validation_enabled=info.content_validation_enabled
    )
    return ApiResponse.ok(response, "Validation info retrieved")


@router.get("/bucket-stats")
async def bucket_stats(coordinator: StorageCoordinator = Depends(get_coordinator)):
    """Buckets the provisioner knows to exist."""
    return ApiResponse.ok(coordinator.bucket_statistics(), "Bucket statistics retrieved")


@router.get("/service-compatibility")
async def service_compatibility(coordinator: StorageCoordinator = Depends(get_coordinator)):
    """Whether each enabled backend is expected to accept bucket policies."""
    return ApiResponse.ok(coordinator.service_compatibility(), "Service compatibility retrieved")
