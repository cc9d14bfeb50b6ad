"""
Image storage endpoints.

Every write is fanned out to the backends selected by the configured
strategy:
1. POST /upload - validate and store a new image
2. PUT /{file_name} - replace an image under the same key
3. POST /{file_name}/rename - rename an image on every target backend
4. DELETE /{file_name} - delete an image (partial success is reported)

Queries:
- GET /list - one page of objects from the first enabled backend
- GET /{file_name} - per-backend existence and metadata

Coordinator calls block while the fan-out runs, so they are moved off the
event loop with asyncio.to_thread.
"""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status

from s3gateway.api.dependencies import get_coordinator
from s3gateway.api.errors import error_response
from s3gateway.schemas.storage import (
    ApiResponse,
    DeleteResponse,
    FileInfoResponse,
    FileListResponse,
    RenameRequest,
    UploadResponse,
)
from s3gateway.services.storage_coordinator import StorageCoordinator
from s3gateway.utils.logging import log_request_received

logger = logging.getLogger(__name__)

router = APIRouter()


def _client_ip(request: Request, coordinator: StorageCoordinator) -> Optional[str]:
    peer = request.client.host if request.client else None
    return coordinator.validator.get_client_ip(request.headers, peer)


@router.post(
    "/upload",
    response_model=ApiResponse[UploadResponse],
    response_model_exclude_none=True
)
async def upload_image(
    request: Request,
    file: UploadFile = File(..., description="Image to store"),
    coordinator: StorageCoordinator = Depends(get_coordinator)
):
    """
    Upload an image to every target backend.

    Fails unless every targeted backend stored the file.
    """
    data = await file.read()
    log_request_received(
        logger,
        operation="upload",
        file_name=file.filename,
        client_ip=_client_ip(request, coordinator),
        size_bytes=len(data)
    )

    result = await asyncio.to_thread(coordinator.upload, data, file.filename, file.content_type)
    return ApiResponse.ok(UploadResponse.from_result(result), "File uploaded successfully")


@router.get(
    "/list",
    response_model=ApiResponse[FileListResponse],
    response_model_exclude_none=True
)
async def list_images(
    prefix: str = Query(..., description="Key prefix, e.g. 20250809/"),
    limit: int = Query(20, ge=1, le=1000, description="Page size"),
    token: Optional[str] = Query(None, description="Continuation token from the previous page"),
    coordinator: StorageCoordinator = Depends(get_coordinator)
):
    """List one page of images under a prefix."""
    result = await asyncio.to_thread(coordinator.list_files, prefix, limit, token)
    return ApiResponse.ok(FileListResponse.from_result(result), "File list retrieved")


@router.get(
    "/{file_name}",
    response_model=ApiResponse[FileInfoResponse],
    response_model_exclude_none=True
)
async def get_image_info(
    file_name: str,
    prefix: str = Query(..., description="Key prefix the file is stored under"),
    coordinator: StorageCoordinator = Depends(get_coordinator)
):
    """
    Per-backend existence and metadata of an image.

    Returns 404 only if no enabled backend has it.
    """
    result = await asyncio.to_thread(coordinator.get_info, file_name, prefix)
    if result is None:
        return error_response(status.HTTP_404_NOT_FOUND, "File not found", "FILE_NOT_FOUND")
    return ApiResponse.ok(FileInfoResponse.from_result(result), "File info retrieved")


@router.delete(
    "/{file_name}",
    response_model=ApiResponse[DeleteResponse],
    response_model_exclude_none=True
)
async def delete_image(
    file_name: str,
    request: Request,
    prefix: str = Query(..., description="Key prefix the file is stored under"),
    coordinator: StorageCoordinator = Depends(get_coordinator)
):
    """
    Delete an image from every target backend.

    Always 200; statistics tell whether every backend deleted it.
    """
    log_request_received(
        logger,
        operation="delete",
        file_name=file_name,
        client_ip=_client_ip(request, coordinator)
    )

    result = await asyncio.to_thread(coordinator.delete, file_name, prefix)
    message = "File deleted successfully" if result.fully_successful else "File partially deleted"
    return ApiResponse.ok(DeleteResponse.from_result(result), message)


@router.put(
    "/{file_name}",
    response_model=ApiResponse[UploadResponse],
    response_model_exclude_none=True
)
async def replace_image(
    file_name: str,
    request: Request,
    prefix: str = Query(..., description="Key prefix the file is stored under"),
    file: UploadFile = File(..., description="Replacement image"),
    coordinator: StorageCoordinator = Depends(get_coordinator)
):
    """Replace an image's content, keeping its key."""
    data = await file.read()
    log_request_received(
        logger,
        operation="replace",
        file_name=file_name,
        client_ip=_client_ip(request, coordinator),
        size_bytes=len(data)
    )

    result = await asyncio.to_thread(
        coordinator.replace, file_name, prefix, data, file.content_type, file.filename
    )
    return ApiResponse.ok(UploadResponse.from_result(result), "File replaced successfully")


@router.post(
    "/{file_name}/rename",
    response_model=ApiResponse[UploadResponse],
    response_model_exclude_none=True
)
async def rename_image(
    file_name: str,
    body: RenameRequest,
    prefix: str = Query(..., description="Key prefix the file is stored under"),
    coordinator: StorageCoordinator = Depends(get_coordinator)
):
    """Rename an image on every target backend; all must succeed."""
    result = await asyncio.to_thread(coordinator.rename, file_name, body.new_file_name, prefix)
    response = UploadResponse.from_result(result, success_message="Rename succeeded", include_time=False)
    return ApiResponse.ok(response, "File renamed successfully")
