"""
Pydantic schemas for API request/response validation.
"""
from s3gateway.schemas.storage import (
    ApiResponse,
    DeleteResponse,
    FileInfoResponse,
    FileListResponse,
    RenameRequest,
    UploadResponse,
    ValidationInfoResponse,
)

__all__ = [
    "ApiResponse",
    "DeleteResponse",
    "FileInfoResponse",
    "FileListResponse",
    "RenameRequest",
    "UploadResponse",
    "ValidationInfoResponse",
]
