"""
Pydantic schemas for storage endpoints.

Every endpoint answers with the ApiResponse envelope; `data` holds one of
the response models below. Conversion from coordinator results lives in
the `from_result` constructors.
"""
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from s3gateway.storage.results import AggregateResult, FileInfoResult, FileListResult

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Common response envelope."""
    success: bool
    message: Optional[str] = None
    data: Optional[T] = None
    error_code: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)

    @classmethod
    def ok(cls, data: Optional[T] = None, message: Optional[str] = None) -> "ApiResponse[T]":
        return cls(success=True, message=message, data=data)

    @classmethod
    def error(cls, message: str, error_code: str) -> "ApiResponse[T]":
        return cls(success=False, message=message, error_code=error_code)


# ============================================================================
# Upload / replace / rename
# ============================================================================

class ServiceUploadDetail(BaseModel):
    """Outcome of an upload on one storage service."""
    service_name: str
    success: bool
    url: Optional[str] = None
    message: Optional[str] = None


class UploadStatistics(BaseModel):
    total_services: int
    success_count: int
    failure_count: int
    upload_time_ms: int = 0


class UploadResponse(BaseModel):
    """Response schema for upload, replace and rename."""
    file_name: str = Field(..., description="Stored file name")
    prefix: str = Field("", description="Key prefix the file is stored under")
    success_urls: List[str] = Field(default_factory=list, description="Access URLs on successful services")
    upload_details: List[ServiceUploadDetail] = Field(default_factory=list)
    statistics: UploadStatistics

    class Config:
        json_schema_extra = {
            "example": {
                "file_name": "20250809_155600_1a2b3c4d.png",
                "prefix": "20250809/",
                "success_urls": ["http://localhost:9000/images/20250809/20250809_155600_1a2b3c4d.png"],
                "upload_details": [
                    {
                        "service_name": "minio",
                        "success": True,
                        "url": "http://localhost:9000/images/20250809/20250809_155600_1a2b3c4d.png",
                        "message": "Upload succeeded"
                    }
                ],
                "statistics": {
                    "total_services": 1,
                    "success_count": 1,
                    "failure_count": 0,
                    "upload_time_ms": 42
                }
            }
        }

    @classmethod
    def from_result(
        cls,
        result: AggregateResult[str],
        success_message: str = "Upload succeeded",
        include_time: bool = True
    ) -> "UploadResponse":
        details = [
            ServiceUploadDetail(
                service_name=outcome.backend,
                success=outcome.success,
                url=outcome.value if outcome.success else None,
                message=success_message if outcome.success else outcome.message
            )
            for outcome in result.outcomes
        ]
        return cls(
            file_name=result.file_name,
            prefix=result.prefix,
            success_urls=result.successful_values(),
            upload_details=details,
            statistics=UploadStatistics(
                total_services=result.total,
                success_count=result.success_count,
                failure_count=result.failure_count,
                upload_time_ms=result.elapsed_ms if include_time else 0
            )
        )


class RenameRequest(BaseModel):
    """Request schema for renaming a file."""
    new_file_name: str = Field(..., description="New file name (same prefix)")

    class Config:
        json_schema_extra = {
            "example": {
                "new_file_name": "cover.png"
            }
        }


# ============================================================================
# Delete
# ============================================================================

class ServiceDeleteDetail(BaseModel):
    service_name: str
    success: bool
    message: Optional[str] = None


class DeleteStatistics(BaseModel):
    total_services: int
    success_count: int
    failure_count: int
    completely_deleted: bool


class DeleteResponse(BaseModel):
    """Response schema for delete; partial deletion is reported, not raised."""
    file_name: str
    delete_results: List[ServiceDeleteDetail] = Field(default_factory=list)
    statistics: DeleteStatistics

    @classmethod
    def from_result(cls, result: AggregateResult[None]) -> "DeleteResponse":
        return cls(
            file_name=result.file_name,
            delete_results=[
                ServiceDeleteDetail(
                    service_name=outcome.backend,
                    success=outcome.success,
                    message="Delete succeeded" if outcome.success else outcome.message
                )
                for outcome in result.outcomes
            ],
            statistics=DeleteStatistics(
                total_services=result.total,
                success_count=result.success_count,
                failure_count=result.failure_count,
                completely_deleted=result.fully_successful
            )
        )


# ============================================================================
# File info / listing
# ============================================================================

class ServiceFileInfo(BaseModel):
    """Existence and metadata of a file on one storage service."""
    service_name: str
    exists: bool
    url: Optional[str] = None
    file_size: Optional[int] = None
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None


class FileInfoResponse(BaseModel):
    file_name: str
    file_size: int = 0
    content_type: Optional[str] = None
    upload_time: Optional[datetime] = None
    service_infos: List[ServiceFileInfo] = Field(default_factory=list)
    exists_in_all_services: bool

    @classmethod
    def from_result(cls, result: FileInfoResult) -> "FileInfoResponse":
        service_infos = []
        for outcome in result.outcomes:
            info = outcome.value if outcome.success else None
            service_infos.append(ServiceFileInfo(
                service_name=outcome.backend,
                exists=info is not None,
                url=info.url if info else None,
                file_size=info.size if info else None,
                last_modified=info.last_modified if info else None,
                etag=info.etag if info else None
            ))

        first = result.representative
        return cls(
            file_name=result.file_name,
            file_size=first.size if first else 0,
            content_type=first.content_type if first else None,
            upload_time=first.last_modified if first else None,
            service_infos=service_infos,
            exists_in_all_services=result.exists_in_all_services
        )


class FileListItem(BaseModel):
    file_name: str
    file_size: int
    last_modified: Optional[datetime] = None
    available_urls: List[str] = Field(default_factory=list)


class FileListResponse(BaseModel):
    files: List[FileListItem] = Field(default_factory=list)
    total_count: int
    has_more: bool
    next_token: Optional[str] = None

    @classmethod
    def from_result(cls, result: FileListResult) -> "FileListResponse":
        return cls(
            files=[
                FileListItem(
                    file_name=item.file_name,
                    file_size=item.size,
                    last_modified=item.last_modified,
                    available_urls=list(item.available_urls)
                )
                for item in result.files
            ],
            total_count=result.total_count,
            has_more=result.has_more,
            next_token=result.next_token
        )


# ============================================================================
# Diagnostics
# ============================================================================

class ValidationInfoResponse(BaseModel):
    max_file_size_bytes: int
    min_file_size_bytes: int
    max_file_size_mb: float
    min_file_size_kb: float
    allowed_content_types: List[str]
    allowed_extensions: List[str]
    content_validation_enabled: bool
