"""
Business logic services.
"""
from s3gateway.services.validation_service import FileValidationService, UploadedFile
from s3gateway.services.storage_coordinator import StorageCoordinator

__all__ = [
    "FileValidationService",
    "StorageCoordinator",
    "UploadedFile",
]
