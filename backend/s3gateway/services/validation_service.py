"""
Upload validation.

Checks an uploaded file before any backend is touched: size limits,
declared content type, file name, extension, and (optionally) that the
leading bytes match the declared image type.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Mapping, Optional

from s3gateway.config import Settings
from s3gateway.exceptions import FileValidationError

logger = logging.getLogger(__name__)

MAX_FILE_NAME_LENGTH = 255
FORBIDDEN_NAME_CHARS = re.compile(r'[<>:"|?*]')

# Leading bytes needed to recognise every supported signature (WebP needs 12)
HEADER_SIZE = 16


@dataclass(frozen=True)
class UploadedFile:
    """An uploaded file fully buffered in memory."""
    filename: Optional[str]
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def header(self) -> bytes:
        return self.data[:HEADER_SIZE]


@dataclass(frozen=True)
class ValidationInfo:
    """Effective validation limits, for the /validation-info endpoint."""
    max_file_size_bytes: int
    min_file_size_bytes: int
    allowed_content_types: List[str]
    allowed_extensions: List[str]
    content_validation_enabled: bool

    @property
    def max_file_size_mb(self) -> float:
        return self.max_file_size_bytes / 1024 / 1024

    @property
    def min_file_size_kb(self) -> float:
        return self.min_file_size_bytes / 1024


def get_file_extension(file_name: str) -> str:
    """Extension including the dot; a leading dot alone does not count."""
    index = file_name.rfind(".")
    return file_name[index:] if index > 0 else ""


def matches_image_signature(header: bytes, content_type: Optional[str]) -> bool:
    """Check the magic number of `header` against the declared image type."""
    if not content_type:
        return False
    content_type = content_type.lower()

    if "jpeg" in content_type or "jpg" in content_type:
        return header[:3] == b"\xff\xd8\xff"
    if "png" in content_type:
        return header[:8] == b"\x89PNG\r\n\x1a\n"
    if "gif" in content_type:
        return header[:4] == b"GIF8"
    if "webp" in content_type:
        return header[:4] == b"RIFF" and header[8:12] == b"WEBP"

    # Other image types have no signature check
    return content_type.startswith("image/")


class FileValidationService:
    """Validates uploads against the configured limits."""

    def __init__(self, settings: Settings):
        self.max_file_size = settings.validation_max_file_size
        self.min_file_size = settings.validation_min_file_size
        self.allowed_content_types = [t.lower() for t in settings.validation_allowed_content_types]
        self.allowed_extensions = [e.lower() for e in settings.validation_allowed_extensions]
        self.content_validation_enabled = settings.validation_enable_content_validation

        logger.info(
            f"File validation configured - max size: {self.max_file_size / 1024 / 1024:.2f}MB, "
            f"min size: {self.min_file_size / 1024:.2f}KB, "
            f"content validation: {self.content_validation_enabled}"
        )

    def validate(self, file: Optional[UploadedFile]) -> None:
        """
        Validate an uploaded file.

        Raises:
            FileValidationError: On the first rule the file breaks
        """
        if file is None:
            raise FileValidationError("File is required")
        if file.size == 0:
            raise FileValidationError("Uploaded file is empty")

        self._validate_size(file)
        self._validate_content_type(file)
        self.validate_file_name(file.filename)
        self._validate_extension(file)

        if self.content_validation_enabled:
            self._validate_content(file)

    def _validate_size(self, file: UploadedFile) -> None:
        if file.size < self.min_file_size:
            raise FileValidationError(
                f"File size must be at least {self.min_file_size} bytes "
                f"({self.min_file_size / 1024:.2f} KB)"
            )
        if file.size > self.max_file_size:
            raise FileValidationError(
                f"File size must not exceed {self.max_file_size} bytes "
                f"({self.max_file_size / 1024 / 1024:.2f} MB)"
            )

    def _validate_content_type(self, file: UploadedFile) -> None:
        content_type = file.content_type
        if not content_type or not content_type.strip():
            raise FileValidationError("Unable to determine file type")
        if content_type.lower() not in self.allowed_content_types:
            raise FileValidationError(
                f"Unsupported file type: {content_type}, "
                f"allowed types: {', '.join(self.allowed_content_types)}"
            )

    def validate_file_name(self, file_name: Optional[str]) -> None:
        """
        Reject empty names, path traversal, separators, overlong names and
        characters that are unsafe in object keys.
        """
        if not file_name or not file_name.strip():
            raise FileValidationError("File name must not be empty")
        if ".." in file_name or "/" in file_name or "\\" in file_name:
            raise FileValidationError("File name contains illegal characters")
        if len(file_name) > MAX_FILE_NAME_LENGTH:
            raise FileValidationError(
                f"File name is too long, maximum length is {MAX_FILE_NAME_LENGTH} characters"
            )
        if FORBIDDEN_NAME_CHARS.search(file_name):
            raise FileValidationError("File name contains illegal characters")

    def _validate_extension(self, file: UploadedFile) -> None:
        extension = get_file_extension(file.filename or "").lower()
        if not extension:
            raise FileValidationError("File must have an extension")
        if extension not in self.allowed_extensions:
            raise FileValidationError(
                f"Unsupported file extension: {extension}, "
                f"allowed extensions: {', '.join(self.allowed_extensions)}"
            )

    def _validate_content(self, file: UploadedFile) -> None:
        header = file.header
        if len(header) < 4:
            raise FileValidationError("File content is malformed, unable to read file header")
        if not matches_image_signature(header, file.content_type):
            raise FileValidationError("File content does not match the declared type")
        logger.debug(f"File content validated - file: {file.filename}, type: {file.content_type}")

    def get_validation_info(self) -> ValidationInfo:
        return ValidationInfo(
            max_file_size_bytes=self.max_file_size,
            min_file_size_bytes=self.min_file_size,
            allowed_content_types=list(self.allowed_content_types),
            allowed_extensions=list(self.allowed_extensions),
            content_validation_enabled=self.content_validation_enabled,
        )

    @staticmethod
    def get_client_ip(headers: Mapping[str, str], fallback: Optional[str] = None) -> Optional[str]:
        """Client IP from proxy headers, falling back to the socket peer."""
        forwarded_for = headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = headers.get("x-real-ip")
        if real_ip:
            return real_ip

        return fallback
