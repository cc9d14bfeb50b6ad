"""
Application configuration using Pydantic Settings.
All environment variables are loaded here with sensible defaults.

Storage backends are declared as a mapping of name -> BackendConfig, e.g.:

    STORAGE_SERVICES='{"minio": {"enabled": true, "endpoint": "http://localhost:9000", "bucket": "images"}}'

or one field at a time with the nested delimiter:

    STORAGE_SERVICES__MINIO__ENABLED=true
    STORAGE_SERVICES__MINIO__ENDPOINT=http://localhost:9000
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class UploadStrategy(str, Enum):
    """How target backends are picked for write operations."""
    FIRST = "FIRST"  # first enabled backend only
    ALL = "ALL"  # every enabled backend
    SPECIFIC = "SPECIFIC"  # enabled backends named in storage_specific_targets


class BackendConfig(BaseModel):
    """Connection and URL settings for one S3-compatible backend."""

    model_config = ConfigDict(frozen=True)

    name: str = ""  # filled from the mapping key
    enabled: bool = False
    endpoint: str
    region: str = "us-east-1"
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    bucket: str
    # e.g. "https://cdn.example.com/${key}" or "${endpoint}/${bucket}/${key}"
    public_url_pattern: Optional[str] = None
    use_presigned_url: bool = False
    presigned_url_expiry: int = Field(default=3600, gt=0)  # seconds


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: str = "dev"
    log_level: str = "INFO"
    service_name: str = "s3-gateway"

    # Storage fan-out
    storage_upload_strategy: UploadStrategy = UploadStrategy.FIRST
    storage_specific_targets: List[str] = Field(default_factory=list)
    storage_services: Dict[str, BackendConfig] = Field(default_factory=dict)
    storage_worker_pool_size: int = Field(default=10, ge=1)

    # Upload validation
    validation_max_file_size: int = 10 * 1024 * 1024  # 10 MB
    validation_min_file_size: int = 1024  # 1 KB
    validation_allowed_content_types: List[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/gif", "image/webp"]
    )
    validation_allowed_extensions: List[str] = Field(
        default_factory=lambda: [".jpg", ".jpeg", ".png", ".gif", ".webp"]
    )
    validation_enable_content_validation: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    @model_validator(mode="after")
    def _name_backends(self) -> "Settings":
        """Stamp each backend config with its mapping key."""
        self.storage_services = {
            name: config if config.name == name else config.model_copy(update={"name": name})
            for name, config in self.storage_services.items()
        }
        return self

    def enabled_services(self) -> Dict[str, BackendConfig]:
        """Enabled backends, in configured order."""
        return {
            name: config
            for name, config in self.storage_services.items()
            if config.enabled
        }


# Global settings instance
settings = Settings()
