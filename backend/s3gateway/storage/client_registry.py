"""
S3-compatible client registry.

Uses boto3 with the S3 API to talk to AWS S3, MinIO, Cloudflare R2 or any
other S3-compatible service. One client is created per enabled backend at
startup; backends configured for presigned URLs also get a signer client.
The registry owns every client and closes them at shutdown. Callers borrow
handles and never close them.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import boto3
from botocore.config import Config

from s3gateway.config import BackendConfig, Settings

logger = logging.getLogger(__name__)

ClientFactory = Callable[[BackendConfig], Any]


def create_s3_client(config: BackendConfig) -> Any:
    """
    Build a boto3 S3 client for one backend.

    Path-style addressing works on every S3-compatible service we target
    (MinIO and R2 need it); SigV4 is required by R2.
    """
    return boto3.client(
        's3',
        endpoint_url=config.endpoint,
        aws_access_key_id=config.access_key,
        aws_secret_access_key=config.secret_key,
        region_name=config.region,
        config=Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'}
        )
    )


@dataclass(frozen=True)
class BackendClient:
    """Handle for one enabled backend: its config, client and optional signer."""
    name: str
    config: BackendConfig
    client: Any
    signer: Optional[Any] = None


class ClientRegistry:
    """
    Named map of backend clients built from configuration.

    Iteration order of enabled_clients() follows the configured order of
    storage_services, which is what the FIRST strategy relies on.
    """

    def __init__(self, handles: Dict[str, BackendClient]):
        self._handles = dict(handles)
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client_factory: Optional[ClientFactory] = None
    ) -> "ClientRegistry":
        """
        Create clients for every enabled backend.

        Args:
            settings: Application settings
            client_factory: Builds a client from a BackendConfig
                (defaults to create_s3_client)
        """
        factory = client_factory or create_s3_client
        handles: Dict[str, BackendClient] = {}

        for name, config in settings.storage_services.items():
            if not config.enabled:
                logger.debug(f"Storage backend disabled, skipping: {name}")
                continue

            client = factory(config)
            signer = factory(config) if config.use_presigned_url else None
            handles[name] = BackendClient(name=name, config=config, client=client, signer=signer)
            logger.info(
                f"Storage client initialized: {name} -> {config.endpoint} (bucket: {config.bucket})"
            )

        if not handles:
            logger.warning(
                "No storage backend enabled. "
                "Configure STORAGE_SERVICES with at least one enabled service."
            )
        return cls(handles)

    def enabled_clients(self) -> Dict[str, BackendClient]:
        """Backend name -> handle for every enabled backend."""
        return dict(self._handles)

    def get(self, name: str) -> Optional[BackendClient]:
        return self._handles.get(name)

    def signer(self, name: str) -> Optional[Any]:
        handle = self._handles.get(name)
        return handle.signer if handle else None

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, name: object) -> bool:
        return name in self._handles

    def close(self) -> None:
        """Close every client and signer. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        for handle in self._handles.values():
            for client in (handle.client, handle.signer):
                if client is None:
                    continue
                try:
                    client.close()
                except Exception as e:
                    logger.warning(f"Failed to close storage client {handle.name}: {e}")
        logger.info(f"Closed {len(self._handles)} storage client(s)")
