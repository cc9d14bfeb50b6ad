"""
Storage module for S3-compatible object storage backends.

Clients are created once per enabled backend by the ClientRegistry; the
dispatcher fans one operation out to several backends concurrently.
"""
from s3gateway.storage.client_registry import BackendClient, ClientRegistry, create_s3_client
from s3gateway.storage.dispatcher import OperationDispatcher
from s3gateway.storage.bucket_provisioner import (
    BucketExistenceCache,
    BucketProvisioner,
    supports_bucket_policy,
)
from s3gateway.storage.url_resolver import AccessUrlResolver

__all__ = [
    "AccessUrlResolver",
    "BackendClient",
    "BucketExistenceCache",
    "BucketProvisioner",
    "ClientRegistry",
    "OperationDispatcher",
    "create_s3_client",
    "supports_bucket_policy",
]
