"""
Test configuration and fixtures.
Backends are in-memory fakes of the boto3 S3 client; no network is used.
"""
import os

# Set test environment before any imports
os.environ["ENVIRONMENT"] = "test"

import threading
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, Optional

import pytest
from botocore.exceptions import ClientError
from httpx import AsyncClient, ASGITransport

from s3gateway.config import BackendConfig, Settings, UploadStrategy
from s3gateway.services.storage_coordinator import StorageCoordinator
from s3gateway.storage.client_registry import BackendClient, ClientRegistry
from s3gateway.storage.dispatcher import OperationDispatcher


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 2048
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 2048

BACKEND_NAMES = ["minio", "r2", "aws"]


def client_error(code: str, status: int = 400, operation: str = "Operation") -> ClientError:
    """ClientError shaped like the ones botocore raises."""
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation
    )


class FakeS3Client:
    """
    In-memory stand-in for a boto3 S3 client.

    Only the calls the gateway makes are implemented. `fail(method, error)`
    makes every later call of that method raise `error`.
    """

    def __init__(self, buckets: Optional[Dict[str, Dict[str, dict]]] = None):
        self.buckets: Dict[str, Dict[str, dict]] = buckets if buckets is not None else {}
        self.policies: Dict[str, str] = {}
        self.failures: Dict[str, Exception] = {}
        self.calls = []
        self.closed = False
        self._lock = threading.Lock()

    def fail(self, method: str, error: Exception) -> None:
        self.failures[method] = error

    def _record(self, method: str, **kwargs) -> None:
        with self._lock:
            self.calls.append((method, kwargs))
        if method in self.failures:
            raise self.failures[method]

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def _bucket(self, name: str, operation: str) -> Dict[str, dict]:
        if name not in self.buckets:
            raise client_error("NoSuchBucket", 404, operation)
        return self.buckets[name]

    def put(self, bucket: str, key: str, body: bytes = PNG_BYTES, content_type: str = "image/png") -> None:
        """Seed an object directly, bypassing call recording."""
        self.buckets.setdefault(bucket, {})[key] = {
            "Body": body,
            "ContentType": content_type,
            "LastModified": datetime(2025, 8, 9, 15, 56, tzinfo=timezone.utc),
            "ETag": f'"{len(body):x}"',
        }

    # Bucket calls

    def head_bucket(self, Bucket):
        self._record("head_bucket", Bucket=Bucket)
        if Bucket not in self.buckets:
            raise client_error("404", 404, "HeadBucket")
        return {}

    def create_bucket(self, Bucket, CreateBucketConfiguration=None):
        self._record("create_bucket", Bucket=Bucket, CreateBucketConfiguration=CreateBucketConfiguration)
        with self._lock:
            if Bucket in self.buckets:
                raise client_error("BucketAlreadyOwnedByYou", 409, "CreateBucket")
            self.buckets[Bucket] = {}
        return {}

    def put_bucket_policy(self, Bucket, Policy):
        self._record("put_bucket_policy", Bucket=Bucket, Policy=Policy)
        self.policies[Bucket] = Policy
        return {}

    # Object calls

    def put_object(self, Bucket, Key, Body, ContentType=None, ContentLength=None):
        self._record("put_object", Bucket=Bucket, Key=Key, ContentType=ContentType, ContentLength=ContentLength)
        self._bucket(Bucket, "PutObject")
        self.put(Bucket, Key, Body, ContentType)
        return {"ETag": f'"{len(Body):x}"'}

    def delete_object(self, Bucket, Key):
        self._record("delete_object", Bucket=Bucket, Key=Key)
        self._bucket(Bucket, "DeleteObject").pop(Key, None)
        return {}

    def copy_object(self, Bucket, Key, CopySource):
        self._record("copy_object", Bucket=Bucket, Key=Key, CopySource=CopySource)
        source = self._bucket(CopySource["Bucket"], "CopyObject").get(CopySource["Key"])
        if source is None:
            raise client_error("NoSuchKey", 404, "CopyObject")
        self._bucket(Bucket, "CopyObject")[Key] = dict(source)
        return {}

    def head_object(self, Bucket, Key):
        self._record("head_object", Bucket=Bucket, Key=Key)
        obj = self._bucket(Bucket, "HeadObject").get(Key)
        if obj is None:
            raise client_error("404", 404, "HeadObject")
        return {
            "ContentLength": len(obj["Body"]),
            "ContentType": obj["ContentType"],
            "LastModified": obj["LastModified"],
            "ETag": obj["ETag"],
        }

    def list_objects_v2(self, Bucket, Prefix="", MaxKeys=1000, ContinuationToken=None):
        self._record(
            "list_objects_v2", Bucket=Bucket, Prefix=Prefix, MaxKeys=MaxKeys, ContinuationToken=ContinuationToken
        )
        keys = sorted(key for key in self._bucket(Bucket, "ListObjectsV2") if key.startswith(Prefix))
        start = int(ContinuationToken) if ContinuationToken else 0
        page = keys[start:start + MaxKeys]
        truncated = start + MaxKeys < len(keys)

        response = {
            "Contents": [
                {
                    "Key": key,
                    "Size": len(self.buckets[Bucket][key]["Body"]),
                    "LastModified": self.buckets[Bucket][key]["LastModified"],
                }
                for key in page
            ],
            "KeyCount": len(page),
            "IsTruncated": truncated,
        }
        if truncated:
            response["NextContinuationToken"] = str(start + MaxKeys)
        return response

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        self._record("generate_presigned_url", ClientMethod=ClientMethod, Params=Params, ExpiresIn=ExpiresIn)
        return f"https://signed.example/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}"

    def close(self):
        self.closed = True


def backend_config(name: str, **overrides) -> BackendConfig:
    values = {
        "name": name,
        "enabled": True,
        "endpoint": f"http://{name}.local:9000",
        "bucket": "images",
    }
    values.update(overrides)
    return BackendConfig(**values)


def make_settings(
    services: Dict[str, BackendConfig],
    strategy: UploadStrategy = UploadStrategy.ALL,
    specific_targets=None,
    **overrides
) -> Settings:
    return Settings(
        _env_file=None,
        storage_upload_strategy=strategy,
        storage_specific_targets=specific_targets or [],
        storage_services=services,
        **overrides
    )


def make_registry(settings: Settings, fakes: Dict[str, FakeS3Client]) -> ClientRegistry:
    """Registry over the fakes, one per enabled backend."""
    return ClientRegistry({
        name: BackendClient(
            name=name,
            config=config,
            client=fakes[name],
            signer=fakes[name] if config.use_presigned_url else None
        )
        for name, config in settings.enabled_services().items()
    })


def build_coordinator(
    settings: Settings,
    fakes: Dict[str, FakeS3Client],
    dispatcher: OperationDispatcher
) -> StorageCoordinator:
    return StorageCoordinator(settings, make_registry(settings, fakes), dispatcher)


@pytest.fixture
def fakes() -> Dict[str, FakeS3Client]:
    """One empty fake per backend; buckets are created on first write."""
    return {name: FakeS3Client() for name in BACKEND_NAMES}


@pytest.fixture
def settings() -> Settings:
    """Three enabled backends, ALL strategy."""
    return make_settings({name: backend_config(name) for name in BACKEND_NAMES})


@pytest.fixture
def dispatcher():
    dispatcher = OperationDispatcher(max_workers=4)
    yield dispatcher
    dispatcher.shutdown()


@pytest.fixture
def coordinator(settings, fakes, dispatcher) -> StorageCoordinator:
    return build_coordinator(settings, fakes, dispatcher)


def get_test_app(coordinator: StorageCoordinator):
    """App with the coordinator dependency overridden; lifespan is not run."""
    from s3gateway.api.dependencies import get_coordinator
    from s3gateway.main import create_app

    app = create_app(coordinator.settings, coordinator.registry)
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    return app


@pytest.fixture(scope="function")
async def client(coordinator: StorageCoordinator) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = get_test_app(coordinator)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.clear()
