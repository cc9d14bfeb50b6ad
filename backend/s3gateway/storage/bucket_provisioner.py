"""
Lazy bucket provisioning.

Before any write, the target bucket must exist on the backend. Known
buckets are remembered per backend in a BucketExistenceCache so the
common path costs no network call. Unknown buckets are probed with
HeadBucket and created when missing; a public-read policy is applied on
backends believed to support bucket policies.

Two requests racing on an unseen bucket may both try to create it.
"Already exists" answers during creation are treated as success, so the
race is harmless; any other creation error is fatal for that call.
"""
import json
import logging
import threading
from typing import Callable, Dict, List, Optional, Set

from botocore.exceptions import ClientError

from s3gateway.exceptions import StorageServiceError
from s3gateway.storage.client_registry import BackendClient
from s3gateway.utils.logging import log_bucket_created
from s3gateway.utils.metrics import storage_buckets_created_total

logger = logging.getLogger(__name__)

# HeadBucket answers that mean "bucket is not there"
BUCKET_NOT_FOUND_CODES = {"404", "NoSuchBucket", "NotFound"}

# CreateBucket answers that mean "somebody already created it"
BUCKET_EXISTS_CODES = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}

# Regions where CreateBucket must not carry a LocationConstraint
DEFAULT_REGIONS = {"", "us-east-1", "auto"}

# Endpoint host fragments of services known to accept PutBucketPolicy
POLICY_CAPABLE_HOSTS = (
    "amazonaws.com",
    "r2.cloudflarestorage.com",
)

SupportsPolicy = Callable[[str], bool]


def supports_bucket_policy(endpoint: Optional[str]) -> bool:
    """
    Guess from the endpoint host whether the backend accepts bucket policies.

    MinIO and other self-hosted services are assumed not to; unlisted
    services that do support policies will be missed.
    """
    if not endpoint:
        return False
    endpoint = endpoint.lower()
    return any(host in endpoint for host in POLICY_CAPABLE_HOSTS)


def public_read_policy(bucket_name: str) -> str:
    """Bucket policy document granting anonymous s3:GetObject."""
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": "PublicRead",
                "Effect": "Allow",
                "Principal": {"AWS": ["*"]},
                "Action": ["s3:GetObject"],
                "Resource": [f"arn:aws:s3:::{bucket_name}/*"],
            }
        ],
    })


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _status_code(error: ClientError) -> Optional[int]:
    return error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")


class BucketExistenceCache:
    """
    Backend name -> bucket names known to exist.

    Entries are only ever added. All access goes through one lock.
    """

    def __init__(self):
        self._buckets: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def contains(self, backend: str, bucket: str) -> bool:
        with self._lock:
            return bucket in self._buckets.get(backend, ())

    def add(self, backend: str, bucket: str) -> bool:
        """Record a bucket. Returns False if it was already recorded."""
        with self._lock:
            known = self._buckets.setdefault(backend, set())
            if bucket in known:
                return False
            known.add(bucket)
            return True

    def snapshot(self) -> Dict[str, List[str]]:
        """Copy of the cache contents, bucket names sorted."""
        with self._lock:
            return {backend: sorted(buckets) for backend, buckets in self._buckets.items()}

    def count(self) -> int:
        with self._lock:
            return sum(len(buckets) for buckets in self._buckets.values())


class BucketProvisioner:
    """Ensures buckets exist before they are written to."""

    def __init__(
        self,
        cache: Optional[BucketExistenceCache] = None,
        supports_policy: SupportsPolicy = supports_bucket_policy
    ):
        self.cache = cache if cache is not None else BucketExistenceCache()
        self.supports_policy = supports_policy

    def ensure(self, backend_name: str, handle: BackendClient, bucket_name: str) -> None:
        """
        Make sure `bucket_name` exists on the backend.

        Raises:
            StorageServiceError: The bucket could not be probed or created
        """
        if self.cache.contains(backend_name, bucket_name):
            logger.debug(f"Bucket known to exist: {backend_name}/{bucket_name}")
            return

        client = handle.client
        try:
            client.head_bucket(Bucket=bucket_name)
            logger.debug(f"Bucket exists: {backend_name}/{bucket_name}")
            self.cache.add(backend_name, bucket_name)
            return
        except ClientError as e:
            if _error_code(e) not in BUCKET_NOT_FOUND_CODES and _status_code(e) != 404:
                logger.error(
                    f"Failed to check bucket {backend_name}/{bucket_name}: "
                    f"{_error_code(e)} (status {_status_code(e)})"
                )
                raise StorageServiceError(f"Failed to check bucket {bucket_name}: {e}") from e
        except Exception as e:
            logger.error(f"Failed to check bucket {backend_name}/{bucket_name}: {e}")
            raise StorageServiceError(f"Failed to check bucket {bucket_name}: {e}") from e

        logger.info(f"Bucket not found, creating: {backend_name}/{bucket_name}")
        self._create(backend_name, handle, bucket_name)
        self.cache.add(backend_name, bucket_name)

    def _create(self, backend_name: str, handle: BackendClient, bucket_name: str) -> None:
        client = handle.client
        params = {"Bucket": bucket_name}
        region = handle.config.region or ""
        if region not in DEFAULT_REGIONS:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}

        try:
            client.create_bucket(**params)
        except ClientError as e:
            if _error_code(e) in BUCKET_EXISTS_CODES:
                logger.info(
                    f"Bucket already created concurrently: {backend_name}/{bucket_name} ({_error_code(e)})"
                )
                return
            logger.error(f"Failed to create bucket {backend_name}/{bucket_name}: {e}")
            raise StorageServiceError(f"Failed to create bucket {bucket_name}: {e}") from e
        except Exception as e:
            logger.error(f"Failed to create bucket {backend_name}/{bucket_name}: {e}")
            raise StorageServiceError(f"Failed to create bucket {bucket_name}: {e}") from e

        storage_buckets_created_total.labels(backend=backend_name).inc()
        policy_applied = False
        if self.supports_policy(handle.config.endpoint):
            policy_applied = self._apply_public_read_policy(backend_name, client, bucket_name)
        else:
            logger.debug(f"Skipping bucket policy, not supported by {backend_name}")

        log_bucket_created(logger, backend=backend_name, bucket=bucket_name, policy_applied=policy_applied)

    def _apply_public_read_policy(self, backend_name: str, client, bucket_name: str) -> bool:
        """Apply the public-read policy. Failures are logged, never raised."""
        try:
            client.put_bucket_policy(Bucket=bucket_name, Policy=public_read_policy(bucket_name))
            logger.info(f"Public read policy applied: {backend_name}/{bucket_name}")
            return True
        except ClientError as e:
            if _status_code(e) == 501 or _error_code(e) == "NotImplemented":
                logger.info(f"Bucket policies not supported by {backend_name}: {e}")
            else:
                logger.warning(f"Failed to apply public read policy on {backend_name}/{bucket_name}: {e}")
        except Exception as e:
            logger.warning(f"Failed to apply public read policy on {backend_name}/{bucket_name}: {e}")
        return False
