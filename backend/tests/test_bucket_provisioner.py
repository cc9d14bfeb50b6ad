"""
Tests for lazy bucket provisioning and the bucket existence cache.
"""
import json
import threading

import pytest

from conftest import FakeS3Client, backend_config, client_error
from s3gateway.exceptions import StorageServiceError
from s3gateway.storage.bucket_provisioner import (
    BucketExistenceCache,
    BucketProvisioner,
    public_read_policy,
    supports_bucket_policy,
)
from s3gateway.storage.client_registry import BackendClient


def make_handle(fake: FakeS3Client, name: str = "minio", **overrides) -> BackendClient:
    return BackendClient(name=name, config=backend_config(name, **overrides), client=fake)


class TestBucketPolicyHelpers:
    """Tests for policy support detection and the policy document."""

    @pytest.mark.parametrize("endpoint", [
        "https://s3.us-west-2.amazonaws.com",
        "https://abc123.r2.cloudflarestorage.com",
        "HTTPS://S3.AMAZONAWS.COM",
    ])
    def test_supported_endpoints(self, endpoint):
        assert supports_bucket_policy(endpoint) is True

    @pytest.mark.parametrize("endpoint", ["http://localhost:9000", "http://minio:9000", "", None])
    def test_unsupported_endpoints(self, endpoint):
        assert supports_bucket_policy(endpoint) is False

    def test_public_read_policy_document(self):
        """Policy grants anonymous GetObject on every key of the bucket."""
        policy = json.loads(public_read_policy("images"))

        statement = policy["Statement"][0]
        assert policy["Version"] == "2012-10-17"
        assert statement["Effect"] == "Allow"
        assert statement["Principal"] == {"AWS": ["*"]}
        assert statement["Action"] == ["s3:GetObject"]
        assert statement["Resource"] == ["arn:aws:s3:::images/*"]


class TestBucketExistenceCache:
    """Tests for BucketExistenceCache."""

    def test_add_and_contains(self):
        cache = BucketExistenceCache()

        assert cache.contains("minio", "images") is False
        assert cache.add("minio", "images") is True
        assert cache.add("minio", "images") is False
        assert cache.contains("minio", "images") is True
        assert cache.contains("r2", "images") is False

    def test_snapshot_and_count(self):
        cache = BucketExistenceCache()
        cache.add("minio", "thumbs")
        cache.add("minio", "images")
        cache.add("r2", "images")

        assert cache.count() == 3
        assert cache.snapshot() == {"minio": ["images", "thumbs"], "r2": ["images"]}


class TestBucketProvisioner:
    """Tests for BucketProvisioner.ensure."""

    def test_existing_bucket_is_cached_without_create(self):
        """A bucket that exists is probed once and then remembered."""
        fake = FakeS3Client(buckets={"images": {}})
        provisioner = BucketProvisioner()

        provisioner.ensure("minio", make_handle(fake), "images")
        provisioner.ensure("minio", make_handle(fake), "images")

        assert fake.count("head_bucket") == 1
        assert fake.count("create_bucket") == 0
        assert provisioner.cache.contains("minio", "images")

    def test_missing_bucket_created_once(self):
        """Two ensures on a missing bucket create it exactly once."""
        fake = FakeS3Client()
        provisioner = BucketProvisioner()

        provisioner.ensure("minio", make_handle(fake), "images")
        provisioner.ensure("minio", make_handle(fake), "images")

        assert fake.count("create_bucket") == 1
        assert "images" in fake.buckets
        assert provisioner.cache.snapshot() == {"minio": ["images"]}

    def test_default_region_has_no_location_constraint(self):
        fake = FakeS3Client()

        BucketProvisioner().ensure("minio", make_handle(fake, region="us-east-1"), "images")

        create = [kwargs for name, kwargs in fake.calls if name == "create_bucket"][0]
        assert create["CreateBucketConfiguration"] is None

    def test_other_region_sets_location_constraint(self):
        fake = FakeS3Client()

        BucketProvisioner().ensure("aws", make_handle(fake, "aws", region="eu-west-1"), "images")

        create = [kwargs for name, kwargs in fake.calls if name == "create_bucket"][0]
        assert create["CreateBucketConfiguration"] == {"LocationConstraint": "eu-west-1"}

    def test_already_owned_counts_as_success(self):
        """Losing a creation race is not an error."""
        fake = FakeS3Client()
        fake.fail("create_bucket", client_error("BucketAlreadyOwnedByYou", 409))
        provisioner = BucketProvisioner()

        provisioner.ensure("minio", make_handle(fake), "images")

        assert provisioner.cache.contains("minio", "images")

    def test_create_failure_raises_and_is_not_cached(self):
        fake = FakeS3Client()
        fake.fail("create_bucket", client_error("AccessDenied", 403))
        provisioner = BucketProvisioner()

        with pytest.raises(StorageServiceError):
            provisioner.ensure("minio", make_handle(fake), "images")

        assert provisioner.cache.contains("minio", "images") is False

    def test_probe_error_other_than_not_found_raises(self):
        """A forbidden HeadBucket is not mistaken for a missing bucket."""
        fake = FakeS3Client()
        fake.fail("head_bucket", client_error("403", 403))

        with pytest.raises(StorageServiceError):
            BucketProvisioner().ensure("minio", make_handle(fake), "images")

        assert fake.count("create_bucket") == 0

    def test_policy_applied_when_supported(self):
        fake = FakeS3Client()
        handle = make_handle(fake, "aws", endpoint="https://s3.amazonaws.com")

        BucketProvisioner().ensure("aws", handle, "images")

        assert json.loads(fake.policies["images"])["Statement"][0]["Action"] == ["s3:GetObject"]

    def test_policy_skipped_when_unsupported(self):
        fake = FakeS3Client()

        BucketProvisioner().ensure("minio", make_handle(fake), "images")

        assert fake.count("put_bucket_policy") == 0

    def test_policy_failure_is_swallowed(self):
        """The bucket is still usable when the policy cannot be applied."""
        fake = FakeS3Client()
        fake.fail("put_bucket_policy", client_error("NotImplemented", 501))
        handle = make_handle(fake, "r2", endpoint="https://abc.r2.cloudflarestorage.com")
        provisioner = BucketProvisioner()

        provisioner.ensure("r2", handle, "images")

        assert provisioner.cache.contains("r2", "images")
        assert fake.policies == {}

    def test_injected_policy_predicate(self):
        """The endpoint predicate can be replaced."""
        fake = FakeS3Client()

        BucketProvisioner(supports_policy=lambda endpoint: True).ensure("minio", make_handle(fake), "images")

        assert fake.count("put_bucket_policy") == 1

    def test_concurrent_ensure(self):
        """Racing ensures on an unseen bucket all succeed."""
        fake = FakeS3Client()
        provisioner = BucketProvisioner()
        handle = make_handle(fake)
        errors = []

        def run():
            try:
                provisioner.ensure("minio", handle, "images")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=run) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert provisioner.cache.snapshot() == {"minio": ["images"]}
        assert list(fake.buckets) == ["images"]
