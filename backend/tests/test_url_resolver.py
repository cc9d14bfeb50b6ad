"""
Tests for access URL resolution.
"""
from unittest.mock import MagicMock

from conftest import FakeS3Client, backend_config
from s3gateway.storage.url_resolver import AccessUrlResolver


class TestAccessUrlResolver:
    """Tests for AccessUrlResolver.resolve."""

    def test_plain_url(self):
        config = backend_config("minio", endpoint="https://x", bucket="b")

        assert AccessUrlResolver().resolve(config, "k") == "https://x/b/k"

    def test_pattern_matches_plain_form(self):
        """A pattern spelling out the plain form gives the same URL."""
        config = backend_config(
            "minio", endpoint="https://x", bucket="b", public_url_pattern="${endpoint}/${bucket}/${key}"
        )

        assert AccessUrlResolver().resolve(config, "k") == "https://x/b/k"

    def test_pattern_key_is_not_encoded(self):
        config = backend_config("cdn", public_url_pattern="https://cdn.example.com/${key}")

        url = AccessUrlResolver().resolve(config, "20250809/a b.png")

        assert url == "https://cdn.example.com/20250809/a b.png"

    def test_pattern_wins_over_presigned(self):
        signer = MagicMock()
        config = backend_config(
            "cdn", public_url_pattern="https://cdn.example.com/${key}", use_presigned_url=True
        )

        assert AccessUrlResolver().resolve(config, "k", signer) == "https://cdn.example.com/k"
        signer.generate_presigned_url.assert_not_called()

    def test_presigned_url(self):
        signer = FakeS3Client()
        config = backend_config("aws", bucket="b", use_presigned_url=True, presigned_url_expiry=600)

        url = AccessUrlResolver().resolve(config, "k", signer)

        assert url == "https://signed.example/b/k?X-Amz-Expires=600"
        assert signer.calls == [(
            "generate_presigned_url",
            {"ClientMethod": "get_object", "Params": {"Bucket": "b", "Key": "k"}, "ExpiresIn": 600},
        )]

    def test_presigned_without_signer_falls_back(self):
        config = backend_config("aws", endpoint="https://x", bucket="b", use_presigned_url=True)

        assert AccessUrlResolver().resolve(config, "k") == "https://x/b/k"

    def test_signing_failure_falls_back(self):
        signer = MagicMock()
        signer.generate_presigned_url.side_effect = RuntimeError("no credentials")
        config = backend_config("aws", endpoint="https://x", bucket="b", use_presigned_url=True)

        assert AccessUrlResolver().resolve(config, "k", signer) == "https://x/b/k"
