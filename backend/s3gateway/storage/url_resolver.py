"""
Access URL generation for stored objects.

Resolution order (first match wins):
1. public_url_pattern with ${endpoint}, ${bucket} and ${key} substituted
   literally (the key is not URL-encoded);
2. a presigned GET URL when use_presigned_url is set, falling back to the
   plain form if signing fails;
3. endpoint + "/" + bucket + "/" + key.
"""
import logging
from typing import Any, Optional

from s3gateway.config import BackendConfig

logger = logging.getLogger(__name__)


class AccessUrlResolver:
    """Derives the externally usable URL of an object on one backend."""

    @staticmethod
    def plain_url(config: BackendConfig, key: str) -> str:
        return f"{config.endpoint}/{config.bucket}/{key}"

    def resolve(self, config: BackendConfig, key: str, signer: Optional[Any] = None) -> str:
        """
        Resolve the access URL of `key` on the backend described by `config`.

        Never raises on signing problems; a presigned URL failure degrades
        to the plain endpoint URL.
        """
        if config.public_url_pattern:
            return (
                config.public_url_pattern
                .replace("${endpoint}", config.endpoint)
                .replace("${bucket}", config.bucket)
                .replace("${key}", key)
            )

        if config.use_presigned_url:
            return self._presigned_url(config, key, signer)

        return self.plain_url(config, key)

    def _presigned_url(self, config: BackendConfig, key: str, signer: Optional[Any]) -> str:
        if signer is None:
            logger.warning(
                f"No URL signer available for service: {config.name}, falling back to default URL"
            )
            return self.plain_url(config, key)

        try:
            return signer.generate_presigned_url(
                ClientMethod='get_object',
                Params={
                    'Bucket': config.bucket,
                    'Key': key,
                },
                ExpiresIn=config.presigned_url_expiry
            )
        except Exception as e:
            logger.error(f"Failed to generate presigned URL for service {config.name}: {e}")
            return self.plain_url(config, key)
