"""Provider-aware URL generation.

Each provider gets one UrlGenerator variant, chosen once from the
configuration by :func:`url_generator_for`. A variant knows how that
provider spells public URLs, ACL headers and copy options; signing is
delegated to the object store client.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Dict, Optional
from urllib.parse import quote

from uploadstore.config import StorageConfig
from uploadstore.errors import SignatureError
from uploadstore.object_store import PRIVATE, PUBLIC_READ, ObjectStoreClient

if TYPE_CHECKING:
    from uploadstore.remote_file import RemoteFile

logger = logging.getLogger(__name__)

AWS_DEFAULT_REGION = "us-east-1"
AWS_ACCELERATE_HOST = "s3-accelerate.amazonaws.com"
GOOGLE_HOST = "storage.googleapis.com"

# DNS-compatible bucket names: lowercase labels, no IPv4 lookalikes,
# no adjacent dots or dot-dash pairs
DNS_COMPATIBLE_BUCKET = re.compile(
    r"(?:[a-z]|\d(?!\d{0,2}(?:\.\d{1,3}){3}$))(?:[a-z0-9]|\.(?![.\-])|-(?![.])){1,61}[a-z0-9]"
)


def encode_path(path: str) -> str:
    """Percent-encode a key for use as a URL path ('+' becomes %2B)."""
    return quote(path, safe="/")


class UrlGenerator:
    """Base URL policy, shared by every provider variant.

    Attributes:
        config: Storage configuration
        client: Object store client used for signing
    """

    provider = "generic"
    supports_query_params = False

    def __init__(
        self,
        config: StorageConfig,
        client: ObjectStoreClient,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config
        self.client = client
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def scheme(self) -> str:
        return "https" if self.config.use_ssl else "http"

    def public_url(self, file: "RemoteFile") -> Optional[str]:
        """Build the unsigned URL of a file.

        Returns:
            URL string, or None if the provider has no public URL
        """
        asset_url = self.asset_host_url(file)
        if asset_url is not None:
            return asset_url
        return self._provider_public_url(encode_path(file.path))

    def asset_host_url(self, file: "RemoteFile") -> Optional[str]:
        asset_host = self.config.asset_host
        if asset_host is None:
            return None
        host = asset_host(file) if callable(asset_host) else asset_host
        if not host:
            return None
        return f"{host.rstrip('/')}/{encode_path(file.path)}"

    def _provider_public_url(self, encoded_path: str) -> Optional[str]:
        if self.config.endpoint_url:
            return f"{self.config.endpoint_url.rstrip('/')}/{self.config.directory}/{encoded_path}"
        if self.config.provider == "memory":
            return f"memory://{self.config.directory}/{encoded_path}"
        return None

    def expires_at(self, expire_at: Optional[datetime] = None) -> datetime:
        """Resolve the expiry instant of a signed URL.

        An explicit expire_at wins; otherwise the configured lifetime is
        added to the current instant. Both are handled as absolute UTC
        instants so the lifetime is exact across DST transitions.

        Raises:
            SignatureError: If expire_at is not a datetime
        """
        if expire_at is None:
            return self._clock() + timedelta(seconds=self.config.expiration_seconds())
        if not isinstance(expire_at, datetime):
            raise SignatureError(
                f"expire_at must be a datetime, got: {type(expire_at).__name__}",
                operation="sign",
            )
        # Naive values are taken as local time
        return expire_at.astimezone(timezone.utc)

    def authenticated_url(
        self,
        file: "RemoteFile",
        expire_at: Optional[datetime] = None,
        query: Optional[Dict[str, str]] = None,
    ) -> str:
        """Build a signed, time-limited URL of a file."""
        expires = self.expires_at(expire_at)
        if query and not self.supports_query_params:
            logger.debug(f"{self.provider} does not sign query params, dropping {sorted(query)}")
            query = None
        return self.client.sign(self.config.directory, file.path, expires, query)

    def put_acl(self) -> str:
        """Canned ACL objects are written with."""
        return PUBLIC_READ if self.config.public else PRIVATE

    def acl_header(self) -> Dict[str, str]:
        return {}

    def copy_options(self, content_type: Optional[str]) -> Dict[str, str]:
        """Attributes passed to the native copy.

        Content type and ACL header come first; custom attributes are merged
        last and only replace them when they use the same name.
        """
        options: Dict[str, str] = {}
        if content_type:
            options["Content-Type"] = content_type
        options.update(self.acl_header())
        options.update(self.config.attributes)
        return options


class AwsUrlGenerator(UrlGenerator):
    """Amazon S3: virtual-hosted or path-style hosts, regional endpoints, accelerate."""

    provider = "aws"
    supports_query_params = True

    @property
    def host(self) -> str:
        region = self.config.region
        if region is None or region == AWS_DEFAULT_REGION:
            return "s3.amazonaws.com"
        return f"s3.{region}.amazonaws.com"

    def use_virtual_hosted_style(self) -> bool:
        directory = self.config.directory
        if not DNS_COMPATIBLE_BUCKET.fullmatch(directory):
            return False
        # A dotted bucket breaks the *.s3 wildcard certificate
        if self.config.use_ssl and "." in directory:
            return False
        return True

    def _provider_public_url(self, encoded_path: str) -> Optional[str]:
        directory = self.config.directory
        if self.config.accelerate:
            return f"{self.scheme}://{directory}.{AWS_ACCELERATE_HOST}/{encoded_path}"
        if self.use_virtual_hosted_style():
            return f"{self.scheme}://{directory}.{self.host}/{encoded_path}"
        return f"{self.scheme}://{self.host}/{directory}/{encoded_path}"

    def acl_header(self) -> Dict[str, str]:
        if self.config.public:
            return {"x-amz-acl": PUBLIC_READ}
        return {}


class GoogleUrlGenerator(UrlGenerator):
    """Google Cloud Storage: path-style URLs on storage.googleapis.com."""

    provider = "google"
    supports_query_params = True

    def _provider_public_url(self, encoded_path: str) -> Optional[str]:
        return f"https://{GOOGLE_HOST}/{self.config.directory}/{encoded_path}"

    def acl_header(self) -> Dict[str, str]:
        if self.config.public:
            return {"destination_predefined_acl": "publicRead"}
        return {}


class GenericUrlGenerator(UrlGenerator):
    """S3-compatible stores (R2, MinIO) and the in-memory store."""

    pass


URL_GENERATORS = {
    "aws": AwsUrlGenerator,
    "google": GoogleUrlGenerator,
    "generic": GenericUrlGenerator,
    "memory": GenericUrlGenerator,
}


def url_generator_for(
    config: StorageConfig,
    client: ObjectStoreClient,
    clock: Optional[Callable[[], datetime]] = None,
) -> UrlGenerator:
    """Pick the UrlGenerator variant for config.provider."""
    return URL_GENERATORS[config.provider](config, client, clock=clock)
