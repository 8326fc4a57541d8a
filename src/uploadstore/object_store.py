"""Object store capability.

ObjectStoreClient is the set of primitives every provider backend
implements. Every call names its bucket explicitly, so one client can be
shared by any number of RemoteFile handles without per-request state.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Tuple

PUBLIC_READ = "public-read"
PRIVATE = "private"

# Google predefined ACL names -> S3 canned ACLs
PREDEFINED_ACLS = {
    "publicRead": PUBLIC_READ,
    "private": PRIVATE,
    "projectPrivate": PRIVATE,
    "bucketOwnerRead": "bucket-owner-read",
    "bucketOwnerFullControl": "bucket-owner-full-control",
    "authenticatedRead": "authenticated-read",
}


@dataclass(frozen=True)
class ObjectMetadata:
    """Metadata of a stored object.

    Attributes:
        key: Object key
        size: Body length in bytes
        content_type: MIME type recorded with the object
        etag: Entity tag, if the provider reports one
        last_modified: Last write instant, if the provider reports one
    """

    key: str
    size: int
    content_type: Optional[str] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None


class ObjectStoreClient(ABC):
    """Capability set of a remote object store."""

    @abstractmethod
    def bucket_exists(self, bucket: str) -> bool:
        """Return True if the bucket exists."""

    @abstractmethod
    def create_bucket(self, bucket: str, public: bool = False) -> None:
        """Create a bucket (idempotent)."""

    @abstractmethod
    def put(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
        acl: str = PRIVATE,
        attributes: Optional[Mapping[str, str]] = None,
    ) -> ObjectMetadata:
        """Write an object and return its metadata.

        Raises:
            UploadError: If the write fails
        """

    @abstractmethod
    def get(self, bucket: str, key: str) -> Tuple[bytes, ObjectMetadata]:
        """Read an object body and its metadata.

        Raises:
            NotFoundError: If the object does not exist
        """

    @abstractmethod
    def head(self, bucket: str, key: str) -> Optional[ObjectMetadata]:
        """Return object metadata, or None if the object does not exist."""

    @abstractmethod
    def delete(self, bucket: str, key: str) -> None:
        """Delete an object. Deleting a missing object is not an error."""

    @abstractmethod
    def copy(
        self,
        bucket: str,
        source_key: str,
        dest_key: str,
        attributes: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Copy an object server-side.

        Raises:
            UploadError: If the copy fails
        """

    @abstractmethod
    def list_by_prefix(self, bucket: str, prefix: str) -> List[str]:
        """List every key starting with prefix."""

    @abstractmethod
    def sign(
        self,
        bucket: str,
        key: str,
        expires_at: datetime,
        query: Optional[Dict[str, str]] = None,
    ) -> str:
        """Build a URL granting read access until expires_at.

        Raises:
            SignatureError: If the inputs cannot be signed
        """
