"""In-process object store.

MemoryObjectStore keeps buckets in dictionaries. It backs the "memory"
provider and stands in for a real provider in tests, the way a mocked
cloud SDK would.
"""

import hashlib
import hmac
import logging
import secrets
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote, urlencode

from uploadstore.errors import NotFoundError, SignatureError, UploadError
from uploadstore.object_store import PREDEFINED_ACLS, PRIVATE, ObjectMetadata, ObjectStoreClient

logger = logging.getLogger(__name__)


class _StoredObject:
    __slots__ = ("body", "content_type", "acl", "attributes", "last_modified")

    def __init__(self, body, content_type, acl, attributes, last_modified):
        self.body = body
        self.content_type = content_type
        self.acl = acl
        self.attributes = attributes
        self.last_modified = last_modified

    def metadata(self, key: str) -> ObjectMetadata:
        return ObjectMetadata(
            key=key,
            size=len(self.body),
            content_type=self.content_type,
            etag=hashlib.md5(self.body).hexdigest(),
            last_modified=self.last_modified,
        )


class MemoryObjectStore(ObjectStoreClient):
    """Thread-safe dictionary-backed object store.

    Attributes:
        secret: Key used to sign URLs
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.secret = secret or secrets.token_hex(16)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._buckets: Dict[str, Dict[str, _StoredObject]] = {}
        self._public_buckets: set = set()
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Drop every bucket and object."""
        with self._lock:
            self._buckets.clear()
            self._public_buckets.clear()

    def bucket_exists(self, bucket: str) -> bool:
        with self._lock:
            return bucket in self._buckets

    def create_bucket(self, bucket: str, public: bool = False) -> None:
        with self._lock:
            self._buckets.setdefault(bucket, {})
            if public:
                self._public_buckets.add(bucket)
        logger.info(f"Created bucket {bucket} (public={public})")

    def _objects(self, bucket: str, key: str, operation: str) -> Dict[str, _StoredObject]:
        try:
            return self._buckets[bucket]
        except KeyError:
            raise NotFoundError(f"No such bucket: {bucket}", key=key, operation=operation)

    def put(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
        acl: str = PRIVATE,
        attributes: Optional[Mapping[str, str]] = None,
    ) -> ObjectMetadata:
        if not isinstance(body, (bytes, bytearray)):
            raise UploadError("Body must be bytes", key=key, operation="put")
        attributes = dict(attributes or {})
        acl = attributes.pop("x-amz-acl", acl)
        with self._lock:
            if bucket not in self._buckets:
                raise UploadError(f"No such bucket: {bucket}", key=key, operation="put")
            stored = _StoredObject(
                bytes(body), content_type, acl, attributes, self._clock()
            )
            self._buckets[bucket][key] = stored
            return stored.metadata(key)

    def get(self, bucket: str, key: str) -> Tuple[bytes, ObjectMetadata]:
        with self._lock:
            stored = self._objects(bucket, key, "get").get(key)
            if stored is None:
                raise NotFoundError("No such key", key=key, operation="get")
            return stored.body, stored.metadata(key)

    def head(self, bucket: str, key: str) -> Optional[ObjectMetadata]:
        with self._lock:
            stored = self._buckets.get(bucket, {}).get(key)
            return stored.metadata(key) if stored else None

    def delete(self, bucket: str, key: str) -> None:
        with self._lock:
            self._buckets.get(bucket, {}).pop(key, None)

    def copy(
        self,
        bucket: str,
        source_key: str,
        dest_key: str,
        attributes: Optional[Mapping[str, str]] = None,
    ) -> None:
        attributes = dict(attributes or {})
        with self._lock:
            objects = self._buckets.get(bucket, {})
            source = objects.get(source_key)
            if source is None:
                raise UploadError(
                    f"Copy source missing: {source_key}", key=dest_key, operation="copy"
                )
            content_type = attributes.pop("Content-Type", source.content_type)
            acl = source.acl
            if "x-amz-acl" in attributes:
                acl = attributes.pop("x-amz-acl")
            elif "destination_predefined_acl" in attributes:
                predefined = attributes.pop("destination_predefined_acl")
                if predefined not in PREDEFINED_ACLS:
                    raise UploadError(
                        f"Unknown predefined ACL: {predefined}", key=dest_key, operation="copy"
                    )
                acl = PREDEFINED_ACLS[predefined]
            objects[dest_key] = _StoredObject(
                source.body, content_type, acl, attributes, self._clock()
            )

    def list_by_prefix(self, bucket: str, prefix: str) -> List[str]:
        with self._lock:
            return sorted(key for key in self._buckets.get(bucket, {}) if key.startswith(prefix))

    def acl_for(self, bucket: str, key: str) -> Optional[str]:
        """Return the ACL an object was written with (None if missing)."""
        with self._lock:
            stored = self._buckets.get(bucket, {}).get(key)
            return stored.acl if stored else None

    def attributes_for(self, bucket: str, key: str) -> Dict[str, str]:
        """Return the custom attributes an object was written with."""
        with self._lock:
            stored = self._buckets.get(bucket, {}).get(key)
            return dict(stored.attributes) if stored else {}

    def sign(
        self,
        bucket: str,
        key: str,
        expires_at: datetime,
        query: Optional[Dict[str, str]] = None,
    ) -> str:
        if expires_at.tzinfo is None:
            raise SignatureError("expires_at must be timezone-aware", key=key, operation="sign")
        if expires_at <= self._clock():
            raise SignatureError("expires_at is in the past", key=key, operation="sign")

        expires = int(expires_at.timestamp())
        params = dict(query or {})
        params["Expires"] = str(expires)
        string_to_sign = "\n".join(
            [bucket, key] + [f"{name}={params[name]}" for name in sorted(params)]
        )
        params["Signature"] = hmac.new(
            self.secret.encode("utf-8"), string_to_sign.encode("utf-8"), hashlib.sha256
        ).hexdigest()
        return f"memory://{bucket}/{quote(key, safe='/')}?{urlencode(params)}"
