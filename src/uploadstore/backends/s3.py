"""S3 object store backed by boto3.

Serves AWS S3 directly and any S3-compatible API (Cloudflare R2, MinIO,
Google Cloud Storage through its XML interoperability endpoint) through
``endpoint_url``. Credentials are read from environment variables so
they never appear in config files.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, ParamValidationError

from uploadstore.errors import NotFoundError, SignatureError, StorageError, UploadError
from uploadstore.object_store import (
    PREDEFINED_ACLS,
    PRIVATE,
    PUBLIC_READ,
    ObjectMetadata,
    ObjectStoreClient,
)

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound", "NoSuchBucket"}

# Object attribute header -> put_object/copy_object parameter
ATTRIBUTE_PARAMS = {
    "content-type": "ContentType",
    "cache-control": "CacheControl",
    "content-disposition": "ContentDisposition",
    "content-encoding": "ContentEncoding",
    "content-language": "ContentLanguage",
    "x-amz-acl": "ACL",
    "x-amz-server-side-encryption": "ServerSideEncryption",
    "x-amz-server-side-encryption-aws-kms-key-id": "SSEKMSKeyId",
    "x-amz-storage-class": "StorageClass",
}

# Signed URL query parameter -> get_object parameter
QUERY_PARAMS = {
    "response-content-type": "ResponseContentType",
    "response-content-language": "ResponseContentLanguage",
    "response-content-disposition": "ResponseContentDisposition",
    "response-content-encoding": "ResponseContentEncoding",
    "response-cache-control": "ResponseCacheControl",
    "response-expires": "ResponseExpires",
    "versionId": "VersionId",
}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def attributes_to_params(attributes: Optional[Mapping[str, str]], key: str = "") -> Dict[str, Any]:
    """Translate object attribute headers into boto3 call parameters.

    Args:
        attributes: Header-style attributes (e.g. {"x-amz-acl": "public-read"})
        key: Object key, for error messages

    Returns:
        Keyword arguments for put_object/copy_object

    Raises:
        UploadError: If an attribute has no S3 equivalent
    """
    params: Dict[str, Any] = {}
    metadata: Dict[str, str] = {}

    for name, value in (attributes or {}).items():
        lowered = name.lower()
        if lowered in ATTRIBUTE_PARAMS:
            params[ATTRIBUTE_PARAMS[lowered]] = value
        elif name == "destination_predefined_acl":
            if value not in PREDEFINED_ACLS:
                raise UploadError(f"Unknown predefined ACL: {value}", key=key, operation="copy")
            params["ACL"] = PREDEFINED_ACLS[value]
        elif lowered.startswith("x-amz-meta-"):
            metadata[name[len("x-amz-meta-"):]] = value
        else:
            raise UploadError(f"Unsupported object attribute: {name}", key=key)

    if metadata:
        params["Metadata"] = metadata
    return params


class S3ObjectStore(ObjectStoreClient):
    """Object store client for S3 and S3-compatible APIs.

    Credentials are read from environment variables at construction time:
        UPLOADSTORE_ACCESS_KEY_ID
        UPLOADSTORE_SECRET_ACCESS_KEY

    Attributes:
        endpoint_url: Custom endpoint (None for AWS)
        region: Region the client signs for
    """

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the S3 client.

        Args:
            endpoint_url: Custom endpoint URL (None for AWS)
            region: Region name (defaults to us-east-1)
            clock: Returns the current UTC instant (used for URL lifetimes)

        Raises:
            ValueError: If either credential environment variable is unset
        """
        self.endpoint_url = endpoint_url or None
        self.region = region or DEFAULT_REGION
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        access_key = os.environ.get("UPLOADSTORE_ACCESS_KEY_ID")
        secret_key = os.environ.get("UPLOADSTORE_SECRET_ACCESS_KEY")

        if not access_key or not secret_key:
            raise ValueError(
                "Storage credentials not set. "
                "Set UPLOADSTORE_ACCESS_KEY_ID and UPLOADSTORE_SECRET_ACCESS_KEY environment variables."
            )

        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=self.region,
            config=Config(signature_version="s3v4"),
        )

    def bucket_exists(self, bucket: str) -> bool:
        try:
            self._client.head_bucket(Bucket=bucket)
            return True
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise StorageError(f"Failed to check bucket: {e}", operation="head_bucket") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to check bucket: {e}", operation="head_bucket") from e

    def create_bucket(self, bucket: str, public: bool = False) -> None:
        params: Dict[str, Any] = {"Bucket": bucket}
        if public:
            params["ACL"] = PUBLIC_READ
        if self.region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self._client.create_bucket(**params)
        except ClientError as e:
            if _error_code(e) == "BucketAlreadyOwnedByYou":
                return
            raise StorageError(f"Failed to create bucket {bucket}: {e}", operation="create_bucket") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to create bucket {bucket}: {e}", operation="create_bucket") from e
        logger.info(f"Created bucket {bucket} (public={public})")

    def put(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
        acl: str = PRIVATE,
        attributes: Optional[Mapping[str, str]] = None,
    ) -> ObjectMetadata:
        # Custom attributes win over the canned ACL, as they do on copy
        params: Dict[str, Any] = {"ACL": acl}
        params.update(attributes_to_params(attributes, key))
        params.update(Bucket=bucket, Key=key, Body=body)
        if content_type:
            params["ContentType"] = content_type
        try:
            response = self._client.put_object(**params)
        except (ClientError, BotoCoreError) as e:
            raise UploadError(f"Upload failed: {e}", key=key, operation="put") from e

        return ObjectMetadata(
            key=key,
            size=len(body),
            content_type=content_type,
            etag=response.get("ETag", "").strip('"') or None,
        )

    def get(self, bucket: str, key: str) -> Tuple[bytes, ObjectMetadata]:
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
            body = response["Body"].read()
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                raise NotFoundError("No such key", key=key, operation="get") from e
            raise StorageError(f"Download failed: {e}", key=key, operation="get") from e
        except BotoCoreError as e:
            raise StorageError(f"Download failed: {e}", key=key, operation="get") from e

        return body, self._metadata(key, response, len(body))

    def head(self, bucket: str, key: str) -> Optional[ObjectMetadata]:
        try:
            response = self._client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return None
            raise StorageError(f"Head failed: {e}", key=key, operation="head") from e
        except BotoCoreError as e:
            raise StorageError(f"Head failed: {e}", key=key, operation="head") from e
        return self._metadata(key, response, response.get("ContentLength", 0))

    def delete(self, bucket: str, key: str) -> None:
        try:
            self._client.delete_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return
            raise StorageError(f"Delete failed: {e}", key=key, operation="delete") from e
        except BotoCoreError as e:
            raise StorageError(f"Delete failed: {e}", key=key, operation="delete") from e

    def copy(
        self,
        bucket: str,
        source_key: str,
        dest_key: str,
        attributes: Optional[Mapping[str, str]] = None,
    ) -> None:
        params = attributes_to_params(attributes, dest_key)
        if "ContentType" in params or "Metadata" in params:
            params["MetadataDirective"] = "REPLACE"
        try:
            self._client.copy_object(
                Bucket=bucket,
                Key=dest_key,
                CopySource={"Bucket": bucket, "Key": source_key},
                **params,
            )
        except (ClientError, BotoCoreError) as e:
            raise UploadError(f"Copy from {source_key} failed: {e}", key=dest_key, operation="copy") from e

    def list_by_prefix(self, bucket: str, prefix: str) -> List[str]:
        keys: List[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                keys.extend(item["Key"] for item in page.get("Contents", []))
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Listing failed: {e}", key=prefix, operation="list") from e
        return keys

    def sign(
        self,
        bucket: str,
        key: str,
        expires_at: datetime,
        query: Optional[Dict[str, str]] = None,
    ) -> str:
        if expires_at.tzinfo is None:
            raise SignatureError("expires_at must be timezone-aware", key=key, operation="sign")

        # Absolute instant difference, so a DST change in local time cannot skew it
        expires_in = round((expires_at - self._clock()).total_seconds())
        if expires_in <= 0:
            raise SignatureError("expires_at is in the past", key=key, operation="sign")

        params: Dict[str, Any] = {"Bucket": bucket, "Key": key}
        for name, value in (query or {}).items():
            if name not in QUERY_PARAMS:
                raise SignatureError(f"Unsupported query parameter: {name}", key=key, operation="sign")
            params[QUERY_PARAMS[name]] = value

        try:
            return self._client.generate_presigned_url(
                "get_object", Params=params, ExpiresIn=expires_in
            )
        except (ClientError, ParamValidationError) as e:
            raise SignatureError(f"Signing failed: {e}", key=key, operation="sign") from e

    @staticmethod
    def _metadata(key: str, response: Dict[str, Any], size: int) -> ObjectMetadata:
        return ObjectMetadata(
            key=key,
            size=size,
            content_type=response.get("ContentType"),
            etag=response.get("ETag", "").strip('"') or None,
            last_modified=response.get("LastModified"),
        )
