"""Object store backends.

build_client picks the backend for a configured provider.
"""

from datetime import datetime
from typing import Callable, Optional

from uploadstore.config import StorageConfig
from uploadstore.object_store import ObjectStoreClient

# XML interoperability endpoint of Google Cloud Storage
GOOGLE_ENDPOINT = "https://storage.googleapis.com"


def build_client(
    config: StorageConfig, clock: Optional[Callable[[], datetime]] = None
) -> ObjectStoreClient:
    """Create the object store client for config.provider.

    Args:
        config: Storage configuration
        clock: Returns the current UTC instant (defaults to the system clock)

    Returns:
        ObjectStoreClient instance

    Raises:
        ValueError: If credentials are required and missing
    """
    if config.provider == "memory":
        from uploadstore.backends.memory import MemoryObjectStore

        return MemoryObjectStore(clock=clock)

    from uploadstore.backends.s3 import S3ObjectStore

    if config.provider == "google":
        return S3ObjectStore(
            endpoint_url=config.endpoint_url or GOOGLE_ENDPOINT,
            region=config.region or "auto",
            clock=clock,
        )
    return S3ObjectStore(
        endpoint_url=config.endpoint_url or None,
        region=config.region,
        clock=clock,
    )


__all__ = ["build_client"]
