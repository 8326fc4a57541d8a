"""Storage adapter for uploaded files.

ObjectStorage writes files to the cache and store namespaces of one
bucket and hands back RemoteFile handles bound to their keys. It owns
the bucket handle; every RemoteFile it creates refers back to it.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union

from uploadstore.backends import build_client
from uploadstore.cache_id import generate_cache_id
from uploadstore.cache_sweeper import DEFAULT_MAX_AGE, CacheSweeper
from uploadstore.config import StorageConfig
from uploadstore.local_file import LocalFile
from uploadstore.object_store import ObjectStoreClient
from uploadstore.remote_file import RemoteFile
from uploadstore.url_generator import UrlGenerator, url_generator_for

logger = logging.getLogger(__name__)


class ObjectStorage:
    """Cache, store and retrieve files in a remote bucket.

    Attributes:
        config: Uploader configuration
        client: Object store client shared by all files of this adapter
        url_generator: URL policy for config.provider
    """

    def __init__(
        self,
        config: StorageConfig,
        client: Optional[ObjectStoreClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the adapter.

        Args:
            config: Uploader configuration
            client: Object store client (built from config if None)
            clock: Returns the current UTC instant (defaults to the system clock)
        """
        self.config = config
        self.client = client if client is not None else build_client(config, clock=clock)
        self.url_generator: UrlGenerator = url_generator_for(config, self.client, clock=clock)
        self._clock = clock
        self._directory: Optional[str] = None
        self._directory_lock = threading.Lock()

    @property
    def directory(self) -> str:
        """Bucket name, creating the bucket on first use if it is missing."""
        name = self.config.directory
        if self._directory == name:
            return name
        with self._directory_lock:
            if self._directory != name:
                if not self.client.bucket_exists(name):
                    logger.info(f"Bucket {name} not found, creating it")
                    self.client.create_bucket(name, public=self.config.public)
                self._directory = name
        return name

    def cache(
        self, new_file: Union[LocalFile, RemoteFile], cache_name: Optional[str] = None
    ) -> RemoteFile:
        """Write a file under the cache directory.

        Args:
            new_file: File to cache
            cache_name: "<cache-id>/<filename>" (generated if None)

        Returns:
            RemoteFile bound to the cache key

        Raises:
            UploadError: If the write fails
        """
        if cache_name is None:
            cache_name = f"{generate_cache_id(self._now())}/{new_file.filename}"
        remote = RemoteFile(self, self.config.cache_path_for(cache_name))
        return remote.store(new_file)

    def store(
        self, new_file: Union[LocalFile, RemoteFile], identifier: Optional[str] = None
    ) -> RemoteFile:
        """Write a file under the store directory.

        Args:
            new_file: File to store; a RemoteFile in the same bucket is copied server-side
            identifier: Stored name (defaults to the file's filename)

        Returns:
            RemoteFile bound to the store key

        Raises:
            UploadError: If the write fails
        """
        if identifier is None:
            identifier = new_file.filename
        remote = RemoteFile(self, self.config.store_path_for(identifier))
        return remote.store(new_file)

    def retrieve(self, identifier: str) -> RemoteFile:
        """Bind a handle to a stored file without any network I/O."""
        return RemoteFile(self, self.config.store_path_for(identifier))

    def retrieve_from_cache(self, cache_name: str) -> RemoteFile:
        """Bind a handle to a cached file without any network I/O."""
        return RemoteFile(self, self.config.cache_path_for(cache_name))

    def delete_dir(self, path: str) -> None:
        """Object stores have no directories; nothing to delete."""
        pass

    def clean_cache(self, max_age: Union[int, float, timedelta] = DEFAULT_MAX_AGE) -> List[str]:
        """Delete cached files older than max_age.

        Returns:
            Keys that were deleted
        """
        return self.cache_sweeper().sweep(max_age)

    def cache_sweeper(self) -> CacheSweeper:
        return CacheSweeper(
            self.client, self.directory, cache_dir=self.config.cache_dir, clock=self._clock
        )

    def _now(self) -> Optional[datetime]:
        return self._clock() if self._clock else None
