"""Sweeping of stale cached uploads.

Cached files live at ``<cache_dir>/<cache-id>/<filename>``. The sweeper
reads the creation time out of each key's cache id and deletes the
object once it is older than the allowed age. Keys without a parseable
cache id are left alone: deleting too much is worse than too little.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Union

from uploadstore.cache_id import parse_cache_id
from uploadstore.errors import UnparseableKeyError
from uploadstore.object_store import ObjectStoreClient

logger = logging.getLogger(__name__)

# 24 hours
DEFAULT_MAX_AGE = 86400


def _to_seconds(max_age: Union[int, float, timedelta]) -> float:
    if isinstance(max_age, timedelta):
        seconds = max_age.total_seconds()
    else:
        seconds = float(max_age)
    if seconds < 0:
        raise ValueError(f"max_age must be >= 0, got: {max_age}")
    return seconds


class CacheSweeper:
    """Delete cached objects by the age encoded in their keys.

    Attributes:
        client: Object store client
        bucket: Bucket holding the cache
        cache_dir: Cache key prefix (e.g. "uploads/tmp")
    """

    def __init__(
        self,
        client: ObjectStoreClient,
        bucket: str,
        cache_dir: str = "uploads/tmp",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.bucket = bucket
        self.cache_dir = cache_dir.strip("/")
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def prefix(self) -> str:
        return f"{self.cache_dir}/" if self.cache_dir else ""

    def cache_id_segment(self, key: str) -> str:
        """Return the path segment right under the cache directory.

        Raises:
            UnparseableKeyError: If the key is outside the cache directory
        """
        if not key.startswith(self.prefix):
            raise UnparseableKeyError("Key is outside the cache directory", key=key)
        return key[len(self.prefix):].split("/", 1)[0]

    def created_at(self, key: str) -> datetime:
        """Creation instant encoded in a cached key.

        Raises:
            UnparseableKeyError: If the key carries no cache id
        """
        return parse_cache_id(self.cache_id_segment(key))

    def sweep(
        self, max_age: Union[int, float, timedelta] = DEFAULT_MAX_AGE, dry_run: bool = False
    ) -> List[str]:
        """Delete cached objects older than max_age.

        Each key is judged on its own cache id, so files sharing a cache id
        directory are not grouped.

        Args:
            max_age: Allowed age in seconds or as a timedelta (0 removes all)
            dry_run: Only report what would be deleted

        Returns:
            Keys deleted (or that would be deleted on a dry run)

        Raises:
            ValueError: If max_age is negative
        """
        max_age_seconds = _to_seconds(max_age)
        now = self._clock()

        expired: List[str] = []
        keys = self.client.list_by_prefix(self.bucket, self.prefix)
        logger.info(f"Sweeping {len(keys)} cached objects older than {max_age_seconds:.0f}s")

        for key in keys:
            try:
                created = self.created_at(key)
            except UnparseableKeyError:
                logger.debug(f"Skipping {key}: no cache id")
                continue

            if (now - created).total_seconds() > max_age_seconds:
                if not dry_run:
                    self.client.delete(self.bucket, key)
                expired.append(key)

        logger.info(
            f"{'Would delete' if dry_run else 'Deleted'} {len(expired)} of {len(keys)} cached objects"
        )
        return expired
