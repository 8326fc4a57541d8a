"""Cache id generation and parsing.

A cache id is the path segment right under the cache directory of every
cached key, e.g. ``uploads/tmp/1700000000-4242-0007-0815/test.jpg``. It
leads with the unix timestamp of its creation, which is what lets stale
cached uploads be aged out. Two formats exist in the wild:

- legacy:  ``<unix-ts>-<pid>-<rand>``
- current: ``<unix-ts>-<pid>-<counter>-<rand>``, counter and rand zero-padded to 4 digits
"""

import itertools
import os
import random
import re
import threading
from datetime import datetime, timezone
from typing import Optional

from uploadstore.errors import UnparseableKeyError

LEGACY_CACHE_ID = re.compile(r"(?P<timestamp>\d+)-\d+-\d+")
CURRENT_CACHE_ID = re.compile(r"(?P<timestamp>\d+)-\d+-\d{4}-\d{4}")

# Tried in order; the first full match wins
CACHE_ID_FORMATS = (LEGACY_CACHE_ID, CURRENT_CACHE_ID)

_counter = itertools.count(1)
_counter_lock = threading.Lock()


def generate_cache_id(now: Optional[datetime] = None) -> str:
    """Generate a cache id in the current format.

    Args:
        now: Creation instant (defaults to the current time)

    Returns:
        Cache id like "1700000000-4242-0007-0815"
    """
    if now is None:
        now = datetime.now(timezone.utc)
    with _counter_lock:
        counter = next(_counter) % 10_000
    rand = random.randrange(10_000)
    return f"{int(now.timestamp())}-{os.getpid()}-{counter:04d}-{rand:04d}"


def parse_cache_id(segment: str) -> datetime:
    """Extract the creation instant from a cache id.

    Args:
        segment: Key path segment holding the cache id

    Returns:
        Timezone-aware UTC creation instant

    Raises:
        UnparseableKeyError: If the segment matches no known format
            or its timestamp is out of range
    """
    for pattern in CACHE_ID_FORMATS:
        match = pattern.fullmatch(segment)
        if match:
            try:
                return datetime.fromtimestamp(int(match.group("timestamp")), tz=timezone.utc)
            except (OverflowError, ValueError, OSError) as e:
                raise UnparseableKeyError(
                    f"Cache id timestamp out of range: {segment!r}", operation="parse_cache_id"
                ) from e
    raise UnparseableKeyError(f"Not a cache id: {segment!r}", operation="parse_cache_id")


def is_cache_id(segment: str) -> bool:
    """Return True if the segment parses as a cache id."""
    return any(pattern.fullmatch(segment) for pattern in CACHE_ID_FORMATS)
