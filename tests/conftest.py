"""Shared fixtures for uploadstore tests."""

from datetime import datetime, timedelta, timezone

import pytest

from uploadstore.backends.memory import MemoryObjectStore
from uploadstore.config import StorageConfig
from uploadstore.local_file import LocalFile
from uploadstore.storage import ObjectStorage

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock returning a fixed, movable UTC instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock frozen at NOW."""
    return FrozenClock(NOW)


@pytest.fixture
def config():
    """Public AWS-style configuration."""
    return StorageConfig(provider="aws", directory="uploadstore-test")


@pytest.fixture
def memory_store(clock):
    """In-memory object store sharing the frozen clock."""
    return MemoryObjectStore(secret="test-secret", clock=clock)


@pytest.fixture
def storage(config, memory_store, clock):
    """ObjectStorage over the in-memory store."""
    return ObjectStorage(config, client=memory_store, clock=clock)


@pytest.fixture
def bucket(storage):
    """Name of the (created) test bucket."""
    return storage.directory


@pytest.fixture
def jpeg_file():
    """13-byte JPEG upload."""
    return LocalFile.from_bytes(b"this is stuff", "test.jpg", content_type="image/jpeg")
