"""Tests for ObjectStorage.

Runs the cache/store/retrieve flows against the in-memory object store.
"""

import io
from datetime import timedelta
from unittest.mock import patch

import pytest

from uploadstore.cache_id import generate_cache_id, is_cache_id
from uploadstore.config import StorageConfig
from uploadstore.local_file import LocalFile
from uploadstore.remote_file import FileState, RemoteFile
from uploadstore.storage import ObjectStorage


@pytest.fixture(params=["bytes", "stream", "path", "explicit_type", "remote"])
def source_file(request, storage, tmp_path):
    """The same 13-byte JPEG, supplied in each supported form."""
    kind = request.param
    if kind == "bytes":
        return LocalFile.from_bytes(b"this is stuff", "test.jpg", content_type="image/jpeg")
    if kind == "stream":
        return LocalFile.from_stream(io.BytesIO(b"this is stuff"), "test.jpg", content_type="image/jpeg")
    if kind == "path":
        path = tmp_path / "test.jpg"
        path.write_bytes(b"this is stuff")
        return LocalFile.from_path(path)
    if kind == "explicit_type":
        path = tmp_path / "test.jpg"
        path.write_bytes(b"this is stuff")
        return LocalFile.from_path(path, content_type="image/jpg")
    remote = RemoteFile(storage, "test.jpg")
    return remote.store(LocalFile.from_bytes(b"this is stuff", "test.jpg", content_type="image/jpeg"))


class TestDirectory:
    """Tests for lazy bucket resolution."""

    def test_creates_missing_bucket_once(self, config, memory_store, clock):
        """The bucket is created on first use, then reused."""
        storage = ObjectStorage(config, client=memory_store, clock=clock)
        assert not memory_store.bucket_exists("uploadstore-test")

        with patch.object(memory_store, "create_bucket", wraps=memory_store.create_bucket) as create:
            assert storage.directory == "uploadstore-test"
            assert storage.directory == "uploadstore-test"

        create.assert_called_once_with("uploadstore-test", public=True)
        assert memory_store.bucket_exists("uploadstore-test")

    def test_existing_bucket_is_not_recreated(self, config, memory_store, clock):
        """An existing bucket is used as is."""
        memory_store.create_bucket("uploadstore-test")
        storage = ObjectStorage(config, client=memory_store, clock=clock)

        with patch.object(memory_store, "create_bucket") as create:
            storage.directory

        create.assert_not_called()

    def test_builds_client_from_config(self, clock):
        """Without an explicit client the provider's backend is built."""
        storage = ObjectStorage(StorageConfig(provider="memory"), clock=clock)
        assert type(storage.client).__name__ == "MemoryObjectStore"


class TestCache:
    """Tests for ObjectStorage.cache."""

    def test_uploads_the_file(self, storage, bucket, memory_store, jpeg_file):
        """The body lands at the cache key."""
        storage.cache(jpeg_file, "1714564800-42-0001-0001/test.jpg")

        body, _ = memory_store.get(bucket, "uploads/tmp/1714564800-42-0001-0001/test.jpg")
        assert body == b"this is stuff"

    def test_preserves_content_type(self, storage, jpeg_file):
        """The returned handle reports the source content type."""
        remote = storage.cache(jpeg_file, "1714564800-42-0001-0001/test.jpg")
        assert remote.content_type == jpeg_file.content_type

    def test_generates_cache_name(self, storage, jpeg_file, clock):
        """Without a cache name the key gets a fresh cache id segment."""
        remote = storage.cache(jpeg_file)

        prefix, cache_id, filename = remote.path.rsplit("/", 2)
        assert prefix == "uploads/tmp"
        assert filename == "test.jpg"
        assert is_cache_id(cache_id)
        assert cache_id.startswith(f"{int(clock().timestamp())}-")

    def test_caches_a_stored_file(self, storage, bucket, memory_store, jpeg_file):
        """A stored file is re-cached with a server-side copy."""
        stored = storage.store(jpeg_file)

        with patch.object(memory_store, "copy", wraps=memory_store.copy) as copy:
            cached = storage.cache(stored, "1714564800-42-0001-0001/test.jpg")

        copy.assert_called_once()
        assert cached.read() == b"this is stuff"
        assert cached.to_local_file().read() == b"this is stuff"


class TestStore:
    """Tests for ObjectStorage.store, for every kind of source."""

    def test_reads_back_the_body(self, storage, bucket, memory_store, source_file):
        """The handle reads the written bytes; the store holds them too."""
        remote = storage.store(source_file)

        assert remote.read() == b"this is stuff"
        body, _ = memory_store.get(bucket, "uploads/test.jpg")
        assert body == b"this is stuff"

    def test_fresh_retrieve_reads_the_body(self, storage, source_file):
        """A new handle for the same identifier sees the same bytes."""
        storage.store(source_file)
        assert storage.retrieve("test.jpg").read() == b"this is stuff"

    def test_has_a_path(self, storage, source_file):
        remote = storage.store(source_file)
        assert remote.path == "uploads/test.jpg"

    def test_has_a_content_type(self, storage, bucket, memory_store, source_file):
        """Content type matches the source on the handle and in the store."""
        expected = source_file.content_type
        remote = storage.store(source_file)

        assert remote.content_type == expected
        assert memory_store.head(bucket, "uploads/test.jpg").content_type == expected

    def test_has_an_extension(self, storage, source_file):
        remote = storage.store(source_file)
        assert remote.extension == "jpg"

    def test_has_no_extension_without_dot(self, storage, source_file):
        """A key without a dot suffix has an empty extension."""
        remote = storage.store(source_file, "test")
        assert remote.path == "uploads/test"
        assert remote.extension == ""

    def test_returns_filesize(self, storage, source_file):
        remote = storage.store(source_file)
        assert remote.size == 13

    def test_is_deletable(self, storage, bucket, memory_store, source_file):
        remote = storage.store(source_file)
        remote.delete()
        assert memory_store.head(bucket, "uploads/test.jpg") is None


class TestStoreAfterDelete:
    """Reads on a deleted file degrade instead of raising."""

    @pytest.fixture
    def deleted(self, storage, jpeg_file):
        remote = storage.store(jpeg_file)
        remote.delete()
        return remote

    def test_size_does_not_raise(self, deleted):
        assert deleted.size is None

    def test_content_type_does_not_raise(self, deleted):
        assert deleted.content_type is None

    def test_content_type_is_not_false(self, deleted):
        assert deleted.content_type is not False

    def test_exists_is_false(self, deleted):
        assert deleted.exists() is False

    def test_state_is_deleted(self, deleted):
        assert deleted.state == FileState.DELETED


class TestStoreAcl:
    """Tests for the ACL objects are written with."""

    def test_public_files_are_public_read(self, storage, bucket, memory_store, jpeg_file):
        storage.store(jpeg_file)
        assert memory_store.acl_for(bucket, "uploads/test.jpg") == "public-read"

    def test_private_files_are_private(self, storage, bucket, memory_store, config, jpeg_file):
        config.public = False
        storage.store(jpeg_file)
        assert memory_store.acl_for(bucket, "uploads/test.jpg") == "private"

    def test_custom_attributes_are_written(self, storage, bucket, memory_store, config, jpeg_file):
        config.attributes = {"x-amz-server-side-encryption": "AES256"}
        storage.store(jpeg_file)
        assert memory_store.attributes_for(bucket, "uploads/test.jpg") == {
            "x-amz-server-side-encryption": "AES256"
        }


class TestRetrieve:
    """Tests for ObjectStorage.retrieve and retrieve_from_cache."""

    @pytest.fixture
    def existing(self, bucket, memory_store):
        memory_store.put(bucket, "uploads/test1714564800.jpg", b"A test, 1234\n", "image/jpeg", "public-read")
        return "test1714564800.jpg"

    def test_binds_without_network_io(self, storage, memory_store, existing):
        """Retrieving only binds a handle; nothing is fetched."""
        with patch.object(memory_store, "get") as get, patch.object(memory_store, "head") as head:
            remote = storage.retrieve(existing)

        get.assert_not_called()
        head.assert_not_called()
        assert remote.state == FileState.BOUND

    def test_retrieves_contents(self, storage, existing):
        assert storage.retrieve(existing).read().rstrip(b"\n") == b"A test, 1234"

    def test_has_a_path(self, storage, existing):
        assert storage.retrieve(existing).path == f"uploads/{existing}"

    def test_has_a_public_url(self, storage, existing):
        assert storage.retrieve(existing).public_url() is not None

    def test_returns_filesize(self, storage, existing):
        assert storage.retrieve(existing).size == 13

    def test_is_deletable(self, storage, bucket, memory_store, existing):
        storage.retrieve(existing).delete()
        assert memory_store.head(bucket, f"uploads/{existing}") is None

    def test_missing_file_reads_as_absent(self, storage, bucket):
        """Metadata of a never-written key degrades to None/False."""
        remote = storage.retrieve("missing.jpg")

        assert remote.size is None
        assert remote.content_type is None
        assert remote.exists() is False
        assert remote.state == FileState.NOT_FOUND

    def test_retrieves_from_cache(self, storage, bucket, memory_store):
        memory_store.put(bucket, "uploads/tmp/1714564800-42-0001-0001/test.jpg", b"A test, 1234\n")
        remote = storage.retrieve_from_cache("1714564800-42-0001-0001/test.jpg")
        assert remote.read().rstrip(b"\n") == b"A test, 1234"


class TestDeleteDir:
    """Tests for ObjectStorage.delete_dir."""

    def test_does_nothing(self, storage):
        storage.delete_dir("foobar")


class TestCleanCache:
    """Tests for ObjectStorage.clean_cache."""

    @pytest.fixture(autouse=True)
    def cached_files(self, bucket, memory_store, clock):
        """Cached files created 5 days, 3 days, 1 day and 1 minute ago."""
        now = clock()
        for created in (
            now - timedelta(days=5),
            now - timedelta(days=3),
            now - timedelta(days=1),
            now - timedelta(minutes=1),
        ):
            key = f"uploads/tmp/{generate_cache_id(created)}/test.jpg"
            memory_store.put(bucket, key, b"A test, 1234", "image/jpeg", "public-read")

    def remaining(self, memory_store, bucket):
        return memory_store.list_by_prefix(bucket, "uploads/tmp")

    def test_clears_everything_older_than_now(self, storage, bucket, memory_store):
        storage.clean_cache(0)
        assert len(self.remaining(memory_store, bucket)) == 0

    def test_clears_files_older_than_a_day_by_default(self, storage, bucket, memory_store):
        storage.clean_cache()
        assert len(self.remaining(memory_store, bucket)) == 2

    def test_accepts_custom_age(self, storage, bucket, memory_store):
        storage.clean_cache(timedelta(days=4))
        assert len(self.remaining(memory_store, bucket)) == 3

    def test_accepts_age_in_seconds(self, storage, bucket, memory_store):
        storage.clean_cache(4 * 24 * 60 * 60)
        assert len(self.remaining(memory_store, bucket)) == 3

    def test_cleans_legacy_cache_ids(self, storage, bucket, memory_store, clock):
        yesterday = int((clock() - timedelta(days=1)).timestamp())
        memory_store.put(bucket, f"uploads/tmp/{yesterday}-100-1234/test.jpg", b"A test, 1234")

        storage.clean_cache(0)
        assert len(self.remaining(memory_store, bucket)) == 0

    def test_ignores_keys_without_cache_id(self, storage, bucket, memory_store):
        memory_store.put(bucket, "uploads/tmp/invalid", b"A test, 1234")

        storage.clean_cache(0)
        assert self.remaining(memory_store, bucket) == ["uploads/tmp/invalid"]
