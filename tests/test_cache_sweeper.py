"""Tests for CacheSweeper."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from uploadstore.cache_id import generate_cache_id
from uploadstore.cache_sweeper import CacheSweeper
from uploadstore.errors import UnparseableKeyError


@pytest.fixture
def sweeper(memory_store, clock):
    memory_store.create_bucket("cache-bucket")
    return CacheSweeper(memory_store, "cache-bucket", cache_dir="uploads/tmp", clock=clock)


def put_cached(memory_store, created, filename="test.jpg"):
    key = f"uploads/tmp/{generate_cache_id(created)}/{filename}"
    memory_store.put("cache-bucket", key, b"A test, 1234")
    return key


class TestCreatedAt:
    """Tests for reading the creation instant out of a key."""

    def test_reads_cache_id_segment(self, sweeper, clock):
        key = f"uploads/tmp/{generate_cache_id(clock())}/test.jpg"
        assert sweeper.created_at(key) == clock().replace(microsecond=0)

    def test_key_outside_cache_dir(self, sweeper):
        with pytest.raises(UnparseableKeyError):
            sweeper.created_at("uploads/test.jpg")

    def test_filename_is_not_a_cache_id(self, sweeper):
        with pytest.raises(UnparseableKeyError):
            sweeper.created_at("uploads/tmp/1714564800-100-1234.jpg")


class TestSweep:
    """Tests for CacheSweeper.sweep."""

    def test_deletes_only_expired(self, sweeper, memory_store, clock):
        old = put_cached(memory_store, clock() - timedelta(hours=25))
        fresh = put_cached(memory_store, clock() - timedelta(hours=1))

        assert sweeper.sweep() == [old]
        assert memory_store.list_by_prefix("cache-bucket", "uploads/tmp/") == [fresh]

    def test_age_equal_to_threshold_is_kept(self, sweeper, memory_store, clock):
        put_cached(memory_store, clock() - timedelta(seconds=100))
        assert sweeper.sweep(100) == []

    def test_zero_deletes_everything_parseable(self, sweeper, memory_store, clock):
        put_cached(memory_store, clock() - timedelta(seconds=1))
        memory_store.put("cache-bucket", "uploads/tmp/invalid", b"x")
        memory_store.put("cache-bucket", "uploads/tmp/invalid/test.jpg", b"x")

        assert len(sweeper.sweep(0)) == 1
        assert memory_store.list_by_prefix("cache-bucket", "uploads/tmp/") == [
            "uploads/tmp/invalid",
            "uploads/tmp/invalid/test.jpg",
        ]

    def test_keys_sharing_a_cache_id_are_judged_per_key(self, sweeper, memory_store, clock):
        cache_id = generate_cache_id(clock() - timedelta(days=2))
        keys = [f"uploads/tmp/{cache_id}/{name}" for name in ("a.jpg", "b.jpg")]
        for key in keys:
            memory_store.put("cache-bucket", key, b"x")

        assert sorted(sweeper.sweep()) == keys

    def test_dry_run_deletes_nothing(self, sweeper, memory_store, clock):
        old = put_cached(memory_store, clock() - timedelta(days=5))

        with patch.object(memory_store, "delete") as delete:
            assert sweeper.sweep(0, dry_run=True) == [old]

        delete.assert_not_called()

    def test_ignores_other_prefixes(self, sweeper, memory_store, clock):
        memory_store.put("cache-bucket", f"uploads/{generate_cache_id(clock() - timedelta(days=5))}/x.jpg", b"x")
        assert sweeper.sweep(0) == []

    def test_negative_age_raises(self, sweeper):
        with pytest.raises(ValueError):
            sweeper.sweep(-1)

    def test_empty_cache(self, sweeper):
        assert sweeper.sweep() == []

    def test_skips_out_of_range_timestamp(self, sweeper, memory_store, clock):
        """A key with an unrepresentable timestamp is kept and the sweep goes on."""
        stale = put_cached(memory_store, clock() - timedelta(days=5))
        memory_store.put("cache-bucket", "uploads/tmp/99999999999999999999-1-1/test.jpg", b"x")

        assert sweeper.sweep(0) == [stale]
        assert memory_store.list_by_prefix("cache-bucket", "uploads/tmp/") == [
            "uploads/tmp/99999999999999999999-1-1/test.jpg"
        ]
