from __future__ import annotations

import importlib
import logging
from pathlib import Path

import pytest

from tributestream.cache.storage import EphemeralStorage, StorageBackend, create_durable_tiers
from tributestream.cache.tiered import TieredCache
from tributestream.exceptions import CacheError
from tributestream.models.cache import CacheEntry, StorageTier


class BrokenStorage(StorageBackend):
    """Durable tier whose writes always fail, like a full quota."""

    tier = StorageTier.DURABLE_B

    def __init__(self) -> None:
        self.inner = EphemeralStorage()

    def read(self, key: str) -> CacheEntry | None:
        return self.inner.read(key)

    def write(self, key: str, entry: CacheEntry) -> None:
        raise OSError("quota exceeded")

    def remove(self, key: str) -> None:
        self.inner.remove(key)

    def keys(self) -> list[str]:
        return self.inner.keys()

    def clear(self) -> None:
        self.inner.clear()


def test_set_returns_value_and_get_reads_it(cache) -> None:
    assert cache.set("app:k", {"a": 1}, ttl=1000) == {"a": 1}
    assert cache.get("app:k") == {"a": 1}
    assert cache.has("app:k")


def test_missing_key_returns_default(cache) -> None:
    assert cache.get("app:missing") is None
    assert cache.get("app:missing", default="nope") == "nope"
    assert not cache.has("app:missing")


def test_entry_expires_after_ttl_and_is_purged_from_every_tier(cache, tiers, clock) -> None:
    cache.set("app:k", "v", ttl=1000, storage_tier=StorageTier.DURABLE_B)
    assert tiers[StorageTier.DURABLE_B].read("app:k") is not None

    clock.advance(1500)

    assert cache.get("app:k") is None
    assert tiers[StorageTier.DURABLE_B].read("app:k") is None
    assert tiers[StorageTier.DURABLE_A].read("app:k") is None
    assert cache.stats().count == 0


def test_entry_is_live_exactly_at_ttl(cache, clock) -> None:
    cache.set("app:k", "v", ttl=1000)
    clock.advance(1000)
    assert cache.get("app:k") == "v"
    clock.advance(1)
    assert cache.get("app:k") is None


def test_has_applies_expiry(cache, clock) -> None:
    cache.set("app:k", "v", ttl=10, storage_tier=StorageTier.DURABLE_A)
    clock.advance(11)
    assert not cache.has("app:k")


def test_overwrite_resets_timestamp(cache, clock) -> None:
    cache.set("app:k", "first", ttl=1000)
    clock.advance(800)
    cache.set("app:k", "second", ttl=1000)
    clock.advance(800)
    assert cache.get("app:k") == "second"


def test_default_ttl_applies_when_none_given(tiers, clock) -> None:
    cache = TieredCache(tiers, default_ttl=50, clock=clock)
    cache.set("app:k", "v")
    clock.advance(51)
    assert cache.get("app:k") is None


def test_durable_entry_survives_process_restart(cache_dir: Path, clock) -> None:
    with TieredCache(create_durable_tiers(cache_dir), clock=clock) as first:
        first.set("app:durable", [1, 2, 3], ttl=10_000, storage_tier=StorageTier.DURABLE_B)
        first.set("app:tab", "x", ttl=10_000, storage_tier=StorageTier.DURABLE_A)
        first.set("app:memory", "gone", ttl=10_000)

    with TieredCache(create_durable_tiers(cache_dir), clock=clock) as second:
        assert second.get("app:durable") == [1, 2, 3]
        assert second.get("app:tab") == "x"
        assert second.get("app:memory") is None


def test_expired_durable_entry_is_not_recovered(cache_dir: Path, clock) -> None:
    with TieredCache(create_durable_tiers(cache_dir), clock=clock) as first:
        first.set("app:k", "v", ttl=1000, storage_tier=StorageTier.DURABLE_B)

    clock.advance(2000)
    tiers = create_durable_tiers(cache_dir)
    with TieredCache(tiers, clock=clock) as second:
        assert second.get("app:k") is None
        assert tiers[StorageTier.DURABLE_B].read("app:k") is None


@pytest.mark.parametrize("tier", [StorageTier.DURABLE_A, StorageTier.DURABLE_B])
def test_recovered_entry_expires_after_restart(cache_dir: Path, clock, tier: StorageTier) -> None:
    with TieredCache(create_durable_tiers(cache_dir), clock=clock) as first:
        first.set("app:k", "v", ttl=1000, storage_tier=tier)

    tiers = create_durable_tiers(cache_dir)
    with TieredCache(tiers, clock=clock) as second:
        clock.advance(1000)
        assert second.has("app:k")
        clock.advance(1)
        assert not second.has("app:k")
        assert second.get("app:k") is None
        assert tiers[tier].read("app:k") is None


def test_package_imports_cleanly() -> None:
    module = importlib.import_module("tributestream.cache")
    assert {"set", "get", "scan", "_keys_with_prefix"} <= set(vars(module.TieredCache))


def test_failed_persistence_keeps_in_process_value(clock, caplog) -> None:
    cache = TieredCache({StorageTier.DURABLE_B: BrokenStorage()}, clock=clock)

    with caplog.at_level(logging.ERROR, logger="tributestream.cache.tiered"):
        assert cache.set("app:k", "v", ttl=1000, storage_tier=StorageTier.DURABLE_B) == "v"

    assert cache.get("app:k") == "v"
    assert "quota exceeded" in caplog.text


def test_unserializable_value_stays_in_memory(cache, tiers) -> None:
    value = object()
    assert cache.set("app:k", value, ttl=1000, storage_tier=StorageTier.DURABLE_B) is value
    assert cache.get("app:k") is value
    assert tiers[StorageTier.DURABLE_B].read("app:k") is None


def test_corrupt_durable_entry_reads_as_absent(cache, tiers) -> None:
    tiers[StorageTier.DURABLE_B].cache.set("app:k", "{not json")
    with pytest.raises(CacheError):
        tiers[StorageTier.DURABLE_B].read("app:k")

    assert cache.get("app:k") is None
    assert "app:k" not in tiers[StorageTier.DURABLE_B].keys()


def test_delete_is_idempotent_and_clears_all_tiers(cache, tiers) -> None:
    cache.set("app:k", "v", ttl=1000, storage_tier=StorageTier.DURABLE_A)
    cache.delete("app:k")
    cache.delete("app:k")
    assert cache.get("app:k") is None
    assert tiers[StorageTier.DURABLE_A].read("app:k") is None


def test_switching_tier_removes_old_durable_copy(cache, tiers) -> None:
    cache.set("app:k", "v1", ttl=1000, storage_tier=StorageTier.DURABLE_A)
    cache.set("app:k", "v2", ttl=1000, storage_tier=StorageTier.DURABLE_B)
    assert tiers[StorageTier.DURABLE_A].read("app:k") is None
    assert tiers[StorageTier.DURABLE_B].read("app:k").value == "v2"


def test_last_writer_wins_across_instances(cache_dir: Path, clock) -> None:
    tab_a = TieredCache(create_durable_tiers(cache_dir), clock=clock)
    tab_b = TieredCache(create_durable_tiers(cache_dir), clock=clock)

    tab_a.set("app:k", {"from": "a"}, ttl=10_000, storage_tier=StorageTier.DURABLE_B)
    clock.advance(5)
    tab_b.set("app:k", {"from": "b"}, ttl=10_000, storage_tier=StorageTier.DURABLE_B)
    tab_a.close()
    tab_b.close()

    with TieredCache(create_durable_tiers(cache_dir), clock=clock) as reader:
        assert reader.get("app:k") == {"from": "b"}


def test_scan_returns_live_entries_under_prefix(cache, clock) -> None:
    cache.set("ns:u1:session:a", 1, ttl=1000, storage_tier=StorageTier.DURABLE_B)
    cache.set("ns:u1:session:b", 2, ttl=100)
    cache.set("ns:u2:session:c", 3, ttl=1000, storage_tier=StorageTier.DURABLE_B)

    assert cache.scan("ns:u1:") == {"ns:u1:session:a": 1, "ns:u1:session:b": 2}

    clock.advance(500)
    assert cache.scan("ns:u1:") == {"ns:u1:session:a": 1}
    assert not cache.has("ns:u1:session:b")


def test_scan_prefers_in_process_entry(cache, tiers) -> None:
    cache.set("ns:k", "fresh", ttl=1000)
    # another tab wrote the same key to the shared durable tier
    tiers[StorageTier.DURABLE_B].write("ns:k", CacheEntry(key="ns:k", value="stale", timestamp=cache.now(), ttl=1000))

    assert cache.scan("ns:") == {"ns:k": "fresh"}


def test_clear_with_prefix_only_touches_matching_keys(cache) -> None:
    cache.set("a:1", 1, ttl=1000, storage_tier=StorageTier.DURABLE_B)
    cache.set("b:1", 2, ttl=1000, storage_tier=StorageTier.DURABLE_B)

    cache.clear("a:")

    assert cache.get("a:1") is None
    assert cache.get("b:1") == 2

    cache.clear()
    assert cache.get("b:1") is None


def test_stats_counts_entries_and_expired(cache, clock) -> None:
    cache.set("app:a", "x", ttl=100)
    cache.set("app:b", "y", ttl=10_000)
    cache.set("other:c", "z", ttl=10_000)
    clock.advance(200)

    stats = cache.stats(prefix="app:")

    assert stats.count == 2
    assert stats.expired == 1
    assert stats.memory_size > 0
    assert stats.timestamp == clock.now


def test_end_session_drops_durable_a_only(cache, tiers) -> None:
    cache.set("app:tab", "t", ttl=1000, storage_tier=StorageTier.DURABLE_A)
    cache.set("app:local", "l", ttl=1000, storage_tier=StorageTier.DURABLE_B)

    cache.end_session()

    assert cache.get("app:tab") is None
    assert cache.get("app:local") == "l"
    assert tiers[StorageTier.DURABLE_A].keys() == []
