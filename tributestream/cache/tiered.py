"""Tiered key-value cache with per-entry expiry.

Every write lands in the in-process map. Writes that name a durable tier are
also serialized to that tier on a best-effort basis: a failed durable write is
logged and the in-process value keeps serving reads for the rest of the
process lifetime. Expired entries read back from any tier are treated as
absent and purged from every tier.
"""

import logging
import time
from collections.abc import Callable, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from pydantic_core import PydanticSerializationError

from tributestream.cache.storage import EphemeralStorage, SessionStorage, StorageBackend, create_durable_tiers
from tributestream.core.constants import CacheConstants
from tributestream.models.cache import CacheEntry, CacheStats, StorageTier

if TYPE_CHECKING:
    from tributestream.config import Config

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

# Recovery order when the in-process map misses
_RECOVERY_ORDER = (StorageTier.DURABLE_B, StorageTier.DURABLE_A)


def wall_clock_ms() -> float:
    """Current wall-clock time in milliseconds."""
    return time.time() * 1000


class TieredCache:
    """Generic get/set/delete cache over an in-process map and durable tiers."""

    def __init__(
        self,
        durable_tiers: Mapping[StorageTier, StorageBackend] | None = None,
        default_ttl: int = CacheConstants.DEFAULT_TTL_MS,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            durable_tiers: Backends for ``durable-a``/``durable-b``
            default_ttl: TTL in milliseconds for writes that do not give one
            clock: Callable returning wall-clock milliseconds
        """
        self._memory = EphemeralStorage()
        self._tiers: dict[StorageTier, StorageBackend] = dict(durable_tiers or {})
        self.default_ttl = int(default_ttl)
        self._clock = clock or wall_clock_ms

    @classmethod
    def from_config(cls, config: "Config", clock: Clock | None = None) -> "TieredCache":
        """Create a cache with both durable tiers rooted at ``config.cache_dir``."""
        return cls(
            durable_tiers=create_durable_tiers(config.cache_dir),
            default_ttl=config.default_ttl_ms,
            clock=clock,
        )

    def __enter__(self) -> "TieredCache":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def now(self) -> float:
        """Current time according to the cache clock, in milliseconds."""
        return self._clock()

    def _durable_in_order(self) -> Iterator[StorageBackend]:
        for tier in _RECOVERY_ORDER:
            backend = self._tiers.get(tier)
            if backend is not None:
                yield backend

    def _persist(self, entry: CacheEntry) -> None:
        backend = self._tiers.get(entry.storage_tier)
        if backend is None:
            logger.warning(f"No {entry.storage_tier} tier configured, {entry.key} kept in memory only")
            return

        try:
            backend.write(entry.key, entry)
        except Exception as e:
            logger.error(f"Cache storage error for {entry.key} in {entry.storage_tier}: {e}")

    def _remove_from(self, backend: StorageBackend, key: str) -> None:
        try:
            backend.remove(key)
        except Exception as e:
            logger.error(f"Cache removal error for {key} in {backend.tier}: {e}")

    def _read_durable(self, backend: StorageBackend, key: str) -> CacheEntry | None:
        try:
            return backend.read(key)
        except Exception as e:
            logger.error(f"Cache recovery error for {key} in {backend.tier}: {e}")
            self._remove_from(backend, key)
            return None

    def _lookup(self, key: str, restore: bool) -> CacheEntry | None:
        """Find a live entry, purging it everywhere if it has expired."""
        entry = self._memory.read(key)
        recovered = False

        if entry is None:
            for backend in self._durable_in_order():
                entry = self._read_durable(backend, key)
                if entry is not None:
                    recovered = True
                    break

        if entry is None:
            return None

        if entry.is_expired(self.now()):
            logger.debug(f"Cache expired: {key}")
            self.delete(key)
            return None

        if recovered and restore:
            self._memory.write(key, entry)
            logger.debug(f"Cache recovered from {entry.storage_tier}: {key}")

        return entry

    def _keys_with_prefix(self, prefix: str) -> set[str]:
        keys = {key for key in self._memory.keys() if key.startswith(prefix)}
        for backend in self._tiers.values():
            try:
                keys.update(key for key in backend.keys() if key.startswith(prefix))
            except Exception as e:
                logger.error(f"Error listing keys in {backend.tier}: {e}")
        return keys

    def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
        storage_tier: StorageTier | str = StorageTier.EPHEMERAL,
    ) -> Any:
        """Store a value, resetting its timestamp.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in milliseconds (defaults to ``default_ttl``)
            storage_tier: Durable tier to mirror the entry to, if any

        Returns:
            The stored value
        """
        tier = StorageTier(storage_tier)
        entry = CacheEntry(
            key=key,
            value=value,
            timestamp=self.now(),
            ttl=self.default_ttl if ttl is None else ttl,
            storage_tier=tier,
        )

        self._memory.write(key, entry)
        logger.debug(f"Cache set: {key} ({tier}, ttl={entry.ttl}ms)")

        # A key lives in at most one durable tier
        for other_tier, backend in self._tiers.items():
            if other_tier != tier:
                self._remove_from(backend, key)

        if tier != StorageTier.EPHEMERAL:
            self._persist(entry)

        return value

    def get(self, key: str, default: Any = None) -> Any:
        """Get a cached value.

        Args:
            key: Cache key
            default: Returned when the key is absent or expired

        Returns:
            The cached value, or ``default`` if not found
        """
        entry = self._lookup(key, restore=True)
        if entry is None:
            logger.debug(f"Cache miss: {key}")
            return default

        logger.debug(f"Cache hit: {key}")
        return entry.value

    def has(self, key: str) -> bool:
        """Check if a key exists and has not expired."""
        return self._lookup(key, restore=False) is not None

    def delete(self, key: str) -> None:
        """Remove a key from every tier. Deleting a missing key is a no-op."""
        self._memory.remove(key)
        for backend in self._tiers.values():
            self._remove_from(backend, key)
        logger.debug(f"Cache removed: {key}")

    def scan(self, prefix: str) -> dict[str, Any]:
        """Collect every live value whose key starts with ``prefix``.

        In-process entries take precedence over durable copies of the same
        key. Expired entries encountered are purged.

        Args:
            prefix: Key prefix, usually from :func:`build_prefix`

        Returns:
            Mapping of key to value
        """
        found: dict[str, CacheEntry] = {}

        for backend in self._durable_in_order():
            try:
                keys = [key for key in backend.keys() if key.startswith(prefix)]
            except Exception as e:
                logger.error(f"Error listing keys in {backend.tier}: {e}")
                continue
            for key in keys:
                if key in found:
                    continue
                entry = self._read_durable(backend, key)
                if entry is not None:
                    found[key] = entry

        for key in self._memory.keys():
            if key.startswith(prefix):
                entry = self._memory.read(key)
                if entry is not None:
                    found[key] = entry

        now = self.now()
        results = {}
        for key, entry in found.items():
            if entry.is_expired(now):
                self.delete(key)
                continue
            results[key] = entry.value

        logger.debug(f"Cache scan for {prefix!r} found {len(results)} entries")
        return results

    def clear(self, prefix: str | None = None) -> None:
        """Clear cached data.

        Args:
            prefix: Only clear keys with this prefix; everything when omitted
        """
        if prefix is None:
            self._memory.clear()
            for backend in self._tiers.values():
                try:
                    backend.clear()
                except Exception as e:
                    logger.error(f"Error clearing {backend.tier}: {e}")
            logger.info("Cleared all cache tiers")
            return

        for key in self._keys_with_prefix(prefix):
            self.delete(key)
        logger.info(f"Cleared cache entries under {prefix!r}")

    def stats(self, prefix: str | None = None) -> CacheStats:
        """Get statistics for the in-process map.

        Args:
            prefix: Only count keys with this prefix

        Returns:
            Entry count, expired count and approximate serialized size
        """
        now = self.now()
        stats = CacheStats(timestamp=now)

        for key in self._memory.keys():
            if prefix and not key.startswith(prefix):
                continue
            entry = self._memory.read(key)
            if entry is None:
                continue

            stats.count += 1
            if entry.is_expired(now):
                stats.expired += 1

            try:
                stats.memory_size += len(entry.to_envelope().model_dump_json())
            except PydanticSerializationError:
                logger.debug(f"Skipping size of unserializable entry {key}")

        return stats

    def end_session(self) -> None:
        """End the browsing session, dropping everything held in ``durable-a``."""
        backend = self._tiers.get(StorageTier.DURABLE_A)
        if isinstance(backend, SessionStorage):
            backend.end_session()

        for key in self._memory.keys():
            entry = self._memory.read(key)
            if entry is not None and entry.storage_tier == StorageTier.DURABLE_A:
                self._memory.remove(key)

    def close(self) -> None:
        """Close every durable tier."""
        for backend in self._tiers.values():
            backend.close()
