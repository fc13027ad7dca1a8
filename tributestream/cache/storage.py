"""Storage tiers the tiered cache delegates to."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from diskcache import Cache
from pydantic import ValidationError as PydanticValidationError

from tributestream.core.constants import StorageDirs
from tributestream.exceptions import CacheError
from tributestream.models.cache import CacheEntry, CacheEnvelope, StorageTier

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Abstract base class for a storage tier."""

    tier: StorageTier

    @abstractmethod
    def read(self, key: str) -> CacheEntry | None:
        """Read an entry.

        Args:
            key: Cache key

        Returns:
            The stored entry or None if not present
        """

    @abstractmethod
    def write(self, key: str, entry: CacheEntry) -> None:
        """Write an entry, replacing any existing one.

        Args:
            key: Cache key
            entry: Entry to store
        """

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove an entry if present."""

    @abstractmethod
    def keys(self) -> list[str]:
        """List every stored key."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""

    def close(self) -> None:
        """Release any held resources."""


class EphemeralStorage(StorageBackend):
    """In-process map, lost when the process exits."""

    tier = StorageTier.EPHEMERAL

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def read(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def write(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class DiskStorage(StorageBackend):
    """Durable tier persisting JSON envelopes with DiskCache."""

    def __init__(self, directory: Path) -> None:
        """Initialize the tier.

        Args:
            directory: Directory holding this tier's DiskCache files
        """
        directory.mkdir(parents=True, exist_ok=True)
        self.directory = directory
        self.cache = Cache(str(directory))

        logger.debug(f"Initialized {self.tier} storage at {directory}")

    def read(self, key: str) -> CacheEntry | None:
        raw = self.cache.get(key)
        if raw is None:
            return None
        try:
            envelope = CacheEnvelope.model_validate_json(raw)
        except PydanticValidationError as e:
            raise CacheError(f"Corrupt {self.tier} entry for {key}", {"key": key}) from e
        return CacheEntry.from_envelope(key, envelope, self.tier)

    def write(self, key: str, entry: CacheEntry) -> None:
        self.cache.set(key, entry.to_envelope().model_dump_json())

    def remove(self, key: str) -> None:
        self.cache.delete(key)

    def keys(self) -> list[str]:
        return [key for key in self.cache.iterkeys() if isinstance(key, str)]

    def clear(self) -> None:
        self.cache.clear()

    def close(self) -> None:
        self.cache.close()


class SessionStorage(DiskStorage):
    """Durable tier that lives until the browsing session ends."""

    tier = StorageTier.DURABLE_A

    def end_session(self) -> None:
        """Drop everything written during the session."""
        self.clear()
        logger.info(f"Ended storage session at {self.directory}")


class LocalStorage(DiskStorage):
    """Durable tier that lives until explicitly cleared."""

    tier = StorageTier.DURABLE_B


def create_durable_tiers(cache_dir: Path) -> dict[StorageTier, DiskStorage]:
    """Create both durable tiers under ``cache_dir``."""
    return {
        StorageTier.DURABLE_A: SessionStorage(cache_dir / StorageDirs.DURABLE_A),
        StorageTier.DURABLE_B: LocalStorage(cache_dir / StorageDirs.DURABLE_B),
    }
