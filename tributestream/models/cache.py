"""Cache-related data models."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class StorageTier(StrEnum):
    """Where a cache entry lives beyond the in-process map."""

    EPHEMERAL = "ephemeral"
    DURABLE_A = "durable-a"  # until the browsing session ends
    DURABLE_B = "durable-b"  # until explicitly cleared


class CacheEnvelope(BaseModel):
    """Serialized form of an entry written to a durable tier."""

    value: Any
    timestamp: float
    ttl: int


class CacheEntry(BaseModel):
    """A single cached value with its expiry metadata."""

    key: str
    value: Any
    timestamp: float  # wall-clock milliseconds
    ttl: int  # milliseconds
    storage_tier: StorageTier = StorageTier.EPHEMERAL

    def is_expired(self, now: float) -> bool:
        """Check whether the entry is stale at ``now`` (milliseconds)."""
        return now - self.timestamp > self.ttl

    def to_envelope(self) -> CacheEnvelope:
        """Strip the entry down to what a durable tier persists."""
        return CacheEnvelope(value=self.value, timestamp=self.timestamp, ttl=self.ttl)

    @classmethod
    def from_envelope(cls, key: str, envelope: CacheEnvelope, storage_tier: StorageTier) -> "CacheEntry":
        """Rebuild an entry read back from a durable tier."""
        return cls(
            key=key,
            value=envelope.value,
            timestamp=envelope.timestamp,
            ttl=envelope.ttl,
            storage_tier=storage_tier,
        )


class CacheStats(BaseModel):
    """Model for cache status information."""

    count: int = 0
    expired: int = 0
    memory_size: int = 0
    timestamp: float = Field(default=0.0, description="When the stats were taken, in milliseconds")
