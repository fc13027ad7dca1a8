"""Cache module for Tributestream."""

from tributestream.cache.storage import (
    DiskStorage,
    EphemeralStorage,
    LocalStorage,
    SessionStorage,
    StorageBackend,
    create_durable_tiers,
)
from tributestream.cache.tiered import TieredCache, wall_clock_ms

__all__ = [
    "DiskStorage",
    "EphemeralStorage",
    "LocalStorage",
    "SessionStorage",
    "StorageBackend",
    "TieredCache",
    "create_durable_tiers",
    "wall_clock_ms",
]
