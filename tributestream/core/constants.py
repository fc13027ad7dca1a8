"""
Constants and configuration values for the Tributestream checkout core.
"""

from enum import IntEnum, StrEnum

# Content service base URL
API_BASE_URL = "http://localhost:1338"

_SECOND_MS = 1000
_DAY_MS = 24 * 60 * 60 * _SECOND_MS


class CacheConstants(IntEnum):
    """Cache TTLs in milliseconds."""

    DEFAULT_TTL_MS = 60 * _SECOND_MS
    SESSION_TTL_MS = 7 * _DAY_MS
    CONTRIBUTION_TTL_MS = 30 * _DAY_MS


class KeyConstants(StrEnum):
    """Key layout conventions."""

    SEPARATOR = ":"
    DEFAULT_NAMESPACE = "calculator"


class StorageDirs(StrEnum):
    """Subdirectories of the cache root used by the durable tiers."""

    DURABLE_A = "session"
    DURABLE_B = "local"


class IdPrefixes(StrEnum):
    """Prefixes for generated record identifiers."""

    SESSION = "calc"
    CONTRIBUTION_REQUEST = "creq"


class APIConstants(IntEnum):
    """Content service limits."""

    REQUEST_TIMEOUT = 5
    DEFAULT_PAGE_SIZE = 100


class RetryConstants(IntEnum):
    """Defaults for the generic retry policy."""

    MAX_ATTEMPTS = 3
    BASE_DELAY_SECONDS = 1
    MAX_DELAY_SECONDS = 30
    BACKOFF_BASE = 2


class LocationNames(StrEnum):
    """Display names for derived locations."""

    PRIMARY = "Primary Location"
