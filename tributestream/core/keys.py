"""Deterministic cache key construction.

Every layer that touches the shared storage tiers builds its keys here. Keys
have the layout ``<namespace>:<userId>:<resourceKind>:<resourceId>``. Each
component is percent-escaped before joining, so the separator can never
appear inside a component and two different argument tuples can never map to
the same key.
"""

from enum import StrEnum
from typing import NamedTuple
from urllib.parse import quote, unquote

from tributestream.core.constants import KeyConstants
from tributestream.exceptions import ValidationError

SEPARATOR = KeyConstants.SEPARATOR.value


class ResourceKind(StrEnum):
    """Resource kinds stored under a user's namespace."""

    SESSION = "session"
    CONTRIBUTION_REQUEST = "contribution-request"


class ParsedKey(NamedTuple):
    """Components recovered from a built key."""

    namespace: str
    user_id: str
    resource_kind: str
    resource_id: str


def _escape(field: str, value: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(field, value, f"Key component '{field}' must be a non-empty string")
    return quote(value, safe="")


def namespace_prefix(namespace: str) -> str:
    """Build the prefix shared by every key in a namespace."""
    return _escape("namespace", namespace) + SEPARATOR


def build_prefix(namespace: str, user_id: str, resource_kind: str) -> str:
    """Build the prefix shared by all of one user's resources of one kind.

    Args:
        namespace: Logical namespace, e.g. ``calculator``
        user_id: Stable per-user identifier
        resource_kind: Resource kind tag

    Returns:
        Key prefix ending with the separator
    """
    parts = (
        _escape("namespace", namespace),
        _escape("user_id", user_id),
        _escape("resource_kind", str(resource_kind)),
    )
    return SEPARATOR.join(parts) + SEPARATOR


def build_key(namespace: str, user_id: str, resource_kind: str, resource_id: str) -> str:
    """Build the cache key for one resource.

    Args:
        namespace: Logical namespace, e.g. ``calculator``
        user_id: Stable per-user identifier
        resource_kind: Resource kind tag
        resource_id: Resource identifier

    Returns:
        Deterministic, collision-free key
    """
    return build_prefix(namespace, user_id, resource_kind) + _escape("resource_id", resource_id)


def parse_key(key: str) -> ParsedKey:
    """Split a key built by :func:`build_key` back into its components.

    Raises:
        ValidationError: If ``key`` does not have four components
    """
    parts = key.split(SEPARATOR)
    if len(parts) != 4 or not all(parts):
        raise ValidationError("key", key, f"Malformed cache key: {key}")
    return ParsedKey(*(unquote(part) for part in parts))
