"""Core functionality module."""

from tributestream.core.keys import ResourceKind, build_key, build_prefix, namespace_prefix, parse_key
from tributestream.core.pricing import DEFAULT_CATALOG, PricingCatalog
from tributestream.core.retry import RetryPolicy

__all__ = [
    "DEFAULT_CATALOG",
    "PricingCatalog",
    "ResourceKind",
    "RetryPolicy",
    "build_key",
    "build_prefix",
    "namespace_prefix",
    "parse_key",
]
