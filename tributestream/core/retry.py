"""Generic retry policy for single external calls."""

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import backoff
import requests
from pydantic import BaseModel, ConfigDict, Field

from tributestream.core.constants import RetryConstants
from tributestream.exceptions import APIError

if TYPE_CHECKING:
    from tributestream.config import Config

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (APIError, requests.exceptions.RequestException)

# 4xx responses that are worth another attempt
_TRANSIENT_CLIENT_STATUSES = frozenset({408, 429})


def is_permanent_failure(error: Exception) -> bool:
    """Client errors other than timeouts and rate limits will not succeed on retry."""
    if isinstance(error, APIError):
        return 400 <= error.status_code < 500 and error.status_code not in _TRANSIENT_CLIENT_STATUSES
    return False


def _target_name(details: dict[str, Any]) -> str:
    target = details["target"]
    return getattr(target, "__qualname__", None) or repr(target)


def _log_backoff(details: dict[str, Any]) -> None:
    logger.warning(
        f"Attempt {details['tries']} of {_target_name(details)} failed, "
        f"retrying in {details['wait']:.1f}s: {details['exception']}"
    )


def _log_giveup(details: dict[str, Any]) -> None:
    logger.error(f"Giving up on {_target_name(details)} after {details['tries']} attempts")


class RetryPolicy(BaseModel):
    """Exponential backoff around any single external call.

    The delay before attempt ``n + 1`` is ``base_delay * 2 ** (n - 1)`` seconds,
    capped at ``max_delay``.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=RetryConstants.MAX_ATTEMPTS, ge=1)
    base_delay: float = Field(default=RetryConstants.BASE_DELAY_SECONDS, ge=0)
    max_delay: float = Field(default=RetryConstants.MAX_DELAY_SECONDS, ge=0)

    @classmethod
    def from_config(cls, config: "Config") -> "RetryPolicy":
        """Build the policy from application configuration."""
        return cls(
            max_attempts=config.retry_max_attempts,
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
        )

    def call(
        self,
        func: Callable[..., T],
        *args: Any,
        retry_on: tuple[type[Exception], ...] = RETRYABLE_EXCEPTIONS,
        **kwargs: Any,
    ) -> T:
        """Invoke ``func`` under this policy.

        Args:
            func: The external call
            *args: Positional arguments for ``func``
            retry_on: Exception types that trigger another attempt
            **kwargs: Keyword arguments for ``func``

        Returns:
            Whatever ``func`` returns on its first successful attempt

        Raises:
            Exception: The last error once attempts are exhausted, or
                immediately for a permanent failure
        """
        retrying = backoff.on_exception(
            backoff.expo,
            retry_on,
            max_tries=self.max_attempts,
            giveup=is_permanent_failure,
            on_backoff=_log_backoff,
            on_giveup=_log_giveup,
            logger=None,
            jitter=None,
            base=RetryConstants.BACKOFF_BASE,
            factor=self.base_delay,
            max_value=self.max_delay,
        )(func)
        return retrying(*args, **kwargs)
