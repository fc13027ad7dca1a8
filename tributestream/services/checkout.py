"""Checkout session store built on the tiered cache."""

import logging
import uuid
from typing import TYPE_CHECKING, Any

import requests
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from tributestream.api.client import ContentServiceClient
from tributestream.cache.tiered import TieredCache
from tributestream.core.constants import CacheConstants, IdPrefixes, KeyConstants, LocationNames
from tributestream.core.keys import ResourceKind, build_key, build_prefix
from tributestream.core.pricing import DEFAULT_CATALOG, PricingCatalog
from tributestream.exceptions import (
    APIError,
    InvalidSessionStateError,
    SessionConflictError,
    SessionNotFoundError,
    ValidationError,
)
from tributestream.models.cache import StorageTier
from tributestream.models.checkout import CheckoutSession, CheckoutStatus, Location, PaymentDetails

if TYPE_CHECKING:
    from tributestream.config import Config

logger = logging.getLogger(__name__)

_FIELD_NAMES = {to_camel(name): name for name in CheckoutSession.EDITABLE_FIELDS} | {
    name: name for name in CheckoutSession.EDITABLE_FIELDS
}


def to_validation_error(error: PydanticValidationError) -> ValidationError:
    """Convert a pydantic validation failure into our own error type."""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "record"
    return ValidationError(field, first.get("input"), first.get("msg", str(error)))


def parse_status(value: CheckoutStatus | str) -> CheckoutStatus:
    """Coerce a status name, rejecting unknown ones."""
    try:
        return CheckoutStatus(value)
    except ValueError:
        raise ValidationError("status", value, f"Unknown checkout status '{value}'") from None


class CheckoutSessionStore:
    """Persists checkout sessions and enforces their lifecycle.

    Sessions move ``pending -> saved -> completed`` or straight from
    ``pending`` to ``completed``. Completed sessions are read-only. Each
    session is one cache entry keyed by user and session id, rewritten with a
    fresh TTL on every change. Concurrent writers are not coordinated; the last
    write to reach the durable tier wins.
    """

    def __init__(
        self,
        cache: TieredCache,
        catalog: PricingCatalog = DEFAULT_CATALOG,
        namespace: str = KeyConstants.DEFAULT_NAMESPACE,
        ttl_ms: int = CacheConstants.SESSION_TTL_MS,
        storage_tier: StorageTier = StorageTier.DURABLE_B,
        content_service: ContentServiceClient | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            cache: Shared cache instance
            catalog: Pricing catalog used to compute totals
            namespace: Key namespace
            ttl_ms: Session TTL in milliseconds
            storage_tier: Durable tier sessions are written to
            content_service: Receives the tribute record when a checkout completes
        """
        self.cache = cache
        self.catalog = catalog
        self.namespace = str(namespace)
        self.ttl_ms = int(ttl_ms)
        self.storage_tier = storage_tier
        self.content_service = content_service

    @classmethod
    def from_config(
        cls,
        cache: TieredCache,
        config: "Config",
        catalog: PricingCatalog = DEFAULT_CATALOG,
        content_service: ContentServiceClient | None = None,
    ) -> "CheckoutSessionStore":
        """Create a store using configured namespace, TTL and tier."""
        return cls(
            cache,
            catalog=catalog,
            namespace=config.cache_namespace,
            ttl_ms=config.session_ttl_ms,
            storage_tier=config.session_storage_tier,
            content_service=content_service,
        )

    def _key(self, user_id: str, session_id: str) -> str:
        return build_key(self.namespace, user_id, ResourceKind.SESSION, session_id)

    @staticmethod
    def _new_id() -> str:
        return f"{IdPrefixes.SESSION}_{uuid.uuid4().hex[:12]}"

    def _load(self, user_id: str, session_id: str) -> CheckoutSession | None:
        record = self.cache.get(self._key(user_id, session_id))
        if record is None:
            return None

        try:
            return CheckoutSession.model_validate(record)
        except PydanticValidationError as e:
            logger.error(f"Stored checkout session {session_id} is unreadable: {e}")
            raise InvalidSessionStateError(session_id, "stored record is unreadable") from e

    def _write(self, user_id: str, session: CheckoutSession) -> CheckoutSession:
        session = session.model_copy(update={"saved_at": self.cache.now()})
        self.cache.set(
            self._key(user_id, session.id),
            session.to_record(),
            ttl=self.ttl_ms,
            storage_tier=self.storage_tier,
        )
        return session

    def _priced(self, session: CheckoutSession) -> CheckoutSession:
        total = self.catalog.total(session.selected_package, session.livestream_duration, len(session.locations))
        return session.model_copy(update={"total_cost": total})

    @staticmethod
    def _is_derived_location(locations: list[Location]) -> bool:
        return len(locations) == 1 and locations[0].name == LocationNames.PRIMARY and not locations[0].address

    @classmethod
    def _with_primary_location(cls, session: CheckoutSession, locations_edited: bool = False) -> CheckoutSession:
        if not session.has_content:
            return session
        if session.locations and (locations_edited or not cls._is_derived_location(session.locations)):
            return session

        primary = Location(
            name=LocationNames.PRIMARY.value,
            start_time=session.livestream_time,
            duration=session.livestream_duration,
        )
        return session.model_copy(update={"locations": [primary]})

    @staticmethod
    def _editable_updates(data: dict[str, Any]) -> dict[str, Any]:
        updates = {}
        for key, value in data.items():
            name = _FIELD_NAMES.get(key)
            if name is None:
                raise ValidationError(key, value, f"'{key}' cannot be set on a checkout session")
            updates[name] = value
        return updates

    def get(self, user_id: str, session_id: str) -> CheckoutSession | None:
        """Get a session.

        Args:
            user_id: Owning user
            session_id: Session identifier

        Returns:
            The session, or None if it never existed or has expired

        Raises:
            InvalidSessionStateError: If the stored record cannot be read
        """
        return self._load(user_id, session_id)

    def create_or_update(
        self,
        user_id: str,
        session_id: str | None = None,
        data: dict[str, Any] | None = None,
        *,
        status: CheckoutStatus | str | None = None,
    ) -> CheckoutSession:
        """Merge field edits into a session, creating it if needed.

        The session ends up ``pending`` unless ``status="saved"`` is requested.
        The total is recomputed from the catalog on every write.

        Args:
            user_id: Owning user
            session_id: Existing or desired session id; generated when omitted
            data: Field edits, by snake_case or camelCase name
            status: ``pending`` (default) or ``saved``

        Returns:
            The persisted session

        Raises:
            SessionConflictError: If the session is already completed
            ValidationError: On unknown fields, bad values or an unknown package
        """
        target = parse_status(status) if status is not None else CheckoutStatus.PENDING
        if target == CheckoutStatus.COMPLETED:
            raise ValidationError("status", status, "Sessions are completed through complete()")

        updates = self._editable_updates(dict(data or {}))

        existing = self._load(user_id, session_id) if session_id else None
        if existing is not None and existing.is_completed:
            logger.warning(f"Refusing to edit completed checkout session {session_id}")
            raise SessionConflictError(existing.id, existing.checkout_status, "edit")

        base = existing.model_dump() if existing else {"id": session_id or self._new_id()}
        try:
            session = CheckoutSession.model_validate({**base, **updates, "checkout_status": target})
        except PydanticValidationError as e:
            raise to_validation_error(e) from e

        session = self._priced(self._with_primary_location(session, locations_edited="locations" in updates))
        session = self._write(user_id, session)

        action = "updated" if existing else "created"
        logger.info(f"Checkout session {session.id} {action} ({session.checkout_status}, total={session.total_cost})")
        return session

    def mark_saved(self, user_id: str, session_id: str) -> bool:
        """Pause a pending session.

        Args:
            user_id: Owning user
            session_id: Session identifier

        Returns:
            True if the session moved from pending to saved, False otherwise
        """
        session = self._load(user_id, session_id)
        if session is None:
            logger.warning(f"Checkout session {session_id} not found for save")
            return False

        if session.checkout_status != CheckoutStatus.PENDING:
            logger.warning(f"Cannot save checkout session {session_id} in status {session.checkout_status}")
            return False

        self._write(user_id, session.model_copy(update={"checkout_status": CheckoutStatus.SAVED}))
        logger.info(f"Checkout session {session_id} saved for later")
        return True

    def complete(
        self,
        user_id: str,
        session_id: str,
        payment_details: PaymentDetails | dict[str, Any],
    ) -> CheckoutSession:
        """Complete a pending or saved session exactly once.

        When a content service is configured the tribute record is created
        first; if that call fails the session is left exactly as it was.

        Args:
            user_id: Owning user
            session_id: Session identifier
            payment_details: Billing name, address and card last four digits

        Returns:
            The completed session

        Raises:
            SessionNotFoundError: If the session does not exist or has expired
            SessionConflictError: If the session is already completed
            ValidationError: If the payment details are invalid
        """
        if not isinstance(payment_details, PaymentDetails):
            try:
                payment_details = PaymentDetails.model_validate(payment_details)
            except PydanticValidationError as e:
                raise to_validation_error(e) from e

        session = self._load(user_id, session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        if session.is_completed:
            logger.warning(f"Checkout session {session_id} is already completed")
            raise SessionConflictError(session_id, session.checkout_status, "complete")

        session = self._priced(session)
        tribute_id = session.tribute_id

        if self.content_service is not None:
            logger.info(f"Processing payment for {session_id}, amount {session.total_cost}")
            try:
                tribute = self.content_service.create_tribute(self._tribute_attributes(user_id, session))
            except (APIError, requests.exceptions.RequestException) as e:
                logger.error(f"Could not persist tribute for checkout session {session_id}: {e}")
                raise
            if tribute.get("id") is not None:
                tribute_id = str(tribute["id"])

        completed = session.model_copy(
            update={
                "checkout_status": CheckoutStatus.COMPLETED,
                "payment_details": payment_details,
                "tribute_id": tribute_id,
            }
        )
        completed = self._write(user_id, completed)
        logger.info(f"Checkout session {session_id} completed")
        return completed

    @staticmethod
    def _tribute_attributes(user_id: str, session: CheckoutSession) -> dict[str, Any]:
        return {
            "name": session.customer_name,
            "slug": session.url_friendly_text,
            "owner": user_id,
            "packageId": session.selected_package,
            "liveStreamDate": session.livestream_date,
            "liveStreamStartTime": session.livestream_time,
            "liveStreamDuration": session.livestream_duration,
            "locations": [location.to_record() for location in session.locations],
            "priceTotal": session.total_cost,
            "checkoutSessionId": session.id,
        }

    def list_by_status(self, user_id: str, status: CheckoutStatus | str) -> list[CheckoutSession]:
        """List a user's live sessions in one status, most recently saved first.

        Args:
            user_id: Owning user
            status: Status to filter on

        Returns:
            Matching sessions
        """
        status = parse_status(status)
        prefix = build_prefix(self.namespace, user_id, ResourceKind.SESSION)

        sessions = []
        for key, record in self.cache.scan(prefix).items():
            try:
                session = CheckoutSession.model_validate(record)
            except PydanticValidationError as e:
                logger.error(f"Error parsing checkout session {key}: {e}")
                continue
            if session.checkout_status == status:
                sessions.append(session)

        sessions.sort(key=lambda s: s.saved_at, reverse=True)
        logger.debug(f"Found {len(sessions)} {status} checkout sessions for user {user_id}")
        return sessions

    def delete(self, user_id: str, session_id: str) -> None:
        """Delete a session."""
        self.cache.delete(self._key(user_id, session_id))
        logger.info(f"Checkout session {session_id} deleted")
