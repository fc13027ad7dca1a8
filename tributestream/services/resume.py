"""Resume prior checkout sessions."""

import logging

from tributestream.core.pricing import PricingCatalog
from tributestream.exceptions import InvalidSessionStateError, UnknownPackageError
from tributestream.models.checkout import CheckoutSession, CheckoutStatus, ResumedSession, ResumeOutcome
from tributestream.models.pricing import PricingBreakdown
from tributestream.services.checkout import CheckoutSessionStore

logger = logging.getLogger(__name__)


class SessionResumeController:
    """Reconstructs the view a user returns to for a prior session."""

    def __init__(self, store: CheckoutSessionStore, catalog: PricingCatalog | None = None) -> None:
        """Initialize the controller.

        Args:
            store: Checkout session store
            catalog: Current pricing rules (defaults to the store's catalog)
        """
        self.store = store
        self.catalog = catalog or store.catalog

    def resume(self, user_id: str, session_id: str) -> ResumedSession:
        """Reconstruct a session without writing anything.

        Completed sessions come back as read-only receipts; pending and saved
        sessions re-enter configuration at their last saved values. Pricing is
        always derived again from the stored fields with the current rules.

        Args:
            user_id: Owning user
            session_id: Session identifier

        Returns:
            The reconstructed view; ``not_resumable`` if the session is gone

        Raises:
            InvalidSessionStateError: If an open session cannot be priced, or a stored
                record cannot be read. Completed sessions whose package was
                withdrawn still open as receipts at their stored total.
        """
        session = self.store.get(user_id, session_id)
        if session is None:
            logger.info(f"Checkout session {session_id} is not resumable")
            return ResumedSession(outcome=ResumeOutcome.NOT_RESUMABLE, session_id=session_id)

        try:
            pricing = self.catalog.breakdown(
                session.selected_package,
                session.livestream_duration,
                len(session.locations),
            )
        except UnknownPackageError as e:
            if not session.is_completed:
                raise InvalidSessionStateError(session_id, str(e)) from e
            logger.warning(f"Package {session.selected_package} is no longer offered, showing stored total")
            pricing = PricingBreakdown(package_id=session.selected_package, total=session.total_cost)

        if session.is_completed:
            logger.debug(f"Resuming completed checkout session {session_id} as receipt")
            return ResumedSession(
                outcome=ResumeOutcome.RECEIPT,
                session_id=session_id,
                session=session,
                pricing=pricing,
            )

        logger.debug(f"Resuming checkout session {session_id} at configuration")
        return ResumedSession(
            outcome=ResumeOutcome.CONFIGURE,
            session_id=session_id,
            session=session.model_copy(update={"total_cost": pricing.total}),
            pricing=pricing,
        )

    def resumable_sessions(self, user_id: str) -> list[CheckoutSession]:
        """Pending and saved sessions for a user, most recently saved first."""
        sessions = self.store.list_by_status(user_id, CheckoutStatus.PENDING)
        sessions.extend(self.store.list_by_status(user_id, CheckoutStatus.SAVED))
        sessions.sort(key=lambda s: s.saved_at, reverse=True)
        return sessions
