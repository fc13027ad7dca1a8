"""Checkout session data models.

Persisted records use camelCase field names (``customerName``,
``checkoutStatus``...) while Python code works with snake_case attributes.
"""

from enum import StrEnum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from tributestream.models.pricing import PricingBreakdown


class CheckoutStatus(StrEnum):
    """Checkout session lifecycle states."""

    PENDING = "pending"
    SAVED = "saved"
    COMPLETED = "completed"


class CamelModel(BaseModel):
    """Base for records persisted with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        """Dump to the JSON-ready persisted layout."""
        return self.model_dump(mode="json", by_alias=True)


class Location(CamelModel):
    """A livestream location."""

    name: str = ""
    address: str = ""
    start_time: str = ""
    duration: float = Field(default=1, ge=0)


class PaymentDetails(CamelModel):
    """Payment details attached when a checkout completes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    billing_name: str = Field(min_length=1)
    billing_address: str = Field(min_length=1)
    card_last4: str = Field(pattern=r"^\d{4}$")


class CheckoutSession(CamelModel):
    """One user's in-progress or completed purchase configuration."""

    # Fields a caller may set through create_or_update
    EDITABLE_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {
            "customer_name",
            "email",
            "phone_number",
            "livestream_date",
            "livestream_time",
            "livestream_duration",
            "selected_package",
            "locations",
            "url_friendly_text",
        }
    )

    id: str
    customer_name: str = ""
    email: str = ""
    phone_number: str = ""
    livestream_date: str = ""
    livestream_time: str = ""
    livestream_duration: float = Field(default=1, ge=0, description="Hours")
    selected_package: str | None = None
    locations: list[Location] = Field(default_factory=list)
    url_friendly_text: str = ""
    total_cost: float = 0.0
    saved_at: float = Field(default=0.0, description="Last persistence, wall-clock milliseconds")
    checkout_status: CheckoutStatus = CheckoutStatus.PENDING
    payment_details: PaymentDetails | None = None
    tribute_id: str | None = None

    @model_validator(mode="after")
    def payment_details_only_when_completed(self) -> "CheckoutSession":
        """Payment details exist exactly when the checkout is completed."""
        completed = self.checkout_status == CheckoutStatus.COMPLETED
        if completed and self.payment_details is None:
            raise ValueError("completed sessions must carry payment details")
        if not completed and self.payment_details is not None:
            raise ValueError("payment details are only attached to completed sessions")
        return self

    @property
    def is_completed(self) -> bool:
        """Whether the session is in its terminal state."""
        return self.checkout_status == CheckoutStatus.COMPLETED

    @property
    def has_content(self) -> bool:
        """Whether any editable field has been filled in."""
        defaults = CheckoutSession(id=self.id)
        return any(getattr(self, name) != getattr(defaults, name) for name in self.EDITABLE_FIELDS)


class ResumeOutcome(StrEnum):
    """Where a resumed session sends the user."""

    NOT_RESUMABLE = "not_resumable"
    CONFIGURE = "configure"
    RECEIPT = "receipt"


class ResumedSession(BaseModel):
    """Reconstructed view of a prior checkout session."""

    outcome: ResumeOutcome
    session_id: str
    session: CheckoutSession | None = None
    pricing: PricingBreakdown | None = None

    @property
    def read_only(self) -> bool:
        """Completed sessions open as receipts."""
        return self.outcome == ResumeOutcome.RECEIPT

    @property
    def resumable(self) -> bool:
        """Whether there was anything to resume."""
        return self.outcome != ResumeOutcome.NOT_RESUMABLE
