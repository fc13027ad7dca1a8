"""Contribution request data models."""

from enum import StrEnum

from pydantic import Field

from tributestream.models.checkout import CamelModel


class ContributionStatus(StrEnum):
    """Contribution request states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ContributionRequest(CamelModel):
    """A third party's request to contribute media to a tribute."""

    id: str
    tribute_id: str
    contributor_id: str
    status: ContributionStatus = ContributionStatus.PENDING
    request_date: float = Field(description="Wall-clock milliseconds")
    response_date: float | None = None
    remote_id: str | None = Field(default=None, description="Id assigned by the content service")

    @property
    def is_pending(self) -> bool:
        """Whether the request still awaits a decision."""
        return self.status == ContributionStatus.PENDING
