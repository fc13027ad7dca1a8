"""Contribution request workflow."""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError

from tributestream.api.client import ContentServiceClient
from tributestream.cache.tiered import TieredCache
from tributestream.core.constants import CacheConstants, IdPrefixes, KeyConstants
from tributestream.core.keys import ResourceKind, build_key, build_prefix, namespace_prefix, parse_key
from tributestream.exceptions import (
    ConfigurationError,
    ContributionRequestNotFoundError,
    DuplicatePendingRequestError,
    PermissionError,
    RequestAlreadyDecidedError,
    ValidationError,
)
from tributestream.models.cache import StorageTier
from tributestream.models.contribution import ContributionRequest, ContributionStatus

if TYPE_CHECKING:
    from tributestream.config import Config

logger = logging.getLogger(__name__)

OwnerResolver = Callable[[str], str | None]


class ContributionRequestWorkflow:
    """Tracks requests from third parties to add media to a tribute.

    A request starts ``pending`` and is decided exactly once. A contributor has
    at most one pending request per tribute. Records are keyed under the
    contributor's id.
    """

    def __init__(
        self,
        cache: TieredCache,
        namespace: str = KeyConstants.DEFAULT_NAMESPACE,
        ttl_ms: int = CacheConstants.CONTRIBUTION_TTL_MS,
        storage_tier: StorageTier = StorageTier.DURABLE_B,
        content_service: ContentServiceClient | None = None,
        owner_resolver: OwnerResolver | None = None,
    ) -> None:
        """Initialize the workflow.

        Args:
            cache: Shared cache instance
            namespace: Key namespace
            ttl_ms: Record TTL in milliseconds
            storage_tier: Durable tier records are written to
            content_service: Mirrors creations and decisions to the backend
            owner_resolver: Maps a tribute id to its owner's user id
        """
        self.cache = cache
        self.namespace = str(namespace)
        self.ttl_ms = int(ttl_ms)
        self.storage_tier = storage_tier
        self.content_service = content_service

        if owner_resolver is None and content_service is not None:
            owner_resolver = content_service.get_tribute_owner
        self.owner_resolver = owner_resolver

    @classmethod
    def from_config(
        cls,
        cache: TieredCache,
        config: "Config",
        content_service: ContentServiceClient | None = None,
        owner_resolver: OwnerResolver | None = None,
    ) -> "ContributionRequestWorkflow":
        """Create a workflow using configured namespace, TTL and tier."""
        return cls(
            cache,
            namespace=config.cache_namespace,
            ttl_ms=config.contribution_ttl_ms,
            storage_tier=config.session_storage_tier,
            content_service=content_service,
            owner_resolver=owner_resolver,
        )

    def _write(self, request: ContributionRequest) -> ContributionRequest:
        key = build_key(self.namespace, request.contributor_id, ResourceKind.CONTRIBUTION_REQUEST, request.id)
        self.cache.set(key, request.to_record(), ttl=self.ttl_ms, storage_tier=self.storage_tier)
        return request

    def _parse_records(self, records: dict[str, object]) -> list[ContributionRequest]:
        requests = []
        for key, record in records.items():
            try:
                requests.append(ContributionRequest.model_validate(record))
            except PydanticValidationError as e:
                logger.error(f"Error parsing contribution request {key}: {e}")
        requests.sort(key=lambda r: r.request_date, reverse=True)
        return requests

    @staticmethod
    def _is_request_key(key: str) -> bool:
        try:
            return parse_key(key).resource_kind == ResourceKind.CONTRIBUTION_REQUEST
        except ValidationError:
            logger.debug(f"Skipping foreign cache key {key}")
            return False

    def _all(self) -> list[ContributionRequest]:
        records = {
            key: record
            for key, record in self.cache.scan(namespace_prefix(self.namespace)).items()
            if self._is_request_key(key)
        }
        return self._parse_records(records)

    def _owner_of(self, tribute_id: str) -> str | None:
        if self.owner_resolver is None:
            raise ConfigurationError("Tribute ownership lookup is not configured")
        return self.owner_resolver(tribute_id)

    def get(self, request_id: str) -> ContributionRequest | None:
        """Get a request by id, or None if it does not exist."""
        return next((r for r in self._all() if r.id == request_id), None)

    def list_for_contributor(self, contributor_id: str) -> list[ContributionRequest]:
        """A contributor's own requests, newest first."""
        prefix = build_prefix(self.namespace, contributor_id, ResourceKind.CONTRIBUTION_REQUEST)
        return self._parse_records(self.cache.scan(prefix))

    def list_for_owner(self, owner_id: str) -> list[ContributionRequest]:
        """Requests against every tribute ``owner_id`` owns, newest first.

        Raises:
            ConfigurationError: If no ownership lookup is configured
        """
        owners: dict[str, str | None] = {}
        results = []
        for request in self._all():
            if request.tribute_id not in owners:
                owners[request.tribute_id] = self._owner_of(request.tribute_id)
            if owners[request.tribute_id] == owner_id:
                results.append(request)
        return results

    def create(self, tribute_id: str, contributor_id: str) -> ContributionRequest:
        """Open a pending request.

        Args:
            tribute_id: Tribute to contribute to
            contributor_id: Requesting user

        Returns:
            The new request

        Raises:
            DuplicatePendingRequestError: If the contributor already has a
                pending request for this tribute
        """
        for existing in self.list_for_contributor(contributor_id):
            if existing.tribute_id == tribute_id and existing.is_pending:
                logger.warning(f"Contributor {contributor_id} already has pending request {existing.id}")
                raise DuplicatePendingRequestError(tribute_id, contributor_id, existing.id)

        request = ContributionRequest(
            id=f"{IdPrefixes.CONTRIBUTION_REQUEST}_{uuid.uuid4().hex[:12]}",
            tribute_id=tribute_id,
            contributor_id=contributor_id,
            request_date=self.cache.now(),
        )

        if self.content_service is not None:
            created = self.content_service.create_contribution_request(
                request.model_dump(mode="json", by_alias=True, exclude={"remote_id"})
            )
            if created.get("id") is not None:
                request = request.model_copy(update={"remote_id": str(created["id"])})

        self._write(request)
        logger.info(f"Contribution request {request.id} created for tribute {tribute_id}")
        return request

    def respond(
        self,
        request_id: str,
        decision: ContributionStatus | str,
        *,
        responder_id: str | None = None,
    ) -> ContributionRequest:
        """Approve or reject a pending request.

        Args:
            request_id: Request to decide
            decision: ``approved`` or ``rejected``
            responder_id: When given, must be the tribute's owner

        Returns:
            The decided request

        Raises:
            ValidationError: If the decision is not approved or rejected
            ContributionRequestNotFoundError: If the request does not exist
            PermissionError: If ``responder_id`` does not own the tribute
            RequestAlreadyDecidedError: If the request was already decided
        """
        try:
            status = ContributionStatus(decision)
        except ValueError:
            status = None
        if status not in (ContributionStatus.APPROVED, ContributionStatus.REJECTED):
            raise ValidationError("decision", decision, "Decision must be 'approved' or 'rejected'")

        request = self.get(request_id)
        if request is None:
            raise ContributionRequestNotFoundError(request_id)

        if responder_id is not None and self._owner_of(request.tribute_id) != responder_id:
            logger.warning(f"User {responder_id} may not decide contribution request {request_id}")
            raise PermissionError(f"User '{responder_id}' does not own tribute '{request.tribute_id}'")

        if not request.is_pending:
            logger.warning(f"Contribution request {request_id} was already {request.status}")
            raise RequestAlreadyDecidedError(request_id, request.status)

        now = self.cache.now()
        if self.content_service is not None:
            response_date = datetime.fromtimestamp(now / 1000, tz=UTC).isoformat()
            self.content_service.update_contribution_request(request.remote_id or request_id, status, response_date)

        decided = self._write(request.model_copy(update={"status": status, "response_date": now}))
        logger.info(f"Contribution request {request_id} {status}")
        return decided
