"""Backend content service client implementation."""

import logging
from typing import TYPE_CHECKING, Any

import requests

from tributestream.core.constants import APIConstants
from tributestream.exceptions import (
    APIError,
    AuthenticationError,
    NotFoundError,
    PermissionError,
    RateLimitError,
    TimeoutError,
    ValidationError,
)

if TYPE_CHECKING:
    from tributestream.config import Config


class ContentServiceClient:
    """Client for the Strapi-style tribute content service.

    Calls are made exactly once; any retry policy belongs to the caller.
    """

    def __init__(self, base_url: str, token: str | None, timeout: float = APIConstants.REQUEST_TIMEOUT) -> None:
        """Initialize the API client.

        Args:
            base_url: Content service base URL
            token: Bearer credential supplied by the surrounding application
            timeout: Request timeout in seconds

        Raises:
            ValidationError: If the base URL is empty

        """
        self.logger = logging.getLogger(__name__)

        if not base_url:
            raise ValidationError("base_url", base_url, "Content service base URL must be provided")

        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session: requests.Session | None = None
        self.logger.debug(f"ContentServiceClient configured for {self.base_url}")

    @classmethod
    def from_config(cls, config: "Config") -> "ContentServiceClient":
        """Create a client for the configured content service."""
        token = config.api_token.get_secret_value() if config.api_token else None
        return cls(config.strapi_url, token, timeout=config.request_timeout)

    def __enter__(self) -> "ContentServiceClient":
        """Enter context."""
        self.session = requests.Session()
        self.logger.debug("Client session opened")
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context."""
        if self.session:
            self.session.close()
            self.session = None
            self.logger.debug("Client session closed")

    @property
    def headers(self) -> dict[str, str]:
        """Get request headers."""
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make a single API request.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            params: Query parameters
            json: JSON request body

        Returns:
            Response data

        """
        if not self.session:
            raise RuntimeError("Client not initialized. Use context manager.")

        url = f"{self.base_url}{endpoint}"
        method_name = f"{method} {endpoint}"

        self.logger.debug(f"Making request: {method_name}")

        try:
            response = self.session.request(
                method, url, headers=self.headers, params=params, json=json, timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            raise TimeoutError(method_name, self.timeout) from None

        if response.status_code == 204:
            return {}
        if 200 <= response.status_code < 300:
            return response.json()

        response_text = response.text

        # Map status codes to exceptions
        error_map = {
            401: lambda: AuthenticationError(f"Unauthorized access in {method_name}", response_text),
            403: lambda: PermissionError(f"Access forbidden in {method_name}", response_text),
            404: lambda: NotFoundError(f"Resource not found in {method_name}", response_text),
            408: lambda: TimeoutError(method_name, self.timeout),
            429: lambda: RateLimitError(
                f"Rate limit exceeded in {method_name}",
                response_text,
                int(response.headers.get("Retry-After", 0)) if response.headers.get("Retry-After") else None,
            ),
        }

        if response.status_code in error_map:
            self.logger.error(f"{method_name} failed with status {response.status_code}")
            raise error_map[response.status_code]()
        elif 500 <= response.status_code < 600:
            self.logger.error(f"{method_name} failed with server error {response.status_code}")
            raise APIError(response.status_code, f"Server error in {method_name}", response_text)
        else:
            raise APIError(
                response.status_code,
                f"Unexpected response status {response.status_code} in {method_name}",
                response_text,
            )

    # Tributes

    def create_tribute(self, attributes: dict[str, Any]) -> dict[str, Any]:
        """Create a tribute record.

        Args:
            attributes: Tribute attributes

        Returns:
            The created tribute, including its ``id``

        """
        self.logger.info(f"Creating tribute {attributes.get('name', '')!r}")
        result = self._make_request("POST", "/api/tributes", json={"data": attributes})
        return result.get("data") or {}

    def get_tribute(self, tribute_id: str) -> dict[str, Any]:
        """Fetch a tribute with its owner populated."""
        result = self._make_request("GET", f"/api/tributes/{tribute_id}", params={"populate": "owner"})
        return result.get("data") or {}

    def get_tribute_owner(self, tribute_id: str) -> str | None:
        """Get the id of the user who owns a tribute.

        Returns:
            Owner user id, or None if the tribute has no owner

        """
        tribute = self.get_tribute(tribute_id)
        attributes = tribute.get("attributes", tribute)
        owner = attributes.get("owner")
        if isinstance(owner, dict):
            owner = owner.get("data", owner)
        if isinstance(owner, dict):
            owner = owner.get("id")
        return str(owner) if owner is not None else None

    # Contribution requests

    def list_contribution_requests(self, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """List contribution requests visible to the caller."""
        params = {"populate": "*", "pagination[pageSize]": APIConstants.DEFAULT_PAGE_SIZE, **(filters or {})}
        result = self._make_request("GET", "/api/contribution-requests", params=params)
        return result.get("data") or []

    def create_contribution_request(self, record: dict[str, Any]) -> dict[str, Any]:
        """Store a new contribution request."""
        self.logger.info(f"Creating contribution request {record.get('id')}")
        result = self._make_request("POST", "/api/contribution-requests", json={"data": record})
        return result.get("data") or {}

    def update_contribution_request(self, request_id: str, status: str, response_date: str) -> dict[str, Any]:
        """Record the decision on a contribution request.

        Args:
            request_id: Contribution request id
            status: ``approved`` or ``rejected``
            response_date: ISO-8601 timestamp of the decision

        """
        self.logger.info(f"Updating contribution request {request_id} to {status}")
        result = self._make_request(
            "PUT",
            f"/api/contribution-requests/{request_id}",
            json={"data": {"status": status, "responseDate": response_date}},
        )
        return result.get("data") or {}

    # Users and roles

    def list_roles(self) -> list[dict[str, Any]]:
        """List the roles users can be assigned."""
        result = self._make_request("GET", "/api/users-permissions/roles")
        return result.get("roles") or []

    def update_user_role(self, user_id: str, role_id: int | str) -> dict[str, Any]:
        """Assign a role to a user."""
        self.logger.info(f"Assigning role {role_id} to user {user_id}")
        return self._make_request("PUT", f"/api/users/{user_id}", json={"role": role_id})

    def get_user(self, user_id: str) -> dict[str, Any]:
        """Fetch a user with their role populated."""
        return self._make_request("GET", f"/api/users/{user_id}", params={"populate": "role"})
