from __future__ import annotations

from typing import Any

import pytest

from tributestream.core.retry import RetryPolicy
from tributestream.exceptions import APIError, NotFoundError
from tributestream.services.roles import assign_role

ROLES = [{"id": 1, "type": "authenticated"}, {"id": 3, "type": "funeral_director"}]


class FakeUsersClient:
    def __init__(self, update_failures: list[Exception] | None = None, verify_error: Exception | None = None) -> None:
        self.update_failures = list(update_failures or [])
        self.verify_error = verify_error
        self.updates: list[tuple[str, Any]] = []
        self.roles_by_user: dict[str, dict[str, Any]] = {}

    def list_roles(self) -> list[dict[str, Any]]:
        return ROLES

    def update_user_role(self, user_id: str, role_id: int) -> dict[str, Any]:
        self.updates.append((user_id, role_id))
        if self.update_failures:
            raise self.update_failures.pop(0)
        self.roles_by_user[user_id] = next(r for r in ROLES if r["id"] == role_id)
        return {"id": user_id}

    def get_user(self, user_id: str) -> dict[str, Any]:
        if self.verify_error is not None:
            raise self.verify_error
        return {"id": user_id, "role": self.roles_by_user.get(user_id)}


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0)


def test_assigns_and_verifies_role(policy) -> None:
    client = FakeUsersClient()

    assert assign_role(client, "9", "funeral_director", policy) is True
    assert client.updates == [("9", 3)]


def test_unknown_role_type(policy, caplog) -> None:
    client = FakeUsersClient()

    assert assign_role(client, "9", "admin", policy) is False
    assert client.updates == []
    assert "funeral_director" in caplog.text


def test_update_is_retried(policy) -> None:
    client = FakeUsersClient(update_failures=[APIError(503, "unavailable")])

    assert assign_role(client, "9", "funeral_director", policy) is True
    assert len(client.updates) == 2


def test_update_failure_propagates_after_retries(policy) -> None:
    client = FakeUsersClient(update_failures=[APIError(503, "unavailable")] * 3)

    with pytest.raises(APIError):
        assign_role(client, "9", "funeral_director", policy)

    assert len(client.updates) == 3


def test_verification_error_does_not_fail_assignment(policy) -> None:
    client = FakeUsersClient(verify_error=NotFoundError())
    assert assign_role(client, "9", "funeral_director", policy) is True


def test_verification_shows_other_role(policy) -> None:
    client = FakeUsersClient()
    client.update_user_role = lambda user_id, role_id: {"id": user_id}
    client.roles_by_user["9"] = ROLES[0]

    assert assign_role(client, "9", "funeral_director", policy) is False
