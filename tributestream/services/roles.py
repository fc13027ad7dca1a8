"""Role assignment for newly registered users."""

import logging

from tributestream.api.client import ContentServiceClient
from tributestream.core.retry import RetryPolicy
from tributestream.exceptions import APIError

logger = logging.getLogger(__name__)


def assign_role(
    client: ContentServiceClient,
    user_id: str,
    role_type: str,
    policy: RetryPolicy | None = None,
) -> bool:
    """Assign a role by type and verify it took effect.

    Role changes can take a moment to propagate, so the update call runs
    under a retry policy. Verification failures that are transport errors are
    not held against the assignment.

    Args:
        client: Open content service client
        user_id: User to update
        role_type: Role type, e.g. ``funeral_director``
        policy: Retry policy for the update call

    Returns:
        True if the role was assigned, False if the role does not exist or
        verification shows a different role

    Raises:
        APIError: If the update still fails after the policy gives up
    """
    roles = client.list_roles()
    role = next((r for r in roles if r.get("type") == role_type), None)
    if role is None:
        available = ", ".join(str(r.get("type")) for r in roles)
        logger.error(f"Role {role_type} not found in available roles: {available}")
        return False

    policy = policy or RetryPolicy()
    policy.call(client.update_user_role, user_id, role["id"])

    try:
        user = client.get_user(user_id)
    except APIError as e:
        logger.warning(f"Assigned role {role_type} to user {user_id} but could not verify: {e}")
        return True

    actual = (user.get("role") or {}).get("type")
    if actual != role_type:
        logger.warning(f"Role assignment for user {user_id} verified as {actual or 'none'}, expected {role_type}")
        return False

    logger.info(f"Assigned and verified role {role_type} for user {user_id}")
    return True
