"""
Efficio Backend — Permission Guard
====================================

What:  Ownership checks: only the user recorded as a resource's owner may
       read or mutate it.
Who:   Repositories, after resolving the owner id of the target record.
"""

import logging
from typing import Optional

from efficio.exceptions import PermissionDenied
from efficio.services.sessions import SessionManager

logger = logging.getLogger(__name__)


def check_ownership(
    acting_user_id: str,
    owner_id: str,
    resource: Optional[str] = None,
    resource_id: Optional[str] = None,
) -> None:
    """Raise PermissionDenied unless `acting_user_id` is `owner_id`."""
    if acting_user_id != owner_id:
        logger.warning(
            "User %s denied access to %s %s", acting_user_id, resource or "resource", resource_id
        )
        raise PermissionDenied(context={"resource": resource, "resource_id": resource_id})


class PermissionGuard:
    """Session-aware variant of check_ownership."""

    def __init__(self, sessions: SessionManager) -> None:
        self.sessions = sessions

    async def check_session(
        self,
        token: Optional[str],
        owner_id: str,
        resource: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> str:
        """
        Validate `token` and require that its user owns the resource.

        Returns:
            The acting user id.

        Raises:
            Unauthorized: the token is unknown or revoked for its user
            PermissionDenied: the user is not the owner
        """
        user_id = await self.sessions.validate_session(token)
        check_ownership(user_id, owner_id, resource, resource_id)
        return user_id
