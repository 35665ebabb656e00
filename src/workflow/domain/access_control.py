"""
Access Control
==============

Role-hierarchy check deciding whether one user may edit another.

Decision table, evaluated in order:

    current or target missing               -> deny
    current is target                       -> allow
    current is not ADMIN                    -> deny
    current has no access level             -> deny
    target has no access level              -> deny
    target level >= current level           -> deny
    otherwise                               -> allow

Denials raise PermissionDeniedException; allowed edits return None.
"""

from dataclasses import dataclass
from typing import Any, Optional

from src.config import Role
from src.core.exceptions import PermissionDeniedException
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AccessContext:
    """
    The authenticated user of the current request or job.

    ``user`` is any object with ``id``, ``username``, ``role`` and
    ``access_level``; ``None`` when nobody is authenticated.
    """

    user: Optional[Any] = None

    def require_user(self) -> Any:
        if self.user is None:
            raise PermissionDeniedException("No authenticated user")
        return self.user

    @property
    def username(self) -> Optional[str]:
        return getattr(self.user, "username", None) if self.user is not None else None


def _is_admin_role(role: Optional[str]) -> bool:
    return role is not None and role.upper() == Role.ADMIN


class AccessControl:
    """Stateless access-control checks."""

    @staticmethod
    def check_edit_permission(current: Any, target: Any) -> None:
        """
        Verify that ``current`` may edit ``target``.

        Raises:
            PermissionDeniedException: when the edit is not allowed
        """
        if current is None or target is None:
            raise PermissionDeniedException("Both the current user and the target user are required")

        if current.id == target.id:
            return

        if not _is_admin_role(current.role):
            logger.warning(
                f"User {current.username} denied editing {target.username}: not an admin",
                extra={"user_id": current.id, "target_id": target.id}
            )
            raise PermissionDeniedException(
                f"Only administrators can edit other users "
                f"(target: {target.username}, id {target.id})"
            )

        if current.access_level is None:
            raise PermissionDeniedException(
                f"Access level not configured for user {current.username}"
            )

        if target.access_level is None:
            raise PermissionDeniedException(
                f"Cannot determine access level of user {target.username}"
            )

        if target.access_level >= current.access_level:
            logger.warning(
                f"Admin {current.username} denied editing {target.username}: insufficient access level",
                extra={
                    "user_id": current.id,
                    "target_id": target.id,
                    "access_level": current.access_level,
                    "target_access_level": target.access_level
                }
            )
            raise PermissionDeniedException(
                f"Cannot edit user {target.username} with access level {target.access_level}: "
                f"your access level is {current.access_level}"
            )

    @staticmethod
    def is_admin(context: AccessContext) -> bool:
        """Whether the authenticated user has the ADMIN role."""
        try:
            return _is_admin_role(context.require_user().role)
        except Exception:
            return False

    @staticmethod
    def has_higher_access_level(context: AccessContext, target: Any) -> bool:
        """Whether the authenticated user's level strictly exceeds the target's."""
        try:
            current_level = context.require_user().access_level
            target_level = target.access_level
        except Exception:
            return False
        if current_level is None or target_level is None:
            return False
        return current_level > target_level
