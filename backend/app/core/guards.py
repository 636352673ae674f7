"""
Role checks on the resolved caller identity.
"""

from backend.app.core.exceptions import InsufficientPermissionsError
from backend.app.models.enums import UserRole


def is_admin(current_user: dict) -> bool:
    """True when the resolved caller carries the ADMIN role."""
    return current_user.get("role") == UserRole.ADMIN.value


def ensure_admin(current_user: dict, action: str) -> None:
    """
    Raise unless the caller is an admin.

    Raises:
        InsufficientPermissionsError (403)
    """
    if not is_admin(current_user):
        raise InsufficientPermissionsError(
            f"{action} requires ADMIN role",
            details={"role": current_user.get("role")}
        )
