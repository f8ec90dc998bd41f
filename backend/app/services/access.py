"""Role checks shared by the booking and payment services."""

from ..core.enums import RoleName
from ..core.exceptions import ForbiddenException
from ..models.user import User


def require_role(user: User, *roles: RoleName, action: str = "perform this action") -> None:
    """Raise ForbiddenException unless ``user`` holds one of ``roles``."""
    allowed = {role.value for role in roles}
    if user.role not in allowed:
        names = " or ".join(sorted(allowed)).lower()
        raise ForbiddenException(
            f"Only {names} users can {action}",
            code="ROLE_REQUIRED",
            details={"required_roles": sorted(allowed), "role": user.role},
        )
