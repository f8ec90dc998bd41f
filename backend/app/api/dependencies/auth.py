# backend/app/api/dependencies/auth.py
"""
Authentication and authorization dependencies.

The bearer token is resolved to claims in ``app.auth``; here the claims are
matched against a live user row so deactivated accounts and stale role
claims are rejected even while the token itself is still valid.
"""

import logging
from typing import Any, Awaitable, Callable, Dict

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...auth import credentials_exception, get_token_claims
from ...core.enums import RoleName
from ...models.user import User
from ...repositories.user_repository import UserRepository
from .database import get_db

logger = logging.getLogger(__name__)


async def get_current_user(
    claims: Dict[str, Any] = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user from the database.

    Raises:
        HTTPException: 401 if the user is unknown, inactive or no longer holds the token's role
    """
    user = UserRepository(db).get_by_id(str(claims["sub"]))
    if user is None or not user.is_active:
        logger.info("Token subject is unknown or inactive", extra={"sub": claims.get("sub")})
        raise credentials_exception()
    if user.role != claims.get("role"):
        logger.info("Token role no longer matches user", extra={"user_id": user.id})
        raise credentials_exception()
    return user


def require_roles(*roles: RoleName) -> Callable[..., Awaitable[User]]:
    """Dependency factory that admits only users holding one of ``roles``."""
    allowed = {role.value for role in roles}

    async def verify_role(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {' or '.join(sorted(allowed))}",
            )
        return current_user

    return verify_role


require_trainer = require_roles(RoleName.TRAINER)
require_client = require_roles(RoleName.CLIENT)
require_admin = require_roles(RoleName.ADMIN)
require_trainer_or_admin = require_roles(RoleName.TRAINER, RoleName.ADMIN)
