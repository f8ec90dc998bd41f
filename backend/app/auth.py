"""
Access token handling.

Tokens are issued by the identity service and carry the user id in ``sub``
and the role in ``role``. This module only signs and verifies them.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
import jwt
from jwt import PyJWTError

from .core.config import settings
from .core.enums import RoleName

logger = logging.getLogger(__name__)

oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def _secret_value(secret_obj: Any) -> str:
    getter = getattr(secret_obj, "get_secret_value", None)
    if callable(getter):
        return cast(str, getter())
    return cast(str, secret_obj)


def credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(
    subject: str, role: RoleName | str, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        subject: User id stored in the ``sub`` claim
        role: Role stored in the ``role`` claim
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    role_value = role.value if isinstance(role, RoleName) else str(role)
    to_encode = {"sub": subject, "role": role_value, "exp": expire}
    return jwt.encode(to_encode, _secret_value(settings.secret_key), algorithm=settings.algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and verify a token; raises ``PyJWTError`` when it is invalid or expired."""
    payload = jwt.decode(
        token,
        _secret_value(settings.secret_key),
        algorithms=[settings.algorithm],
        options={"require": ["sub", "exp"]},
    )
    return cast(Dict[str, Any], payload)


async def get_token_claims(
    token: Optional[str] = Depends(oauth2_scheme_optional),
) -> Dict[str, Any]:
    """
    Resolve the bearer token into its claims.

    Raises:
        HTTPException: 401 when the token is missing, malformed or expired
    """
    if not token:
        raise credentials_exception("Not authenticated")
    try:
        payload = decode_access_token(token)
    except PyJWTError as exc:
        logger.info(f"Rejected access token: {exc}")
        raise credentials_exception() from exc

    role = payload.get("role")
    if role not in {r.value for r in RoleName}:
        raise credentials_exception()
    return payload
