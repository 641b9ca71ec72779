"""
Bearer token verification and issuance.
"""
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import jwt

from app.core import config
from app.core.errors import AuthenticationFailed


def verify_jwt_token(token: str) -> dict:
    """
    Verify a bearer token and return its payload.

    Args:
        token: JWT token from Authorization header

    Returns:
        Decoded JWT payload

    Raises:
        AuthenticationFailed: If token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["exp", "organizationId"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationFailed("Token has expired")
    except jwt.InvalidTokenError as e:
        raise AuthenticationFailed(f"Invalid token: {str(e)}")


def create_access_token(
    user_id: str,
    organization_id: str,
    roles: Iterable[str] = (),
    permissions: Iterable[str] = (),
    email: Optional[str] = None,
    expires_in: Optional[timedelta] = None,
) -> str:
    """
    Issue a signed access token carrying the user's organization, roles and
    permissions as of now. Used by the seed script and tests; production
    tokens come from the identity provider.
    """
    now = datetime.now(timezone.utc)
    if expires_in is None:
        expires_in = timedelta(minutes=config.JWT_EXPIRES_MINUTES)

    payload = {
        "sub": user_id,
        "email": email,
        "organizationId": organization_id,
        "roles": [getattr(r, "value", r) for r in roles],
        "permissions": [getattr(p, "value", p) for p in permissions],
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
