"""
FastAPI dependencies for authentication and request scoping.
"""
from typing import Annotated, Optional
from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.errors import AuthenticationFailed
from app.features.permissions.principal import Principal
from app.features.users.auth import verify_jwt_token


security = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> Principal:
    """
    Build the request principal from the bearer token.

    The principal carries whatever roles and permissions the token claims;
    services resolve effective permissions through LayeredPermissionResolver.

    Usage:
        @router.get("/me")
        async def get_me(principal: Principal = Depends(get_current_principal)):
            return principal
    """
    if credentials is None:
        raise AuthenticationFailed("Not authenticated")

    payload = verify_jwt_token(credentials.credentials)
    principal = Principal.from_claims(payload)

    if not principal.user_id or not principal.organization_id:
        raise AuthenticationFailed("Invalid token payload")

    return principal


async def get_claimed_organization_id(
    principal: Annotated[Principal, Depends(get_current_principal)],
    x_organization_id: Annotated[Optional[str], Header()] = None,
) -> str:
    """
    Organization the request acts in.

    Taken from the X-Organization-Id header when present, otherwise the
    principal's own organization.
    """
    if x_organization_id and x_organization_id.strip():
        return x_organization_id.strip()
    return principal.organization_id


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
