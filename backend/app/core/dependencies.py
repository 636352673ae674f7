"""
Caller identity dependencies for FastAPI.

The identity service authenticates users and issues bearer tokens. This
module turns the token on each request into the resolved caller identity
({user_id, role}) that the trip services work with.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from backend.app.core.exceptions import AuthenticationError
from backend.app.core.jwt import decode_access_token
from backend.app.models.enums import UserRole

# HTTP Bearer security scheme; missing headers are reported by us, not FastAPI
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    FastAPI dependency resolving the caller identity.

    Args:
        credentials: HTTP Bearer token from request header

    Returns:
        Dict with ``user_id`` (str), ``role`` (str) and ``sub``

    Raises:
        AuthenticationError: 401 if the token is missing, undecodable, or
        carries no user id
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    user_id = payload.get("user_id")
    if user_id is None or str(user_id) == "":
        raise AuthenticationError("Invalid token payload")

    return {
        "user_id": str(user_id),
        "role": payload.get("role") or UserRole.USER.value,
        "sub": payload.get("sub"),
    }
