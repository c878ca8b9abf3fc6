"""
Actor resolution for API requests.

Tokens are issued elsewhere; this module only verifies the bearer token and
reads the actor's id (``sub``) and role (``role``) claims.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from marketplace.config import get_settings
from marketplace.models.enums import UserRole
from marketplace.schemas.auth import Actor

ALGORITHM = "HS256"

bearer_scheme = HTTPBearer(auto_error=False)


def decode_actor_token(token: str) -> Actor:
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
    except JWTError:
        raise _unauthorized("Invalid token")

    subject = payload.get("sub")
    try:
        role = UserRole(payload.get("role"))
    except ValueError:
        raise _unauthorized("Invalid role claim")

    # The system role is reserved for scheduled jobs
    if not subject or role is UserRole.SYSTEM:
        raise _unauthorized("Invalid token")

    return Actor(id=subject, role=role)


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Actor:
    if credentials is None:
        raise _unauthorized("Not authenticated")
    return decode_actor_token(credentials.credentials)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )
