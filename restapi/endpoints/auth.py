"""Caller identity resolution for the API."""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.errors import AuthenticationError, AuthorizationError
from components.core.init_db import get_db
from components.core.security import verify_token
from components.user.repository import UserRepository
from components.user.schemas import Identity

bearer_scheme = HTTPBearer(auto_error=False)


async def authenticate(token: str, db: AsyncSession) -> Identity:
    """Resolve a bearer token to the caller's id and current role."""
    payload = verify_token(token)
    if payload is None or payload.get("sub") is None:
        raise AuthenticationError("Could not validate credentials")
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Could not validate credentials")

    # The role comes from the directory, not the token, so revocations apply at once.
    user = await UserRepository(db).get_by_id(user_id)
    if user is None:
        raise AuthenticationError("User not found")
    return Identity(user_id=user.id, role=user.role)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Identity:
    """Get current caller from the Authorization header."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Not authenticated")
    return await authenticate(credentials.credentials, db)


async def require_admin(identity: Identity = Depends(get_current_user)) -> Identity:
    """Reject callers without the admin role."""
    if not identity.is_admin:
        raise AuthorizationError("Admin role required")
    return identity
