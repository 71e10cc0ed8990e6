"""Helpers shared by the endpoint modules."""

import asyncio
from typing import Awaitable, TypeVar

from components.core import config
from components.core.errors import AuthorizationError, StoreTimeoutError
from components.user.schemas import Identity

settings = config.get_settings()
T = TypeVar("T")


async def bounded(operation: Awaitable[T]) -> T:
    """Run one gateway operation under the request timeout."""
    try:
        return await asyncio.wait_for(operation, timeout=settings.REQUEST_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        raise StoreTimeoutError("The operation timed out; retry later")


def ensure_owner_or_admin(identity: Identity, owner_id: int) -> None:
    """Callers may read their own records; admins may read any."""
    if not identity.is_admin and identity.user_id != owner_id:
        raise AuthorizationError("You do not have access to this resource")
