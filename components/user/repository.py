"""Repository for user operations."""

import logging
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.errors import ConflictError, NotFoundError
from components.user.models import User, utcnow
from components.user.schemas import UserCreate

logger = logging.getLogger(__name__)


class UserRepository:
    """Account directory: user records and their verification/role flags."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(self, user: UserCreate) -> User:
        """Create a new user."""
        if await self.exists(user.email):
            raise ConflictError(f"User with email {user.email} already exists")
        db_user = User(
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            phone=user.phone,
            role=user.role.value,
            account_verified=False,
        )
        self.session.add(db_user)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"User with email {user.email} already exists")
        await self.session.refresh(db_user)
        logger.info("Created user %s with role %s", db_user.id, db_user.role)
        return db_user

    async def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        result = await self.session.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_user(self, user_id: int) -> User:
        """Get user by ID or raise NotFoundError."""
        user = await self.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def list_users(self, skip: int = 0, limit: int = 100) -> List[User]:
        """Get all users ordered by ID."""
        result = await self.session.execute(
            select(User).order_by(User.id).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def exists(self, email: str) -> bool:
        """Check if user with given email exists."""
        result = await self.session.execute(
            select(User.id).where(User.email == email)
        )
        return result.scalar_one_or_none() is not None

    async def is_admin(self, user_id: int) -> bool:
        """Unknown users are never admins."""
        user = await self.get_by_id(user_id)
        return user is not None and user.is_admin

    async def set_verified(
        self,
        user_id: int,
        verified: bool,
        actor_id: Optional[int] = None,
        commit: bool = True,
    ) -> User:
        """
        Set the account_verified flag.

        Setting the flag to its current value is a no-op, so the manual admin
        toggle and the verification approval hook can both call this safely.
        With ``commit=False`` the change joins the caller's unit of work.
        """
        user = await self.get_user(user_id)
        if user.account_verified != verified:
            user.account_verified = verified
            user.verified_at = utcnow() if verified else None
            user.verified_by_admin = actor_id if verified else None
            logger.info("User %s verified=%s by %s", user_id, verified, actor_id)
        if commit:
            await self.session.commit()
            await self.session.refresh(user)
        return user
