"""Pydantic schemas for user data validation."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from components.user.models import UserRole


class UserBase(BaseModel):
    """Base user schema."""
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None


class UserCreate(UserBase):
    """Schema for user creation."""
    role: UserRole = UserRole.USER


class User(UserBase):
    """Schema for user response."""
    id: int
    name: str
    role: str
    account_verified: bool
    verified_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class VerifiedUpdate(BaseModel):
    """Schema for the manual verification toggle."""
    account_verified: bool


class Identity(BaseModel):
    """Authenticated caller resolved from a bearer token."""
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value
