"""User endpoints for the API."""

from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.cache import read_cache
from components.core.init_db import get_db
from components.transaction import schemas as transaction_schemas
from components.transaction.processor import TransactionProcessor
from components.user.repository import UserRepository
from components.user import schemas
from restapi.endpoints.auth import get_current_user, require_admin
from restapi.endpoints.helpers import bounded, ensure_owner_or_admin

router = APIRouter(
    prefix="/users",
    tags=["users"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=List[schemas.User])
async def read_users(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=100, description="Number of records to return"),
    db: AsyncSession = Depends(get_db),
    admin: schemas.Identity = Depends(require_admin),
):
    """Get list of users."""
    repo = UserRepository(db)
    return await bounded(repo.list_users(skip=skip, limit=limit))


@router.get("/{user_id}", response_model=schemas.User)
async def read_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    identity: schemas.Identity = Depends(get_current_user),
):
    """Get a specific user by ID (served from the read cache)."""
    ensure_owner_or_admin(identity, user_id)
    repo = UserRepository(db)

    async def load() -> schemas.User:
        return schemas.User.model_validate(await repo.get_user(user_id))

    return await bounded(read_cache.get_or_load(("user", user_id), load))


@router.patch("/{user_id}/verified", response_model=schemas.User)
async def set_user_verified(
    user_id: int,
    update: schemas.VerifiedUpdate,
    db: AsyncSession = Depends(get_db),
    admin: schemas.Identity = Depends(require_admin),
):
    """Manually verify or unverify an account, bypassing the request workflow."""
    repo = UserRepository(db)
    user = await bounded(repo.set_verified(user_id, update.account_verified, actor_id=admin.user_id))
    read_cache.invalidate(user_id)
    return user


@router.get("/{user_id}/transactions", response_model=transaction_schemas.UserTransactionHistory)
async def read_user_transactions(
    user_id: int,
    limit: int = Query(50, ge=1, le=1000, description="Number of transactions to return"),
    offset: int = Query(0, ge=0, description="Number of transactions to skip"),
    db: AsyncSession = Depends(get_db),
    admin: schemas.Identity = Depends(require_admin),
):
    """Get a user's transaction history across their loan, with the total count for paging."""
    user = await bounded(UserRepository(db).get_user(user_id))
    transactions, total = await bounded(
        TransactionProcessor(db).list_user_transactions(user_id, limit=limit, offset=offset)
    )
    return transaction_schemas.UserTransactionHistory(
        user=schemas.User.model_validate(user),
        transactions=[transaction_schemas.Transaction.model_validate(t) for t in transactions],
        total_count=total,
        limit=limit,
        offset=offset,
    )
