"""Withdrawal request endpoints."""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.cache import read_cache
from components.core.init_db import get_db
from components.user.schemas import Identity
from components.workflow import schemas
from components.workflow.engine import WorkflowEngine
from components.workflow.states import RequestKind
from restapi.endpoints.auth import get_current_user
from restapi.endpoints.helpers import bounded, ensure_owner_or_admin

router = APIRouter(
    prefix="/withdrawal-requests",
    tags=["withdrawal requests"],
    responses={404: {"description": "Not found"}},
)


@router.post("", response_model=schemas.WithdrawalRequest, status_code=status.HTTP_201_CREATED)
async def submit_withdrawal_request(
    request_in: schemas.WithdrawalRequestCreate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    """
    Request a withdrawal from the caller's loan account.

    The amount must be positive and covered by the current balance. Urgency
    defaults to normal.
    """
    engine = WorkflowEngine(db)
    return await bounded(engine.submit(RequestKind.WITHDRAWAL, identity.user_id, request_in.model_dump()))


@router.get("", response_model=List[schemas.WithdrawalRequest])
async def list_withdrawal_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    """Admins see every request; users see their own. Newest first."""
    engine = WorkflowEngine(db)
    return await bounded(engine.list_requests(
        RequestKind.WITHDRAWAL,
        user_id=None if identity.is_admin else identity.user_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    ))


@router.get("/{request_id}", response_model=schemas.WithdrawalRequest)
async def read_withdrawal_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    request = await bounded(WorkflowEngine(db).get(RequestKind.WITHDRAWAL, request_id))
    ensure_owner_or_admin(identity, request.user_id)
    return request


@router.put("/{request_id}", response_model=schemas.WithdrawalRequest)
async def review_withdrawal_request(
    request_id: int,
    update: schemas.WithdrawalRequestUpdate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    """
    Change the status of a withdrawal request.

    pending -> approved | rejected, approved -> processed. Moving to
    processed debits the loan exactly once, same as the complete action.
    """
    engine = WorkflowEngine(db)
    request = await bounded(engine.transition(
        RequestKind.WITHDRAWAL,
        request_id,
        update.status,
        identity.user_id,
        admin_notes=update.admin_notes,
    ))
    read_cache.invalidate(request.user_id)
    return request


@router.post("/{request_id}/complete", response_model=schemas.WithdrawalRequest)
async def complete_withdrawal_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    """Complete an approved withdrawal and record the ledger debit."""
    engine = WorkflowEngine(db)
    request = await bounded(engine.complete_withdrawal(request_id, identity.user_id))
    read_cache.invalidate(request.user_id)
    return request
