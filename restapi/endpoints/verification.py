"""Account verification request endpoints."""

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
    prefix="/verification-requests",
    tags=["verification requests"],
    responses={404: {"description": "Not found"}},
)


@router.post("", response_model=schemas.VerificationRequest, status_code=status.HTTP_201_CREATED)
async def submit_verification_request(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    """Ask an admin to verify the caller's account."""
    engine = WorkflowEngine(db)
    return await bounded(engine.submit(RequestKind.VERIFICATION, identity.user_id))


@router.get("", response_model=List[schemas.VerificationRequest])
async def list_verification_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    """Admins see every request; users see their own. Newest first."""
    engine = WorkflowEngine(db)
    return await bounded(engine.list_requests(
        RequestKind.VERIFICATION,
        user_id=None if identity.is_admin else identity.user_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    ))


@router.get("/{request_id}", response_model=schemas.VerificationRequest)
async def read_verification_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    request = await bounded(WorkflowEngine(db).get(RequestKind.VERIFICATION, request_id))
    ensure_owner_or_admin(identity, request.user_id)
    return request


@router.put("/{request_id}", response_model=schemas.VerificationRequest)
async def review_verification_request(
    request_id: int,
    update: schemas.VerificationRequestUpdate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    """Approve or reject a pending request. Approval verifies the account."""
    engine = WorkflowEngine(db)
    request = await bounded(engine.transition(
        RequestKind.VERIFICATION,
        request_id,
        update.status,
        identity.user_id,
        admin_notes=update.admin_notes,
    ))
    read_cache.invalidate(request.user_id)
    return request
