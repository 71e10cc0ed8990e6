"""Meeting request endpoints."""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.init_db import get_db
from components.user.schemas import Identity
from components.workflow import schemas
from components.workflow.engine import WorkflowEngine
from components.workflow.states import RequestKind
from restapi.endpoints.auth import get_current_user
from restapi.endpoints.helpers import bounded, ensure_owner_or_admin

router = APIRouter(
    prefix="/meeting-requests",
    tags=["meeting requests"],
    responses={404: {"description": "Not found"}},
)


@router.post("", response_model=schemas.MeetingRequest, status_code=status.HTTP_201_CREATED)
async def submit_meeting_request(
    request_in: schemas.MeetingRequestCreate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    """
    Request a meeting.

    Requires purpose, preferred_date (YYYY-MM-DD, not in the past) and
    preferred_time (HH:MM). Meeting type defaults to video.
    """
    engine = WorkflowEngine(db)
    return await bounded(engine.submit(RequestKind.MEETING, identity.user_id, request_in.model_dump()))


@router.get("", response_model=List[schemas.MeetingRequest])
async def list_meeting_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    engine = WorkflowEngine(db)
    return await bounded(engine.list_requests(
        RequestKind.MEETING,
        user_id=None if identity.is_admin else identity.user_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    ))


@router.get("/{request_id}", response_model=schemas.MeetingRequest)
async def read_meeting_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    request = await bounded(WorkflowEngine(db).get(RequestKind.MEETING, request_id))
    ensure_owner_or_admin(identity, request.user_id)
    return request


@router.put("/{request_id}", response_model=schemas.MeetingRequest)
async def update_meeting_request(
    request_id: int,
    update: schemas.MeetingRequestUpdate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    """
    Schedule, complete or cancel a meeting.

    Scheduling needs scheduled_date and scheduled_time, plus meeting_link for
    video meetings.
    """
    engine = WorkflowEngine(db)
    return await bounded(engine.transition(
        RequestKind.MEETING,
        request_id,
        update.status,
        identity.user_id,
        admin_notes=update.admin_notes,
        scheduled_date=update.scheduled_date,
        scheduled_time=update.scheduled_time,
        meeting_link=update.meeting_link,
    ))
