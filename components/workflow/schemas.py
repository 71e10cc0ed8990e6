"""Pydantic schemas for workflow requests."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel

from components.workflow.states import (
    MeetingStatus,
    MeetingType,
    Urgency,
    VerificationStatus,
    WithdrawalStatus,
)


class VerificationRequestUpdate(BaseModel):
    status: str
    admin_notes: Optional[str] = None


class VerificationRequest(BaseModel):
    id: int
    user_id: int
    status: VerificationStatus
    requested_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewer_id: Optional[int] = None
    admin_notes: Optional[str] = None

    class Config:
        from_attributes = True


class WithdrawalRequestCreate(BaseModel):
    # Optional here so that missing fields surface as ValidationError (400)
    amount: Optional[Decimal] = None
    reason: Optional[str] = None
    urgency: Optional[str] = None
    notes: Optional[str] = None


class WithdrawalRequestUpdate(BaseModel):
    status: str
    admin_notes: Optional[str] = None


class WithdrawalRequest(BaseModel):
    id: int
    user_id: int
    loan_id: Optional[int] = None
    amount: Decimal
    reason: str
    urgency: Urgency
    notes: Optional[str] = None
    status: WithdrawalStatus
    admin_notes: Optional[str] = None
    reviewer_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MeetingRequestCreate(BaseModel):
    purpose: Optional[str] = None
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    meeting_type: Optional[str] = None
    urgency: Optional[str] = None
    topics: Optional[str] = None
    notes: Optional[str] = None
    phone_number: Optional[str] = None
    location: Optional[str] = None


class MeetingRequestUpdate(BaseModel):
    status: str
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None
    meeting_link: Optional[str] = None
    admin_notes: Optional[str] = None


class MeetingRequest(BaseModel):
    id: int
    user_id: int
    purpose: str
    topics: Optional[str] = None
    notes: Optional[str] = None
    preferred_date: date
    preferred_time: time
    meeting_type: MeetingType
    urgency: Urgency
    phone_number: Optional[str] = None
    location: Optional[str] = None
    status: MeetingStatus
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[time] = None
    meeting_link: Optional[str] = None
    admin_notes: Optional[str] = None
    reviewer_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
