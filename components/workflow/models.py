"""Request models for the approval workflows."""

from sqlalchemy import Column, Integer, String, Text, Date, Time, DateTime, ForeignKey, Numeric

from components.core.database import Base
from components.user.models import utcnow
from components.workflow.states import (
    MeetingStatus,
    MeetingType,
    Urgency,
    VerificationStatus,
    WithdrawalStatus,
)


class VerificationRequest(Base):
    """Account verification request submitted by a user."""
    __tablename__ = "account_verification_requests"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=VerificationStatus.PENDING.value)
    requested_at = Column(DateTime, nullable=False, default=utcnow)
    reviewed_at = Column(DateTime, nullable=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    admin_notes = Column(Text, nullable=True)


class WithdrawalRequest(Base):
    """Request to withdraw funds from the user's loan account."""
    __tablename__ = "withdrawal_requests"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Detached (NULL) when the loan is deleted
    loan_id = Column(Integer, ForeignKey("loan_accounts.id"), nullable=True)
    amount = Column(Numeric(15, 2), nullable=False)
    reason = Column(Text, nullable=False)
    urgency = Column(String(20), nullable=False, default=Urgency.NORMAL.value)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=WithdrawalStatus.PENDING.value)
    admin_notes = Column(Text, nullable=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


class MeetingRequest(Base):
    """Request for a meeting with an advisor."""
    __tablename__ = "meeting_requests"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    purpose = Column(Text, nullable=False)
    topics = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    preferred_date = Column(Date, nullable=False)
    preferred_time = Column(Time, nullable=False)
    meeting_type = Column(String(20), nullable=False, default=MeetingType.VIDEO.value)
    urgency = Column(String(20), nullable=False, default=Urgency.NORMAL.value)
    phone_number = Column(String(50), nullable=True)
    location = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=MeetingStatus.PENDING.value)
    scheduled_date = Column(Date, nullable=True)
    scheduled_time = Column(Time, nullable=True)
    meeting_link = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
