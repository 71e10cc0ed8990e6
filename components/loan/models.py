"""Loan account model for the database."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship

from components.core.database import Base
from components.user.models import utcnow


class Loan(Base):
    """Loan account; a user owns at most one."""
    __tablename__ = "loan_accounts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    account_number = Column(String(50), unique=True, nullable=False)
    principal_amount = Column(Numeric(15, 2), nullable=False)
    current_balance = Column(Numeric(15, 2), nullable=False)
    monthly_rate = Column(Numeric(5, 4), nullable=False)  # Fraction, 0.01 == 1%
    total_bonuses = Column(Numeric(15, 2), nullable=False, default=0)
    total_withdrawals = Column(Numeric(15, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    user = relationship("User", back_populates="loan", foreign_keys=[user_id])
    transactions = relationship(
        "Transaction",
        back_populates="loan",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
