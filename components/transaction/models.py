"""Transaction model for the database."""

import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship

from components.core.database import Base
from components.user.models import utcnow


class TransactionType(str, enum.Enum):
    LOAN = "loan"  # Initial disbursement, no balance effect
    MONTHLY_PAYMENT = "monthly_payment"
    BONUS = "bonus"
    WITHDRAWAL = "withdrawal"


class Transaction(Base):
    """Immutable ledger entry; the sign is implied by the transaction type."""
    __tablename__ = "loan_transactions"

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(
        Integer,
        ForeignKey("loan_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount = Column(Numeric(15, 2), nullable=False)  # Always positive
    transaction_type = Column(String(50), nullable=False)
    bonus_percentage = Column(Numeric(5, 4), nullable=True)
    description = Column(Text, nullable=True)
    reference_id = Column(String(255), nullable=True)
    transaction_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    loan = relationship("Loan", back_populates="transactions")
