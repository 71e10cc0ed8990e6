"""Pydantic schemas for loan data validation."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel


class LoanCreate(BaseModel):
    """Schema for loan creation."""
    user_id: int
    principal_amount: Decimal
    monthly_rate: Decimal = Decimal("0.01")


class LoanUpdate(BaseModel):
    """Partial administrative overwrite; omitted fields are left alone."""
    principal_amount: Optional[Decimal] = None
    current_balance: Optional[Decimal] = None
    monthly_rate: Optional[Decimal] = None
    total_bonuses: Optional[Decimal] = None
    total_withdrawals: Optional[Decimal] = None


class Loan(BaseModel):
    """Schema for loan response."""
    id: int
    user_id: int
    account_number: str
    principal_amount: Decimal
    current_balance: Decimal
    monthly_rate: Decimal
    total_bonuses: Decimal
    total_withdrawals: Decimal
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LoanSummary(Loan):
    """Loan with derived aggregates for the admin overview."""
    transaction_count: int
    last_transaction_date: Optional[datetime] = None
    owner_email: str
    owner_name: str


class Reconciliation(BaseModel):
    """Stored balance against the balance derived from the transaction history."""
    loan_id: int
    stored_balance: Decimal
    derived_balance: Decimal
    drift: Decimal
    total_monthly_payments: Decimal
    total_bonuses: Decimal
    total_withdrawals: Decimal
    transaction_count: int
    consistent: bool
