"""Pydantic schemas for transaction data validation."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel

from components.transaction.models import TransactionType
from components.user.schemas import User


class TransactionCreate(BaseModel):
    """Schema for transaction creation.

    Amount and bonus percentage are range-checked by the processor so that
    the error kind stays a ValidationError rather than a schema error.
    """
    transaction_type: TransactionType
    amount: Decimal
    transaction_date: Optional[datetime] = None
    description: Optional[str] = None
    bonus_percentage: Optional[Decimal] = None


class Transaction(BaseModel):
    """Schema for transaction response."""
    id: int
    loan_id: int
    amount: Decimal
    transaction_type: TransactionType
    bonus_percentage: Optional[Decimal] = None
    description: Optional[str] = None
    reference_id: Optional[str] = None
    transaction_date: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class ImportedTransaction(BaseModel):
    row: int
    transaction_id: int
    loan_id: int
    user_id: int
    account_number: str
    transaction_type: TransactionType
    amount: Decimal


class TransactionImportError(BaseModel):
    row: int
    message: str


class TransactionImportResult(BaseModel):
    """Outcome of a bulk import; rows are numbered as in the uploaded sheet."""
    total_rows: int
    imported: int
    failed: int
    transactions: List[ImportedTransaction] = []
    errors: List[TransactionImportError] = []


class UserTransactionHistory(BaseModel):
    user: User
    transactions: List[Transaction]
    total_count: int
    limit: int
    offset: int
