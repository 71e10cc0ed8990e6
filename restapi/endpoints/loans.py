"""Loan and transaction endpoints for the API."""

from typing import List, Optional
from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.cache import read_cache
from components.core.init_db import get_db
from components.loan import schemas
from components.loan.repository import LoanRepository
from components.transaction import schemas as transaction_schemas
from components.transaction.importer import read_transaction_rows
from components.transaction.processor import TransactionProcessor
from components.user.schemas import Identity
from restapi.endpoints.auth import get_current_user, require_admin
from restapi.endpoints.helpers import bounded, ensure_owner_or_admin

router = APIRouter(
    prefix="/loans",
    tags=["loans"],
    responses={404: {"description": "Not found"}},
)


@router.post("", response_model=schemas.Loan, status_code=status.HTTP_201_CREATED)
async def create_loan(
    loan_in: schemas.LoanCreate,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Create the loan account for a user (one per user)."""
    repo = LoanRepository(db)
    loan = await bounded(repo.create_loan(loan_in.user_id, loan_in.principal_amount, loan_in.monthly_rate))
    read_cache.invalidate(loan.user_id)
    return loan


@router.get("", response_model=List[schemas.LoanSummary])
async def list_loans(
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """
    Get all loans with their derived summary.

    Each entry adds the number of transactions, the date of the latest one
    and the owner's email and name.
    """
    repo = LoanRepository(db)
    return await bounded(repo.list_loans_with_summary())


@router.post("/transactions/import", response_model=transaction_schemas.TransactionImportResult)
async def import_transactions(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """
    Bulk-record transactions from a CSV or Excel (.xlsx) file.

    Required columns: email, amount, transaction_type, transaction_date
    (YYYY-MM-DD). Optional: description, bonus_percentage, reference_id.

    Each row is matched to the loan of the user with that email and applied
    on its own. Rows that fail are listed with their row number; the rest
    are still recorded.
    """
    rows = read_transaction_rows(await file.read(), file.filename)
    result = await bounded(TransactionProcessor(db).import_transactions(rows))
    for user_id in {item.user_id for item in result.transactions}:
        read_cache.invalidate(user_id)
    return result


@router.get("/me", response_model=schemas.Loan)
async def read_my_loan(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    """Get the caller's own loan (served from the read cache)."""
    repo = LoanRepository(db)

    async def load() -> schemas.Loan:
        return schemas.Loan.model_validate(await repo.get_loan_by_user(identity.user_id))

    return await bounded(read_cache.get_or_load(("loan", identity.user_id), load))


@router.get("/{loan_id}", response_model=schemas.Loan)
async def read_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    """Get a specific loan by ID."""
    loan = await bounded(LoanRepository(db).get_loan(loan_id))
    ensure_owner_or_admin(identity, loan.user_id)
    return loan


@router.patch("/{loan_id}", response_model=schemas.Loan)
async def update_loan(
    loan_id: int,
    changes: schemas.LoanUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """
    Overwrite loan fields directly.

    Only the supplied fields that differ from the stored values are written.
    Nothing is recomputed; use the reconciliation view to spot drift from the
    transaction history.
    """
    loan = await bounded(LoanRepository(db).update_loan_fields(loan_id, changes))
    read_cache.invalidate(loan.user_id)
    return loan


@router.delete("/{loan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Delete a loan and all its transactions. Confirmation is the caller's job."""
    repo = LoanRepository(db)
    loan = await bounded(repo.get_loan(loan_id))
    owner_id = loan.user_id
    await bounded(repo.delete_loan(loan_id))
    read_cache.invalidate(owner_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{loan_id}/reconciliation", response_model=schemas.Reconciliation)
async def reconcile_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Compare the stored balance with the balance derived from transactions."""
    return await bounded(LoanRepository(db).reconcile(loan_id))


@router.post(
    "/{loan_id}/transactions",
    response_model=transaction_schemas.Transaction,
    status_code=status.HTTP_201_CREATED,
)
async def add_transaction(
    loan_id: int,
    transaction_in: transaction_schemas.TransactionCreate,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Record a transaction and update the loan balance atomically."""
    loan = await bounded(LoanRepository(db).get_loan(loan_id))
    owner_id = loan.user_id
    processor = TransactionProcessor(db)
    transaction = await bounded(processor.add_transaction(
        loan_id,
        transaction_in.transaction_type,
        transaction_in.amount,
        transaction_date=transaction_in.transaction_date,
        description=transaction_in.description,
        bonus_percentage=transaction_in.bonus_percentage,
    ))
    read_cache.invalidate(owner_id)
    return transaction


@router.get("/{loan_id}/transactions", response_model=List[transaction_schemas.Transaction])
async def list_transactions(
    loan_id: int,
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Maximum number of transactions"),
    offset: int = Query(0, ge=0, description="Number of transactions to skip"),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_user),
):
    """Get a loan's transactions, most recent first."""
    loan = await bounded(LoanRepository(db).get_loan(loan_id))
    ensure_owner_or_admin(identity, loan.user_id)
    return await bounded(TransactionProcessor(db).list_transactions(loan_id, limit, offset))
