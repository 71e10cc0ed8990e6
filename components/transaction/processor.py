"""Transaction processor: validates and applies ledger entries to a loan."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.errors import NotFoundError, ServiceError, ValidationError
from components.core.money import check_fraction, parse_money, parse_rate
from components.loan.models import Loan
from components.transaction import schemas
from components.transaction.models import Transaction, TransactionType
from components.user.models import User, utcnow

logger = logging.getLogger(__name__)

# Multipliers applied to (current_balance, total_bonuses, total_withdrawals)
BALANCE_EFFECTS = {
    TransactionType.LOAN: (0, 0, 0),
    TransactionType.MONTHLY_PAYMENT: (1, 0, 0),
    TransactionType.BONUS: (1, 1, 0),
    TransactionType.WITHDRAWAL: (-1, 0, 1),
}


def parse_transaction_type(value: Any) -> TransactionType:
    try:
        return TransactionType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in TransactionType)
        raise ValidationError(f"transaction_type must be one of: {allowed}")


class TransactionProcessor:
    """Applies transactions to loans as single units of work."""

    def __init__(self, session: AsyncSession):
        """Initialize processor with database session."""
        self.session = session

    async def add_transaction(
        self,
        loan_id: int,
        transaction_type: Any,
        amount: Any,
        transaction_date: Optional[datetime] = None,
        description: Optional[str] = None,
        bonus_percentage: Any = None,
        reference_id: Optional[str] = None,
        commit: bool = True,
    ) -> Transaction:
        """
        Insert a transaction and apply its effect on the loan aggregates.

        The aggregate change is a single conditional UPDATE that adds the
        delta inside the database, so concurrent calls on the same loan
        serialize on the row and never lose an update. A withdrawal only
        matches while the balance covers it.

        With ``commit=False`` nothing is committed and the caller owns the
        unit of work; on any failure here the session is rolled back only
        when this call owns it.
        """
        kind = parse_transaction_type(transaction_type)
        amount = parse_money(amount, "amount")
        if amount <= 0:
            raise ValidationError("amount must be greater than zero")
        if bonus_percentage is not None:
            if kind != TransactionType.BONUS:
                raise ValidationError("bonus_percentage is only allowed for bonus transactions")
            bonus_percentage = parse_rate(bonus_percentage, "bonus_percentage")
            check_fraction(bonus_percentage, "bonus_percentage")

        balance_sign, bonus_sign, withdrawal_sign = BALANCE_EFFECTS[kind]
        stmt = (
            update(Loan)
            .where(Loan.id == loan_id)
            .values(
                current_balance=Loan.current_balance + balance_sign * amount,
                total_bonuses=Loan.total_bonuses + bonus_sign * amount,
                total_withdrawals=Loan.total_withdrawals + withdrawal_sign * amount,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if kind == TransactionType.WITHDRAWAL:
            stmt = stmt.where(Loan.current_balance >= amount)

        try:
            result = await self.session.execute(stmt)
            if result.rowcount == 0:
                exists = await self.session.execute(select(Loan.id).where(Loan.id == loan_id))
                if exists.scalar_one_or_none() is None:
                    raise NotFoundError("Loan not found")
                raise ValidationError("Withdrawal amount exceeds current balance")

            db_transaction = Transaction(
                loan_id=loan_id,
                amount=amount,
                transaction_type=kind.value,
                bonus_percentage=bonus_percentage,
                description=description,
                reference_id=reference_id,
                transaction_date=transaction_date or utcnow(),
            )
            self.session.add(db_transaction)
            await self.session.flush()
            if commit:
                await self.session.commit()
        except Exception:
            if commit:
                await self.session.rollback()
            raise

        logger.info(
            "Applied %s of %s to loan %s (transaction %s)",
            kind.value, amount, loan_id, db_transaction.id,
        )
        return db_transaction

    async def list_transactions(
        self,
        loan_id: int,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Transaction]:
        """List a loan's transactions, most recent first."""
        _check_page(limit, offset)
        exists = await self.session.execute(select(Loan.id).where(Loan.id == loan_id))
        if exists.scalar_one_or_none() is None:
            raise NotFoundError("Loan not found")

        query = (
            select(Transaction)
            .where(Transaction.loan_id == loan_id)
            .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_user_transactions(
        self,
        user_id: int,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Transaction], int]:
        """
        One page of a user's transaction history and the total row count.

        A user without a loan has an empty history; an unknown user raises
        NotFoundError.
        """
        _check_page(limit, offset)
        owner = await self.session.execute(select(User.id).where(User.id == user_id))
        if owner.scalar_one_or_none() is None:
            raise NotFoundError("User not found")

        result = await self.session.execute(
            select(Transaction)
            .join(Loan, Loan.id == Transaction.loan_id)
            .where(Loan.user_id == user_id)
            .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
            .offset(offset)
            .limit(limit)
        )
        total = await self.session.execute(
            select(func.count(Transaction.id))
            .join(Loan, Loan.id == Transaction.loan_id)
            .where(Loan.user_id == user_id)
        )
        return list(result.scalars().all()), total.scalar_one()

    async def import_transactions(self, rows: Sequence[Mapping[str, Any]]) -> schemas.TransactionImportResult:
        """
        Apply imported rows one by one through ``add_transaction``.

        Each row is matched to a loan by the owner's email and committed on
        its own; a failing row is reported with its spreadsheet row number
        (the header is row 1) and does not stop the rest.
        """
        imported: List[schemas.ImportedTransaction] = []
        errors: List[schemas.TransactionImportError] = []

        for row_number, row in enumerate(rows, start=2):
            try:
                email = _required(row, "email").lower()
                transaction_date = _parse_import_date(_required(row, "transaction_date"))
                loan = await self.session.execute(
                    select(Loan.id, Loan.user_id, Loan.account_number)
                    .join(User, User.id == Loan.user_id)
                    .where(func.lower(User.email) == email)
                )
                match = loan.first()
                if match is None:
                    raise NotFoundError(f"No loan account found for email {email}")
                loan_id, user_id, account_number = match

                transaction = await self.add_transaction(
                    loan_id,
                    _required(row, "transaction_type"),
                    _required(row, "amount"),
                    transaction_date=transaction_date,
                    description=_optional(row, "description") or f"Imported {row.get('transaction_type')}",
                    bonus_percentage=_optional(row, "bonus_percentage"),
                    reference_id=_optional(row, "reference_id"),
                )
                imported.append(schemas.ImportedTransaction(
                    row=row_number,
                    transaction_id=transaction.id,
                    loan_id=loan_id,
                    user_id=user_id,
                    account_number=account_number,
                    transaction_type=transaction.transaction_type,
                    amount=transaction.amount,
                ))
            except ServiceError as error:
                errors.append(schemas.TransactionImportError(row=row_number, message=error.message))

        logger.info("Imported %d of %d transaction rows", len(imported), len(rows))
        if errors:
            logger.warning("%d transaction rows rejected on import", len(errors))
        return schemas.TransactionImportResult(
            total_rows=len(rows),
            imported=len(imported),
            failed=len(errors),
            transactions=imported,
            errors=errors,
        )


def _check_page(limit: Optional[int], offset: int) -> None:
    if limit is not None and limit <= 0:
        raise ValidationError("limit must be positive")
    if offset < 0:
        raise ValidationError("offset must not be negative")


def _optional(row: Mapping[str, Any], name: str) -> Optional[str]:
    value = row.get(name)
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def _required(row: Mapping[str, Any], name: str) -> str:
    value = _optional(row, name)
    if value is None:
        raise ValidationError(f"{name} is required")
    return value


def _parse_import_date(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError("transaction_date must be a date in YYYY-MM-DD format")


def signed_amount(transaction_type: str, amount: Decimal) -> Decimal:
    """Effect of a transaction on the balance."""
    return BALANCE_EFFECTS[TransactionType(transaction_type)][0] * amount
