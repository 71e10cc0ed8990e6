"""Repository for loan ledger operations."""

import logging
import secrets
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.errors import ConflictError, NotFoundError, ValidationError
from components.core.money import check_fraction, parse_money, parse_rate, round_money
from components.loan.models import Loan
from components.loan import schemas
from components.transaction.models import Transaction, TransactionType
from components.transaction.processor import signed_amount
from components.user.models import User, utcnow
from components.workflow.models import WithdrawalRequest

logger = logging.getLogger(__name__)

ACCOUNT_NUMBER_PREFIX = "LA-"
ACCOUNT_NUMBER_DIGITS = 12
ACCOUNT_NUMBER_ATTEMPTS = 5

MONEY_FIELDS = ("principal_amount", "current_balance", "total_bonuses", "total_withdrawals")
# current_balance may be overwritten with any value
NON_NEGATIVE_FIELDS = ("principal_amount", "total_bonuses", "total_withdrawals")


def generate_account_number() -> str:
    """Random, unguessable account number."""
    digits = "".join(secrets.choice("0123456789") for _ in range(ACCOUNT_NUMBER_DIGITS))
    return f"{ACCOUNT_NUMBER_PREFIX}{digits}"


class LoanRepository:
    """Durable record of loans; enforces the one-loan-per-user invariant."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create_loan(self, user_id: int, principal: Any, monthly_rate: Any) -> Loan:
        """
        Create the user's loan account.

        The balance starts at the principal and an initial ``loan``
        transaction records the disbursement. A second loan for the same user
        raises ConflictError and leaves the existing one unchanged.
        """
        principal = parse_money(principal, "principal_amount")
        monthly_rate = parse_rate(monthly_rate, "monthly_rate")
        if principal < 0:
            raise ValidationError("principal_amount must not be negative")
        check_fraction(monthly_rate, "monthly_rate")

        owner = await self.session.execute(select(User.id).where(User.id == user_id))
        if owner.scalar_one_or_none() is None:
            raise NotFoundError("User not found")
        await self._ensure_no_loan(user_id)

        for _ in range(ACCOUNT_NUMBER_ATTEMPTS):
            now = utcnow()
            db_loan = Loan(
                user_id=user_id,
                account_number=generate_account_number(),
                principal_amount=principal,
                current_balance=principal,
                monthly_rate=monthly_rate,
                total_bonuses=Decimal("0.00"),
                total_withdrawals=Decimal("0.00"),
                created_at=now,
                updated_at=now,
            )
            self.session.add(db_loan)
            try:
                await self.session.flush()
                if principal > 0:
                    self.session.add(Transaction(
                        loan_id=db_loan.id,
                        amount=principal,
                        transaction_type=TransactionType.LOAN.value,
                        description="Initial loan disbursement",
                        transaction_date=now,
                    ))
                await self.session.commit()
            except IntegrityError:
                await self.session.rollback()
                # Either a concurrent create for the same user won the race,
                # or the account number collided and a new one is drawn.
                await self._ensure_no_loan(user_id)
                continue
            logger.info("Created loan %s (%s) for user %s", db_loan.id, db_loan.account_number, user_id)
            return db_loan

        raise ConflictError("Could not allocate a unique account number")

    async def _ensure_no_loan(self, user_id: int) -> None:
        result = await self.session.execute(select(Loan.id).where(Loan.user_id == user_id))
        existing = result.scalar_one_or_none()
        if existing is not None:
            logger.warning("Rejected second loan for user %s (existing loan %s)", user_id, existing)
            raise ConflictError("User already has a loan account")

    async def get_loan(self, loan_id: int, for_update: bool = False) -> Loan:
        """Get loan by ID, always reading current values from the store."""
        query = select(Loan).where(Loan.id == loan_id).execution_options(populate_existing=True)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        loan = result.scalar_one_or_none()
        if loan is None:
            raise NotFoundError("Loan not found")
        return loan

    async def get_loan_by_user(self, user_id: int) -> Loan:
        """Get the loan owned by a user."""
        result = await self.session.execute(
            select(Loan).where(Loan.user_id == user_id).execution_options(populate_existing=True)
        )
        loan = result.scalar_one_or_none()
        if loan is None:
            raise NotFoundError("No loan account found")
        return loan

    async def update_loan_fields(self, loan_id: int, changes: schemas.LoanUpdate) -> Loan:
        """
        Overwrite any subset of the loan's editable fields.

        This is the administrative escape hatch: nothing is recomputed and
        ``current_balance`` may be set to any value, including one that no
        longer matches the transaction history (see ``reconcile``). Only
        fields whose value differs from the locked current row are written.
        """
        requested: Dict[str, Decimal] = {}
        for field, value in changes.model_dump(exclude_none=True).items():
            if field == "monthly_rate":
                value = parse_rate(value, field)
                check_fraction(value, field)
            else:
                value = parse_money(value, field)
                if field in NON_NEGATIVE_FIELDS and value < 0:
                    raise ValidationError(f"{field} must not be negative")
            requested[field] = value

        try:
            loan = await self.get_loan(loan_id, for_update=True)
            changed = {
                field: value
                for field, value in requested.items()
                if getattr(loan, field) != value
            }
            if changed:
                for field, value in changed.items():
                    setattr(loan, field, value)
                loan.updated_at = utcnow()
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        if changed:
            logger.info("Loan %s overwritten by admin: %s", loan_id, sorted(changed))
        return loan

    async def delete_loan(self, loan_id: int) -> None:
        """Delete a loan and all its transactions. Irreversible."""
        try:
            loan = await self.get_loan(loan_id, for_update=True)
            await self.session.execute(
                delete(Transaction).where(Transaction.loan_id == loan_id)
            )
            await self.session.execute(
                update(WithdrawalRequest)
                .where(WithdrawalRequest.loan_id == loan_id)
                .values(loan_id=None)
                .execution_options(synchronize_session=False)
            )
            await self.session.delete(loan)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info("Deleted loan %s and its transactions", loan_id)

    async def list_loans_with_summary(self) -> List[schemas.LoanSummary]:
        """All loans with transaction count, last transaction date and owner."""
        stats = (
            select(
                Transaction.loan_id.label("loan_id"),
                func.count(Transaction.id).label("transaction_count"),
                func.max(Transaction.transaction_date).label("last_transaction_date"),
            )
            .group_by(Transaction.loan_id)
            .subquery()
        )
        result = await self.session.execute(
            select(Loan, User, stats.c.transaction_count, stats.c.last_transaction_date)
            .join(User, User.id == Loan.user_id)
            .outerjoin(stats, stats.c.loan_id == Loan.id)
            .order_by(Loan.id)
            .execution_options(populate_existing=True)
        )

        summaries = []
        for loan, owner, transaction_count, last_transaction_date in result.all():
            summaries.append(schemas.LoanSummary(
                **schemas.Loan.model_validate(loan).model_dump(),
                transaction_count=transaction_count or 0,
                last_transaction_date=last_transaction_date,
                owner_email=owner.email,
                owner_name=owner.name,
            ))
        return summaries

    async def reconcile(self, loan_id: int) -> schemas.Reconciliation:
        """
        Compare the stored balance with the one derived from the history.

        Derived balance = principal + monthly payments + bonuses - withdrawals.
        Any drift comes from direct administrative overwrites.
        """
        loan = await self.get_loan(loan_id)
        result = await self.session.execute(
            select(
                Transaction.transaction_type,
                func.coalesce(func.sum(Transaction.amount), 0),
                func.count(Transaction.id),
            )
            .where(Transaction.loan_id == loan_id)
            .group_by(Transaction.transaction_type)
        )
        totals = {kind.value: Decimal("0.00") for kind in TransactionType}
        transaction_count = 0
        for transaction_type, total, count in result.all():
            totals[transaction_type] = round_money(total)
            transaction_count += count

        derived = round_money(loan.principal_amount)
        for transaction_type, total in totals.items():
            derived += signed_amount(transaction_type, total)
        stored = round_money(loan.current_balance)
        drift = stored - derived

        return schemas.Reconciliation(
            loan_id=loan.id,
            stored_balance=stored,
            derived_balance=derived,
            drift=drift,
            total_monthly_payments=totals[TransactionType.MONTHLY_PAYMENT.value],
            total_bonuses=totals[TransactionType.BONUS.value],
            total_withdrawals=totals[TransactionType.WITHDRAWAL.value],
            transaction_count=transaction_count,
            consistent=drift == 0,
        )
