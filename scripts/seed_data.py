"""Script to seed demo data into the database."""

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

from components.core.init_db import db_manager
from components.core.security import create_user_token
from components.loan.repository import LoanRepository
from components.transaction.models import TransactionType
from components.transaction.processor import TransactionProcessor
from components.user.models import UserRole
from components.user.repository import UserRepository
from components.user.schemas import UserCreate


async def seed_data():
    """Create an admin, a client with a loan and a short history, and print tokens."""
    await db_manager.create_all()
    async with db_manager.get_db() as db:
        users = UserRepository(db)
        admin = await users.create(UserCreate(
            email="admin@example.com",
            first_name="Ada",
            last_name="Admin",
            role=UserRole.ADMIN,
        ))
        client = await users.create(UserCreate(
            email="client@example.com",
            first_name="Carl",
            last_name="Client",
        ))

        loan = await LoanRepository(db).create_loan(client.id, Decimal("10000.00"), Decimal("0.01"))

        processor = TransactionProcessor(db)
        start = datetime(2024, 1, 31)
        for month in range(3):
            await processor.add_transaction(
                loan.id,
                TransactionType.MONTHLY_PAYMENT,
                Decimal("100.00"),
                transaction_date=start + timedelta(days=30 * month),
                description="Monthly interest",
            )
        await processor.add_transaction(
            loan.id,
            TransactionType.BONUS,
            Decimal("50.00"),
            transaction_date=start + timedelta(days=90),
            bonus_percentage=Decimal("0.005"),
            description="Loyalty bonus",
        )

        print(f"Admin token:  {create_user_token(admin.id, admin.role)}")
        print(f"Client token: {create_user_token(client.id, client.role)}")
        print(f"Loan {loan.account_number} seeded for {client.email}")


if __name__ == "__main__":
    asyncio.run(seed_data())
