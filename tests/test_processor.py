import asyncio
import random
from datetime import datetime
from decimal import Decimal

import pytest

from components.core.errors import NotFoundError, ValidationError
from components.loan.repository import LoanRepository
from components.transaction.models import TransactionType
from components.transaction.processor import TransactionProcessor


async def test_bonus_then_withdrawal_scenario(session, loan):
    processor = TransactionProcessor(session)
    repo = LoanRepository(session)

    bonus = await processor.add_transaction(
        loan.id, TransactionType.BONUS, Decimal("50"), bonus_percentage=Decimal("0.005"),
    )
    assert bonus.bonus_percentage == Decimal("0.0050")
    state = await repo.get_loan(loan.id)
    assert state.current_balance == Decimal("10050.00")
    assert state.total_bonuses == Decimal("50.00")

    await processor.add_transaction(loan.id, TransactionType.WITHDRAWAL, Decimal("200"))
    state = await repo.get_loan(loan.id)
    assert state.current_balance == Decimal("9850.00")
    assert state.total_withdrawals == Decimal("200.00")
    assert state.total_bonuses == Decimal("50.00")


async def test_monthly_payment_only_moves_balance(session, loan):
    await TransactionProcessor(session).add_transaction(loan.id, "monthly_payment", "100.00")
    state = await LoanRepository(session).get_loan(loan.id)
    assert state.current_balance == Decimal("10100.00")
    assert state.total_bonuses == Decimal("0.00")
    assert state.total_withdrawals == Decimal("0.00")


@pytest.mark.parametrize("kwargs", [
    {"transaction_type": "monthly_payment", "amount": Decimal("0")},
    {"transaction_type": "bonus", "amount": Decimal("-5")},
    {"transaction_type": "monthly_payment", "amount": Decimal("10"), "bonus_percentage": Decimal("0.01")},
    {"transaction_type": "bonus", "amount": Decimal("10"), "bonus_percentage": Decimal("1.5")},
    {"transaction_type": "refund", "amount": Decimal("10")},
    {"transaction_type": "bonus", "amount": "ten"},
])
async def test_invalid_transactions_are_rejected(session, loan, kwargs):
    processor = TransactionProcessor(session)
    with pytest.raises(ValidationError):
        await processor.add_transaction(loan.id, **kwargs)

    history = await processor.list_transactions(loan.id)
    assert len(history) == 1
    state = await LoanRepository(session).get_loan(loan.id)
    assert state.current_balance == Decimal("10000.00")


async def test_withdrawal_beyond_balance_applies_nothing(session, loan):
    processor = TransactionProcessor(session)
    loan_id = loan.id
    with pytest.raises(ValidationError, match="exceeds current balance"):
        await processor.add_transaction(loan_id, TransactionType.WITHDRAWAL, Decimal("10000.01"))

    state = await LoanRepository(session).get_loan(loan_id)
    assert state.current_balance == Decimal("10000.00")
    assert state.total_withdrawals == Decimal("0.00")
    assert len(await processor.list_transactions(loan_id)) == 1

    # Withdrawing the exact balance is allowed
    await processor.add_transaction(loan_id, TransactionType.WITHDRAWAL, Decimal("10000.00"))
    state = await LoanRepository(session).get_loan(loan_id)
    assert state.current_balance == Decimal("0.00")


async def test_unknown_loan(session):
    processor = TransactionProcessor(session)
    with pytest.raises(NotFoundError):
        await processor.add_transaction(404, TransactionType.BONUS, Decimal("1"))
    with pytest.raises(NotFoundError):
        await processor.list_transactions(404)


async def test_repeated_cents_do_not_drift(session, loan):
    processor = TransactionProcessor(session)
    for _ in range(30):
        await processor.add_transaction(loan.id, TransactionType.MONTHLY_PAYMENT, Decimal("0.10"))

    state = await LoanRepository(session).get_loan(loan.id)
    assert state.current_balance == Decimal("10003.00")


@pytest.mark.parametrize("kwargs, message", [
    ({"amount": "1.005"}, "amount must not have more than 2 decimal places"),
    ({"amount": Decimal("0.001")}, "amount must not have more than 2 decimal places"),
    ({"amount": "5", "bonus_percentage": "0.00005"}, "bonus_percentage must not have more than 4 decimal places"),
])
async def test_sub_cent_amounts_are_rejected(session, loan, kwargs, message):
    processor = TransactionProcessor(session)
    with pytest.raises(ValidationError, match=message):
        await processor.add_transaction(loan.id, TransactionType.BONUS, **kwargs)

    state = await LoanRepository(session).get_loan(loan.id)
    assert state.current_balance == Decimal("10000.00")


async def test_trailing_zeros_are_not_extra_places(session, loan):
    transaction = await TransactionProcessor(session).add_transaction(
        loan.id, TransactionType.BONUS, "1.5000", bonus_percentage="0.010000",
    )
    assert transaction.amount == Decimal("1.50")
    assert transaction.bonus_percentage == Decimal("0.0100")


async def test_balance_matches_replayed_history(session, loan):
    rng = random.Random(7)
    processor = TransactionProcessor(session)
    expected = Decimal("10000.00")
    for _ in range(40):
        kind = rng.choice([TransactionType.MONTHLY_PAYMENT, TransactionType.BONUS, TransactionType.WITHDRAWAL])
        # At most 200.00 each, so 40 withdrawals never exhaust the balance
        amount = Decimal(rng.randint(1, 20000)) / 100
        await processor.add_transaction(loan.id, kind, amount)
        expected += -amount if kind == TransactionType.WITHDRAWAL else amount

    state = await LoanRepository(session).get_loan(loan.id)
    assert state.current_balance == expected
    report = await LoanRepository(session).reconcile(loan.id)
    assert report.consistent
    assert report.derived_balance == expected


async def test_transactions_listed_most_recent_first(session, loan):
    processor = TransactionProcessor(session)
    march = await processor.add_transaction(
        loan.id, TransactionType.MONTHLY_PAYMENT, Decimal("1"), transaction_date=datetime(2030, 3, 1),
    )
    january = await processor.add_transaction(
        loan.id, TransactionType.MONTHLY_PAYMENT, Decimal("1"), transaction_date=datetime(2030, 1, 1),
    )
    february = await processor.add_transaction(
        loan.id, TransactionType.MONTHLY_PAYMENT, Decimal("1"), transaction_date=datetime(2030, 2, 1),
    )

    history = await processor.list_transactions(loan.id)
    assert [t.id for t in history[:3]] == [march.id, february.id, january.id]

    limited = await processor.list_transactions(loan.id, limit=2)
    assert [t.id for t in limited] == [march.id, february.id]

    with pytest.raises(ValidationError):
        await processor.list_transactions(loan.id, limit=0)


async def test_concurrent_transactions_lose_no_update(db_manager, loan):
    amounts = [Decimal(n) for n in range(1, 11)]

    async def apply(amount):
        async with db_manager.get_db() as db:
            await TransactionProcessor(db).add_transaction(loan.id, TransactionType.MONTHLY_PAYMENT, amount)

    await asyncio.gather(*(apply(amount) for amount in amounts))

    async with db_manager.get_db() as db:
        state = await LoanRepository(db).get_loan(loan.id)
        history = await TransactionProcessor(db).list_transactions(loan.id)
    assert state.current_balance == Decimal("10000.00") + sum(amounts)
    assert len(history) == len(amounts) + 1


async def test_offset_pages_through_history(session, loan):
    processor = TransactionProcessor(session)
    created = []
    for month in (1, 2, 3):
        created.append(await processor.add_transaction(
            loan.id, TransactionType.MONTHLY_PAYMENT, Decimal("1"), transaction_date=datetime(2030, month, 1),
        ))
    january, february, _ = created

    page = await processor.list_transactions(loan.id, limit=2, offset=1)
    assert [t.id for t in page] == [february.id, january.id]

    with pytest.raises(ValidationError):
        await processor.list_transactions(loan.id, offset=-1)


async def test_user_history_counts_every_transaction(session, user, other_user, loan):
    processor = TransactionProcessor(session)
    created = []
    for month in range(1, 6):
        created.append(await processor.add_transaction(
            loan.id, TransactionType.MONTHLY_PAYMENT, Decimal("10"), transaction_date=datetime(2030, month, 1),
        ))

    page, total = await processor.list_user_transactions(user.id, limit=2, offset=1)
    assert total == 6
    assert [t.id for t in page] == [created[3].id, created[2].id]

    empty, none = await processor.list_user_transactions(other_user.id)
    assert empty == [] and none == 0

    with pytest.raises(NotFoundError):
        await processor.list_user_transactions(4040)


async def test_import_applies_valid_rows_and_reports_the_rest(session, user, loan):
    loan_id, user_id = loan.id, user.id
    rows = [
        {"email": "Client@Example.com", "amount": "250.00", "transaction_type": "monthly_payment",
         "transaction_date": "2030-01-15"},
        {"email": "nobody@example.com", "amount": "10", "transaction_type": "bonus",
         "transaction_date": "2030-01-15"},
        {"email": "client@example.com", "amount": "99999", "transaction_type": "withdrawal",
         "transaction_date": "2030-01-16"},
        {"email": "client@example.com", "amount": "5", "transaction_type": "bonus",
         "transaction_date": "15.01.2030"},
        {"email": "client@example.com", "amount": "", "transaction_type": "bonus",
         "transaction_date": "2030-01-17"},
        {"email": "client@example.com", "amount": "50", "transaction_type": "bonus",
         "transaction_date": "2030-01-18", "bonus_percentage": "0.005", "reference_id": "batch-7"},
    ]

    result = await TransactionProcessor(session).import_transactions(rows)

    assert result.total_rows == 6
    assert result.imported == 2
    assert result.failed == 4
    assert [t.row for t in result.transactions] == [2, 7]
    assert {t.loan_id for t in result.transactions} == {loan_id}
    assert {t.user_id for t in result.transactions} == {user_id}
    errors = {e.row: e.message for e in result.errors}
    assert errors[3] == "No loan account found for email nobody@example.com"
    assert errors[4] == "Withdrawal amount exceeds current balance"
    assert "transaction_date" in errors[5]
    assert errors[6] == "amount is required"

    state = await LoanRepository(session).get_loan(loan_id)
    assert state.current_balance == Decimal("10300.00")
    assert state.total_bonuses == Decimal("50.00")
    history = await TransactionProcessor(session).list_transactions(loan_id)
    assert history[0].reference_id == "batch-7"
    assert history[0].bonus_percentage == Decimal("0.0050")
    assert history[1].description == "Imported monthly_payment"


async def test_import_of_nothing(session):
    result = await TransactionProcessor(session).import_transactions([])
    assert result.total_rows == 0
    assert result.imported == 0
    assert result.errors == []
