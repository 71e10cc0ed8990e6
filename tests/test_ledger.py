import re
from decimal import Decimal

import pytest

from components.core.errors import ConflictError, NotFoundError, ValidationError
from components.loan.repository import LoanRepository
from components.loan.schemas import LoanUpdate
from components.transaction.models import TransactionType
from components.transaction.processor import TransactionProcessor
from components.workflow.engine import WorkflowEngine
from components.workflow.states import RequestKind


async def test_create_loan_starts_at_principal(session, user):
    loan = await LoanRepository(session).create_loan(user.id, Decimal("10000"), Decimal("0.01"))

    assert loan.user_id == user.id
    assert loan.principal_amount == Decimal("10000.00")
    assert loan.current_balance == Decimal("10000.00")
    assert loan.monthly_rate == Decimal("0.0100")
    assert loan.total_bonuses == Decimal("0.00")
    assert loan.total_withdrawals == Decimal("0.00")
    assert re.fullmatch(r"LA-\d{12}", loan.account_number)

    history = await TransactionProcessor(session).list_transactions(loan.id)
    assert [t.transaction_type for t in history] == [TransactionType.LOAN.value]
    assert history[0].amount == Decimal("10000.00")


async def test_account_numbers_are_unique(session, user, other_user):
    repo = LoanRepository(session)
    first = await repo.create_loan(user.id, Decimal("100"), Decimal("0.01"))
    second = await repo.create_loan(other_user.id, Decimal("100"), Decimal("0.01"))
    assert first.account_number != second.account_number


async def test_second_loan_for_user_conflicts_and_keeps_existing(session, user, loan):
    repo = LoanRepository(session)
    with pytest.raises(ConflictError):
        await repo.create_loan(user.id, Decimal("99999"), Decimal("0.05"))

    existing = await repo.get_loan_by_user(user.id)
    assert existing.id == loan.id
    assert existing.principal_amount == Decimal("10000.00")
    assert existing.monthly_rate == Decimal("0.0100")


async def test_create_loan_for_unknown_user(session):
    with pytest.raises(NotFoundError):
        await LoanRepository(session).create_loan(4242, Decimal("100"), Decimal("0.01"))


@pytest.mark.parametrize("principal, rate", [
    (Decimal("-1"), Decimal("0.01")),
    (Decimal("100"), Decimal("1")),
    (Decimal("100"), Decimal("-0.01")),
])
async def test_create_loan_rejects_out_of_range_values(session, user, principal, rate):
    with pytest.raises(ValidationError):
        await LoanRepository(session).create_loan(user.id, principal, rate)


async def test_get_loan_unknown_id(session):
    with pytest.raises(NotFoundError):
        await LoanRepository(session).get_loan(999)
    with pytest.raises(NotFoundError):
        await LoanRepository(session).get_loan_by_user(999)


async def test_update_loan_fields_writes_only_supplied_fields(session, loan):
    repo = LoanRepository(session)
    updated = await repo.update_loan_fields(loan.id, LoanUpdate(monthly_rate=Decimal("0.02")))

    assert updated.monthly_rate == Decimal("0.0200")
    assert updated.principal_amount == Decimal("10000.00")
    assert updated.current_balance == Decimal("10000.00")


async def test_update_loan_fields_with_identical_values_is_a_no_op(session, loan):
    repo = LoanRepository(session)
    before = (await repo.get_loan(loan.id)).updated_at

    updated = await repo.update_loan_fields(loan.id, LoanUpdate(
        principal_amount=Decimal("10000.00"),
        monthly_rate=Decimal("0.01"),
    ))
    assert updated.updated_at == before


async def test_update_loan_fields_allows_negative_balance_override(session, loan):
    repo = LoanRepository(session)
    updated = await repo.update_loan_fields(loan.id, LoanUpdate(current_balance=Decimal("-50")))
    assert updated.current_balance == Decimal("-50.00")

    fresh = await repo.get_loan(loan.id)
    assert fresh.current_balance == Decimal("-50.00")


@pytest.mark.parametrize("changes", [
    {"principal_amount": Decimal("-1")},
    {"total_bonuses": Decimal("-1")},
    {"total_withdrawals": Decimal("-0.01")},
    {"monthly_rate": Decimal("1.5")},
])
async def test_update_loan_fields_range_checks(session, loan, changes):
    with pytest.raises(ValidationError):
        await LoanRepository(session).update_loan_fields(loan.id, LoanUpdate(**changes))


async def test_update_unknown_loan(session):
    with pytest.raises(NotFoundError):
        await LoanRepository(session).update_loan_fields(123, LoanUpdate(current_balance=Decimal("1")))


async def test_delete_loan_cascades_transactions(session, user, loan):
    processor = TransactionProcessor(session)
    await processor.add_transaction(loan.id, TransactionType.MONTHLY_PAYMENT, Decimal("100"))
    request = await WorkflowEngine(session).submit(
        RequestKind.WITHDRAWAL, user.id, {"amount": "10", "reason": "Rent"},
    )

    repo = LoanRepository(session)
    await repo.delete_loan(loan.id)

    with pytest.raises(NotFoundError):
        await repo.get_loan(loan.id)
    with pytest.raises(NotFoundError):
        await processor.list_transactions(loan.id)
    detached = await WorkflowEngine(session).get(RequestKind.WITHDRAWAL, request.id)
    assert detached.loan_id is None

    # The user may be given a new loan afterwards
    replacement = await repo.create_loan(user.id, Decimal("500"), Decimal("0.01"))
    assert len(await processor.list_transactions(replacement.id)) == 1


async def test_delete_unknown_loan(session):
    with pytest.raises(NotFoundError):
        await LoanRepository(session).delete_loan(31337)


async def test_list_loans_with_summary(session, user, other_user, loan):
    repo = LoanRepository(session)
    processor = TransactionProcessor(session)
    await processor.add_transaction(loan.id, TransactionType.BONUS, Decimal("25"))
    await repo.create_loan(other_user.id, Decimal("0"), Decimal("0.01"))

    summaries = await repo.list_loans_with_summary()

    assert [s.user_id for s in summaries] == [user.id, other_user.id]
    first, second = summaries
    assert first.transaction_count == 2
    assert first.last_transaction_date is not None
    assert first.current_balance == Decimal("10025.00")
    assert first.owner_email == "client@example.com"
    assert first.owner_name == "Carl Client"
    # Zero principal records no disbursement
    assert second.transaction_count == 0
    assert second.last_transaction_date is None


async def test_reconcile_detects_drift_from_direct_overwrite(session, loan):
    repo = LoanRepository(session)
    processor = TransactionProcessor(session)
    await processor.add_transaction(loan.id, TransactionType.MONTHLY_PAYMENT, Decimal("100"))
    await processor.add_transaction(loan.id, TransactionType.WITHDRAWAL, Decimal("40"))

    report = await repo.reconcile(loan.id)
    assert report.consistent
    assert report.derived_balance == Decimal("10060.00")
    assert report.drift == Decimal("0.00")
    assert report.transaction_count == 3

    await repo.update_loan_fields(loan.id, LoanUpdate(current_balance=Decimal("10000")))
    report = await repo.reconcile(loan.id)
    assert not report.consistent
    assert report.stored_balance == Decimal("10000.00")
    assert report.drift == Decimal("-60.00")
