"""Integration tests for onboarding writes and portfolio reads"""

import pytest
from datetime import date, datetime

from sqlalchemy import select

from microledger.domain.exceptions import (
    EntityNotFoundError,
    NoPendingInstallmentError,
    PermissionDeniedError,
    ValidationError,
)
from microledger.domain.models import PaymentFrequency, UserRole
from microledger.infrastructure.database.models import LedgerTransaction
from microledger.services.sweep import OverdueSweep
from microledger.utils.date_utils import utcnow


def test_create_loan_persists_schedule_and_disbursement(db, portfolio, admin, borrower, now):
    loan = portfolio.create_loan(admin, borrower.id, 1000, 4, PaymentFrequency.WEEKLY, date(2024, 1, 8), now=now)

    assert loan.status == "ACTIVE"
    assert loan.frequency == "WEEKLY"
    assert [i.due_date for i in loan.installments] == [
        date(2024, 1, 8),
        date(2024, 1, 15),
        date(2024, 1, 22),
        date(2024, 1, 29),
    ]
    assert all(i.status == "PENDING" and i.installment_amount_cents == 250 for i in loan.installments)

    disbursement = db.execute(select(LedgerTransaction).where(LedgerTransaction.loan_id == loan.id)).scalar_one()
    assert disbursement.type == "EXPENSE"
    assert disbursement.amount_cents == 1000
    assert disbursement.installment_id is None
    assert disbursement.added_by == admin.user_id


def test_create_loan_starts_on_business_date(portfolio, admin, borrower):
    # 19:00 UTC on Jan 4 is Jan 5 locally
    loan = portfolio.create_loan(admin, borrower.id, 300, 3, PaymentFrequency.DAILY, now=datetime(2024, 1, 4, 19, 0))

    assert loan.installments[0].due_date == date(2024, 1, 5)


def test_create_loan_rejects_invalid_schedule(portfolio, admin, borrower, now):
    with pytest.raises(ValidationError):
        portfolio.create_loan(admin, borrower.id, 0, 3, now=now)


def test_agent_creates_loan_for_own_borrower(portfolio, agent_principal, borrower, now):
    loan = portfolio.create_loan(agent_principal, borrower.id, 600, 2, now=now)
    assert len(loan.installments) == 2


def test_agent_cannot_create_loan_for_other_agents_borrower(portfolio, other_agent_principal, borrower, now):
    with pytest.raises(PermissionDeniedError):
        portfolio.create_loan(other_agent_principal, borrower.id, 600, 2, now=now)


def test_create_loan_for_unknown_borrower(portfolio, admin, now):
    with pytest.raises(EntityNotFoundError):
        portfolio.create_loan(admin, "missing", 600, 2, now=now)


def test_agent_creates_borrower_for_themselves(portfolio, agent, other_agent, agent_principal):
    borrower = portfolio.create_borrower(agent_principal, name="Jane Roe", agent_id=other_agent.id)
    assert borrower.agent_id == agent.id


def test_admin_creates_unassigned_borrower(portfolio, admin):
    borrower = portfolio.create_borrower(admin, name="Walk In")
    assert borrower.agent_id is None


def test_create_borrower_with_unknown_agent(portfolio, admin):
    with pytest.raises(EntityNotFoundError):
        portfolio.create_borrower(admin, name="Jane Roe", agent_id="missing")


def test_create_borrower_requires_name(portfolio, admin):
    with pytest.raises(ValidationError):
        portfolio.create_borrower(admin, name="")


def test_create_agent_requires_agent_role(portfolio, admin):
    user = portfolio.create_user(admin, email="clerk@example.com", name="Clerk", role=UserRole.ADMIN)

    with pytest.raises(ValidationError):
        portfolio.create_agent(admin, user.id)


def test_create_user_is_admin_only(portfolio, agent_principal):
    with pytest.raises(PermissionDeniedError):
        portfolio.create_user(agent_principal, email="x@example.com", name="X", role=UserRole.AGENT)


def test_next_installments_after_sweep(db, portfolio, agent_principal, borrower, installments, now):
    """Jan 1 installment is overdue on Jan 5; Feb 1 is the next pending one"""
    OverdueSweep(db, business_offset_minutes=330).run(now)

    result = portfolio.next_installments_for_borrower(agent_principal, borrower.id)

    assert [(i.due_date, i.status) for i in result] == [
        (date(2024, 1, 1), "OVERDUE"),
        (date(2024, 2, 1), "PENDING"),
    ]


def test_next_installments_when_everything_is_paid(portfolio, ledger, admin, borrower, installments, now):
    for installment in installments:
        ledger.pay_installment(admin, installment.id, 500, now=now)

    with pytest.raises(NoPendingInstallmentError):
        portfolio.next_installments_for_borrower(admin, borrower.id)


def test_next_installments_checks_access(portfolio, other_agent_principal, borrower, loan):
    with pytest.raises(PermissionDeniedError):
        portfolio.next_installments_for_borrower(other_agent_principal, borrower.id)


def test_transactions_on_business_day(portfolio, admin, paid_installment, now):
    transactions = portfolio.transactions_on(admin, date(2024, 1, 5))

    # The Dec 20 disbursement falls on another day
    assert [(t.type, t.installment_id, t.amount_cents) for t in transactions] == [
        ("INSTALLMENT", paid_installment.id, 500)
    ]
    assert portfolio.transactions_on(admin, date(2024, 1, 6)) == []


def test_borrowers_created_today(portfolio, admin, borrower):
    assert [b.id for b in portfolio.borrowers_created_on(admin, portfolio.today(utcnow()))] == [borrower.id]
    assert portfolio.borrowers_created_on(admin, date(2000, 1, 1)) == []


def test_overdue_installments_listing(portfolio, admin, installments, now):
    overdue = portfolio.overdue_installments(admin, now)

    assert [i.id for i in overdue] == [installments[0].id]
    # Listing does not reclassify
    assert overdue[0].status == "PENDING"


def test_borrowers_for_agent(portfolio, admin, agent, other_agent, agent_principal, borrower):
    assert [b.id for b in portfolio.borrowers_for_agent(admin, agent.id)] == [borrower.id]
    assert [b.id for b in portfolio.borrowers_for_agent(agent_principal, agent.id)] == [borrower.id]
    assert portfolio.borrowers_for_agent(admin, other_agent.id) == []

    with pytest.raises(PermissionDeniedError):
        portfolio.borrowers_for_agent(agent_principal, other_agent.id)
    with pytest.raises(EntityNotFoundError):
        portfolio.borrowers_for_agent(admin, "missing")
