"""Onboarding writes (users, agents, borrowers, loans) and read-only portfolio queries"""

from datetime import date, datetime
from typing import List

from sqlalchemy.orm import Session

from microledger.config import settings
from microledger.domain.exceptions import EntityNotFoundError, PermissionDeniedError, ValidationError
from microledger.domain.installments import generate_installment_schedule, next_action_installments
from microledger.domain.models import PaymentFrequency, Principal, UserRole
from microledger.infrastructure.database.models import Agent, Borrower, Installment, LedgerTransaction, Loan, User
from microledger.infrastructure.database.repositories import (
    BorrowerRepository,
    InstallmentRepository,
    LoanRepository,
    TransactionRecorder,
    UserRepository,
)
from microledger.infrastructure.database.session import atomic
from microledger.infrastructure.observability.logging import log_ledger_event
from microledger.services.access import require_admin, require_borrower_access
from microledger.utils.date_utils import business_date, business_day_bounds, to_utc_naive


class PortfolioService:
    """Everything around the ledger that creates entities or only reads them"""

    def __init__(self, db: Session, business_offset_minutes: int | None = None):
        self.db = db
        self.users = UserRepository(db)
        self.borrowers = BorrowerRepository(db)
        self.loans = LoanRepository(db)
        self.installments = InstallmentRepository(db)
        self.recorder = TransactionRecorder(db)
        self.business_offset_minutes = (
            settings.business_utc_offset_minutes if business_offset_minutes is None else business_offset_minutes
        )

    # Writes

    def create_user(self, principal: Principal, email: str, name: str, role: UserRole, phone: str | None = None) -> User:
        require_admin(principal)
        if not email or not name:
            raise ValidationError("Email and name are required")
        with atomic(self.db):
            user = self.users.create_user(email=email, name=name, role=role, phone=phone)
        return user

    def create_agent(self, principal: Principal, user_id: str, commission_rate: float = 0.0) -> Agent:
        require_admin(principal)
        if commission_rate < 0:
            raise ValidationError("Commission rate cannot be negative")
        with atomic(self.db):
            user = self.db.get(User, user_id)
            if user is None:
                raise EntityNotFoundError("User", user_id)
            if user.role != UserRole.AGENT:
                raise ValidationError(f"User {user_id} does not have the AGENT role")
            agent = self.users.create_agent(user_id, commission_rate)
        return agent

    def create_borrower(
        self,
        principal: Principal,
        name: str,
        agent_id: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        guarantor_name: str | None = None,
        guarantor_phone: str | None = None,
    ) -> Borrower:
        """Admins may assign any agent (or none); an agent's borrowers are always their own"""
        if not name:
            raise ValidationError("Borrower name is required")

        with atomic(self.db):
            if principal.is_admin:
                if agent_id and self.users.get_agent(agent_id) is None:
                    raise EntityNotFoundError("Agent", agent_id)
            else:
                agent = self.users.get_agent_by_user(principal.user_id)
                if agent is None:
                    raise EntityNotFoundError("Agent", principal.user_id)
                agent_id = agent.id

            borrower = self.borrowers.create_borrower(
                name=name,
                agent_id=agent_id,
                phone=phone,
                address=address,
                guarantor_name=guarantor_name,
                guarantor_phone=guarantor_phone,
            )
        return borrower

    def create_loan(
        self,
        principal: Principal,
        borrower_id: str,
        principal_cents: int,
        num_installments: int,
        frequency: PaymentFrequency = PaymentFrequency.MONTHLY,
        start_date: date | None = None,
        *,
        now: datetime,
    ) -> Loan:
        """Persist a loan, its installment schedule and the disbursement record together"""
        created_at = to_utc_naive(now)
        if start_date is None:
            start_date = business_date(created_at, self.business_offset_minutes)
        schedule = generate_installment_schedule(principal_cents, num_installments, frequency, start_date)

        with atomic(self.db):
            borrower = self._get_borrower(borrower_id)
            require_borrower_access(principal, borrower, self.users)

            loan = self.loans.create_loan(borrower.id, principal_cents, frequency, schedule, created_at)
            self.recorder.record_disbursement(
                loan.id,
                principal_cents,
                notes=f"Loan disbursed to {borrower.name}",
                created_at=created_at,
                added_by=principal.user_id,
            )

        log_ledger_event(
            "loan_created",
            loan_id=loan.id,
            borrower_id=borrower_id,
            principal_cents=principal_cents,
            installments=len(schedule),
            user_id=principal.user_id,
        )
        return loan

    # Reads

    def next_installments_for_borrower(self, principal: Principal, borrower_id: str) -> List[Installment]:
        """All OVERDUE installments followed by the earliest PENDING one"""
        borrower = self._get_borrower(borrower_id)
        require_borrower_access(principal, borrower, self.users)
        return next_action_installments(borrower_id, self.installments.list_open_for_borrower(borrower_id))

    def borrowers_for_agent(self, principal: Principal, agent_id: str) -> List[Borrower]:
        if not principal.is_admin:
            agent = self.users.get_agent_by_user(principal.user_id)
            if agent is None or agent.id != agent_id:
                raise PermissionDeniedError("Agents may only list their own borrowers")
        if self.users.get_agent(agent_id) is None:
            raise EntityNotFoundError("Agent", agent_id)
        return self.borrowers.list_by_agent(agent_id)

    def borrowers_created_on(self, principal: Principal, day: date) -> List[Borrower]:
        require_admin(principal)
        start, end = business_day_bounds(day, self.business_offset_minutes)
        return self.borrowers.list_created_between(start, end)

    def transactions_on(self, principal: Principal, day: date) -> List[LedgerTransaction]:
        require_admin(principal)
        start, end = business_day_bounds(day, self.business_offset_minutes)
        return self.recorder.list_between(start, end)

    def overdue_installments(self, principal: Principal, as_of: datetime) -> List[Installment]:
        """Late PENDING or OVERDUE installments; status changes are left to the sweep"""
        require_admin(principal)
        return self.installments.list_overdue(business_date(as_of, self.business_offset_minutes))

    def today(self, now: datetime) -> date:
        return business_date(now, self.business_offset_minutes)

    def _get_borrower(self, borrower_id: str) -> Borrower:
        borrower = self.borrowers.get_borrower(borrower_id)
        if borrower is None:
            raise EntityNotFoundError("Borrower", borrower_id)
        return borrower
