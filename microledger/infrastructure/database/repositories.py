"""Data access layer for ledger entities.

Repositories never commit: every write joins the caller's session
transaction so multi-step ledger operations commit or roll back as one unit.
"""

from datetime import date, datetime
from typing import List, Optional, Sequence

from sqlalchemy import delete, func, update
from sqlalchemy.orm import Session

from microledger.domain import state_machine
from microledger.domain.exceptions import EntityNotFoundError
from microledger.domain.models import (
    InstallmentSnapshot,
    InstallmentStatus,
    LoanStatus,
    PaymentFrequency,
    ScheduledInstallment,
    TransactionType,
    UserRole,
)
from microledger.infrastructure.database.models import (
    Agent,
    Borrower,
    Installment,
    LedgerTransaction,
    Loan,
    User,
)


class UserRepository:
    """Repository for users and agent profiles"""

    def __init__(self, db: Session):
        self.db = db

    def create_user(self, email: str, name: str, role: UserRole, phone: str | None = None) -> User:
        db_user = User(email=email, name=name, role=UserRole(role).value, phone=phone)
        self.db.add(db_user)
        self.db.flush()
        return db_user

    def create_agent(self, user_id: str, commission_rate: float = 0.0) -> Agent:
        db_agent = Agent(user_id=user_id, commission_rate=commission_rate)
        self.db.add(db_agent)
        self.db.flush()
        return db_agent

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        return self.db.get(Agent, agent_id)

    def get_agent_by_user(self, user_id: str) -> Optional[Agent]:
        return self.db.query(Agent).filter(Agent.user_id == user_id).first()


class BorrowerRepository:
    """Repository for borrowers and their agent assignment"""

    def __init__(self, db: Session):
        self.db = db

    def create_borrower(self, name: str, agent_id: str | None = None, **details) -> Borrower:
        db_borrower = Borrower(name=name, agent_id=agent_id, **details)
        self.db.add(db_borrower)
        self.db.flush()
        return db_borrower

    def get_borrower(self, borrower_id: str) -> Optional[Borrower]:
        return self.db.get(Borrower, borrower_id)

    def assign_agent(self, borrower: Borrower, agent_id: str) -> Borrower:
        """Overwrite the current agent; loans and their history are untouched"""
        borrower.agent_id = agent_id
        self.db.flush()
        return borrower

    def list_by_agent(self, agent_id: str) -> List[Borrower]:
        return (
            self.db.query(Borrower)
            .filter(Borrower.agent_id == agent_id)
            .order_by(Borrower.name)
            .all()
        )

    def list_created_between(self, start: datetime, end: datetime) -> List[Borrower]:
        return (
            self.db.query(Borrower)
            .filter(Borrower.created_at >= start, Borrower.created_at < end)
            .order_by(Borrower.created_at.desc())
            .all()
        )


class LoanRepository:
    """Repository for loans and their installment schedules"""

    def __init__(self, db: Session):
        self.db = db

    def create_loan(
        self,
        borrower_id: str,
        principal_cents: int,
        frequency: PaymentFrequency,
        schedule: Sequence[ScheduledInstallment],
        created_at: datetime,
    ) -> Loan:
        """Create loan with installments"""
        db_loan = Loan(
            borrower_id=borrower_id,
            principal_cents=principal_cents,
            frequency=PaymentFrequency(frequency).value,
            status=LoanStatus.ACTIVE.value,
            created_at=created_at,
        )
        self.db.add(db_loan)
        self.db.flush()

        for scheduled in schedule:
            self.db.add(
                Installment(
                    loan_id=db_loan.id,
                    due_date=scheduled.due_date,
                    installment_amount_cents=scheduled.amount_cents,
                    status=InstallmentStatus.PENDING.value,
                    created_at=created_at,
                )
            )
        self.db.flush()

        return db_loan

    def get_loan(self, loan_id: str, for_update: bool = False) -> Optional[Loan]:
        query = self.db.query(Loan).filter(Loan.id == loan_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def installment_ids(self, loan_id: str) -> List[str]:
        rows = self.db.query(Installment.id).filter(Installment.loan_id == loan_id).all()
        return [row.id for row in rows]

    def count_installments(self, loan_id: str, statuses: Sequence[InstallmentStatus] | None = None) -> int:
        query = self.db.query(func.count(Installment.id)).filter(Installment.loan_id == loan_id)
        if statuses is not None:
            query = query.filter(Installment.status.in_([InstallmentStatus(s).value for s in statuses]))
        return query.scalar()

    def delete_unpaid_installments(self, loan_id: str) -> int:
        """Delete installments that are not PAID; PAID rows are never removed here"""
        result = self.db.execute(
            delete(Installment)
            .where(Installment.loan_id == loan_id, Installment.status != InstallmentStatus.PAID.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_loan_row(self, loan_id: str) -> int:
        result = self.db.execute(
            delete(Loan).where(Loan.id == loan_id).execution_options(synchronize_session=False)
        )
        return result.rowcount


class InstallmentRepository:
    """Repository for installment reads and status-guarded updates"""

    def __init__(self, db: Session):
        self.db = db

    def get_installment(self, installment_id: str) -> Optional[Installment]:
        return self.db.get(Installment, installment_id)

    def list_open_for_borrower(self, borrower_id: str) -> List[Installment]:
        """PENDING and OVERDUE installments across all of a borrower's loans"""
        return (
            self.db.query(Installment)
            .join(Loan, Installment.loan_id == Loan.id)
            .filter(
                Loan.borrower_id == borrower_id,
                Installment.status.in_([InstallmentStatus.PENDING.value, InstallmentStatus.OVERDUE.value]),
            )
            .order_by(Installment.due_date.asc())
            .all()
        )

    def overdue_candidates(self, as_of_date: date) -> List[InstallmentSnapshot]:
        """Late installments in any status that may still move to OVERDUE"""
        sources = [status.value for status in state_machine.statuses_leading_to(InstallmentStatus.OVERDUE)]
        rows = (
            self.db.query(Installment.id, Installment.status, Installment.due_date)
            .filter(
                Installment.status.in_(sources),
                Installment.due_date < as_of_date,
            )
            .order_by(Installment.due_date.asc())
            .all()
        )
        return [InstallmentSnapshot(id=row.id, status=row.status, due_date=row.due_date) for row in rows]

    def update_status_if_unchanged(self, installment_id: str, expected_status: str, new_status: str) -> bool:
        """
        Conditional status write, applied only while the row still has
        expected_status.

        Returns False when the row changed status (e.g. was paid) after it was
        read, so a PAID installment is never overwritten.
        """
        result = self.db.execute(
            update(Installment)
            .where(
                Installment.id == installment_id,
                Installment.status == InstallmentStatus(expected_status).value,
            )
            .values(status=InstallmentStatus(new_status).value, version=Installment.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_overdue(self, as_of_date: date) -> List[Installment]:
        return (
            self.db.query(Installment)
            .filter(
                Installment.status.in_([InstallmentStatus.PENDING.value, InstallmentStatus.OVERDUE.value]),
                Installment.due_date < as_of_date,
            )
            .order_by(Installment.due_date.asc())
            .all()
        )


class TransactionRecorder:
    """Append and reverse monetary events tied to installments"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        installment_id: str,
        type: TransactionType,
        amount_cents: int,
        notes: str | None,
        created_at: datetime,
        extra_cents: int = 0,
        penalty_cents: int = 0,
        added_by: str | None = None,
    ) -> LedgerTransaction:
        db_transaction = LedgerTransaction(
            installment_id=installment_id,
            type=TransactionType(type).value,
            amount_cents=amount_cents,
            extra_cents=extra_cents,
            penalty_cents=penalty_cents,
            notes=notes,
            added_by=added_by,
            created_at=created_at,
        )
        self.db.add(db_transaction)
        return db_transaction

    def record_disbursement(
        self,
        loan_id: str,
        amount_cents: int,
        notes: str | None,
        created_at: datetime,
        added_by: str | None = None,
    ) -> LedgerTransaction:
        db_transaction = LedgerTransaction(
            loan_id=loan_id,
            type=TransactionType.EXPENSE.value,
            amount_cents=amount_cents,
            notes=notes,
            added_by=added_by,
            created_at=created_at,
        )
        self.db.add(db_transaction)
        return db_transaction

    def reverse_all(self, installment_id: str, type: TransactionType) -> int:
        """Delete every transaction of ``type`` for the installment; returns the count"""
        exists = self.db.query(Installment.id).filter(Installment.id == installment_id).first()
        if exists is None:
            raise EntityNotFoundError("Installment", installment_id)

        result = self.db.execute(
            delete(LedgerTransaction)
            .where(
                LedgerTransaction.installment_id == installment_id,
                LedgerTransaction.type == TransactionType(type).value,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def get_transaction(self, transaction_id: str) -> Optional[LedgerTransaction]:
        return self.db.get(LedgerTransaction, transaction_id)

    def delete_transaction(self, transaction_id: str) -> int:
        result = self.db.execute(
            delete(LedgerTransaction)
            .where(LedgerTransaction.id == transaction_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_for_loan(self, loan_id: str, installment_ids: Sequence[str]) -> int:
        """Delete the loan's disbursement records and any installment transactions"""
        deleted = 0
        if installment_ids:
            deleted += self.db.execute(
                delete(LedgerTransaction)
                .where(LedgerTransaction.installment_id.in_(list(installment_ids)))
                .execution_options(synchronize_session=False)
            ).rowcount
        deleted += self.db.execute(
            delete(LedgerTransaction)
            .where(LedgerTransaction.loan_id == loan_id)
            .execution_options(synchronize_session=False)
        ).rowcount
        return deleted

    def list_between(self, start: datetime, end: datetime) -> List[LedgerTransaction]:
        return (
            self.db.query(LedgerTransaction)
            .filter(LedgerTransaction.created_at >= start, LedgerTransaction.created_at < end)
            .order_by(LedgerTransaction.created_at.desc())
            .all()
        )
