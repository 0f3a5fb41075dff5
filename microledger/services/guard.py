"""Loan deletion and borrower reassignment guards"""

import logging

from sqlalchemy.orm import Session

from microledger.domain.exceptions import ConflictError, EntityNotFoundError, ValidationError
from microledger.domain.models import InstallmentStatus, Principal
from microledger.infrastructure.database.models import Borrower, Loan
from microledger.infrastructure.database.repositories import (
    BorrowerRepository,
    LoanRepository,
    TransactionRecorder,
    UserRepository,
)
from microledger.infrastructure.database.session import atomic
from microledger.infrastructure.observability.logging import log_ledger_event
from microledger.infrastructure.observability.metrics import loan_deletion_counter
from microledger.services.access import require_admin


class DeletionGuard:
    """Referential and business checks in front of destructive or reassigning writes"""

    def __init__(self, db: Session):
        self.db = db
        self.loans = LoanRepository(db)
        self.borrowers = BorrowerRepository(db)
        self.users = UserRepository(db)
        self.recorder = TransactionRecorder(db)

    def can_delete_loan(self, loan: Loan) -> bool:
        return self.loans.count_installments(loan.id, [InstallmentStatus.PAID]) == 0

    def delete_loan(self, principal: Principal, loan_id: str) -> None:
        """
        Delete a loan and its installments, children first, in one transaction.

        Installment rows are deleted only while not PAID and the loan row only
        once none remain, so a payment racing the delete makes it fail with
        ConflictError instead of orphaning a paid installment.
        """
        require_admin(principal)

        try:
            with atomic(self.db):
                loan = self.loans.get_loan(loan_id, for_update=True)
                if loan is None:
                    raise EntityNotFoundError("Loan", loan_id)
                if not self.can_delete_loan(loan):
                    raise ConflictError(f"Loan {loan_id} has paid installments")

                installment_ids = self.loans.installment_ids(loan_id)
                transactions_deleted = self.recorder.delete_for_loan(loan_id, installment_ids)
                installments_deleted = self.loans.delete_unpaid_installments(loan_id)
                if self.loans.count_installments(loan_id) != 0:
                    raise ConflictError(f"Loan {loan_id} has paid installments")
                self.loans.delete_loan_row(loan_id)
        except ConflictError:
            loan_deletion_counter.labels(outcome="conflict").inc()
            log_ledger_event("loan_delete_rejected", logging.WARNING, loan_id=loan_id)
            raise

        loan_deletion_counter.labels(outcome="deleted").inc()
        log_ledger_event(
            "loan_deleted",
            loan_id=loan_id,
            installments_deleted=installments_deleted,
            transactions_deleted=transactions_deleted,
            user_id=principal.user_id,
        )

    def reassign_borrower(self, principal: Principal, borrower_id: str, agent_id: str) -> Borrower:
        """Point a borrower at a different agent; loans and transactions stay as they are"""
        require_admin(principal)
        if not agent_id:
            raise ValidationError("Agent ID is required")

        with atomic(self.db):
            borrower = self.borrowers.get_borrower(borrower_id)
            if borrower is None:
                raise EntityNotFoundError("Borrower", borrower_id)
            if self.users.get_agent(agent_id) is None:
                raise EntityNotFoundError("Agent", agent_id)

            previous_agent_id = borrower.agent_id
            self.borrowers.assign_agent(borrower, agent_id)

        log_ledger_event(
            "borrower_reassigned",
            borrower_id=borrower_id,
            previous_agent_id=previous_agent_id,
            agent_id=agent_id,
            user_id=principal.user_id,
        )
        return borrower
