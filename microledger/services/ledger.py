"""Installment payments and reversals.

Each operation runs the state machine and the transaction recorder inside one
database transaction: either the installment fields, the transaction rows and
the loan status all commit, or none of them do.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from microledger.config import settings
from microledger.domain import state_machine
from microledger.domain.exceptions import ConflictError, DomainException, EntityNotFoundError
from microledger.domain.models import InstallmentStatus, LoanStatus, Principal, TransactionType
from microledger.domain.penalties import DailyPenaltyPolicy, PenaltyPolicy
from microledger.infrastructure.database.models import Installment, Loan
from microledger.infrastructure.database.repositories import (
    InstallmentRepository,
    LoanRepository,
    TransactionRecorder,
    UserRepository,
)
from microledger.infrastructure.database.session import atomic
from microledger.infrastructure.observability.logging import log_ledger_event
from microledger.infrastructure.observability.metrics import (
    ledger_conflict_counter,
    record_payment,
    reversal_counter,
)
from microledger.services.access import require_admin, require_borrower_access
from microledger.utils.date_utils import business_date, to_utc_naive


class LedgerService:
    """Pay, unpay and void operations over the installment ledger"""

    def __init__(
        self,
        db: Session,
        penalty_policy: PenaltyPolicy | None = None,
        business_offset_minutes: int | None = None,
    ):
        self.db = db
        self.installments = InstallmentRepository(db)
        self.loans = LoanRepository(db)
        self.users = UserRepository(db)
        self.recorder = TransactionRecorder(db)
        self.penalty_policy = penalty_policy or DailyPenaltyPolicy(
            cents_per_day=settings.penalty_cents_per_day,
            grace_days=settings.penalty_grace_days,
        )
        self.business_offset_minutes = (
            settings.business_utc_offset_minutes if business_offset_minutes is None else business_offset_minutes
        )

    def pay_installment(
        self,
        principal: Principal,
        installment_id: str,
        amount_cents: int,
        extra_cents: int = 0,
        notes: str | None = None,
        *,
        now: datetime,
        expected_version: Optional[int] = None,
    ) -> Installment:
        """
        Mark an installment PAID and record its INSTALLMENT transaction.

        Raises:
            EntityNotFoundError: installment does not exist
            PermissionDeniedError: agent is not assigned to the borrower
            ValidationError: non-positive amount or negative extra
            InvalidTransitionError: installment is already PAID
            ConflictError: another writer changed the installment first. This
                includes the overdue sweep moving it PENDING -> OVERDUE after
                the caller read it; re-reading and paying again succeeds.
        """
        paid_at = to_utc_naive(now)
        penalty_cents = 0

        try:
            with atomic(self.db):
                installment = self._get_installment(installment_id)
                loan = installment.loan
                require_borrower_access(principal, loan.borrower, self.users)

                if expected_version is not None and installment.version != expected_version:
                    raise ConflictError(
                        f"Installment {installment_id} is at version {installment.version}, expected {expected_version}"
                    )

                penalty_cents = self.penalty_policy(
                    installment.due_date,
                    business_date(paid_at, self.business_offset_minutes),
                    installment.installment_amount_cents,
                )
                state_machine.pay(installment, amount_cents, extra_cents, penalty_cents, paid_at)
                self.recorder.record(
                    installment.id,
                    TransactionType.INSTALLMENT,
                    amount_cents,
                    notes,
                    created_at=paid_at,
                    extra_cents=extra_cents,
                    penalty_cents=penalty_cents,
                    added_by=principal.user_id,
                )
                # Surfaces a lost version race or duplicate payment row here
                self.db.flush()
                self._sync_loan_status(loan)
        except (StaleDataError, IntegrityError) as e:
            self._payment_conflict(installment_id)
            raise ConflictError(f"Installment {installment_id} was modified concurrently; re-read and retry") from e
        except ConflictError:
            self._payment_conflict(installment_id)
            raise
        except DomainException as e:
            record_payment("rejected")
            log_ledger_event("payment_rejected", logging.WARNING, installment_id=installment_id, reason=str(e))
            raise

        record_payment("paid", amount_cents + extra_cents + penalty_cents)
        log_ledger_event(
            "installment_paid",
            installment_id=installment_id,
            amount_cents=amount_cents,
            extra_cents=extra_cents,
            penalty_cents=penalty_cents,
            user_id=principal.user_id,
        )
        return installment

    def unpay_installment(self, principal: Principal, installment_id: str, *, now: datetime) -> Installment:
        """
        Reverse a payment: delete the installment's INSTALLMENT transactions and
        reset it to PENDING with zeroed amounts. Admin only.

        A failure at any step rolls back, leaving the installment PAID with its
        original transactions.
        """
        require_admin(principal)

        try:
            with atomic(self.db):
                installment = self._get_installment(installment_id)
                state_machine.ensure_transition(installment.status, InstallmentStatus.PENDING)

                reversed_count = self.recorder.reverse_all(installment.id, TransactionType.INSTALLMENT)
                state_machine.unpay(installment)
                self.db.flush()
                self._sync_loan_status(installment.loan)
        except StaleDataError as e:
            ledger_conflict_counter.inc()
            raise ConflictError(f"Installment {installment_id} was modified concurrently; re-read and retry") from e

        reversal_counter.inc()
        log_ledger_event(
            "installment_unpaid",
            installment_id=installment_id,
            transactions_deleted=reversed_count,
            user_id=principal.user_id,
            reversed_at=to_utc_naive(now).isoformat(),
        )
        return installment

    def void_transaction(self, principal: Principal, transaction_id: str, *, now: datetime) -> None:
        """
        Delete a transaction. An INSTALLMENT transaction is the record of a
        payment, so voiding it reverses the whole installment.
        """
        require_admin(principal)

        transaction = self.recorder.get_transaction(transaction_id)
        if transaction is None:
            raise EntityNotFoundError("Transaction", transaction_id)

        if transaction.type == TransactionType.INSTALLMENT and transaction.installment_id:
            self.unpay_installment(principal, transaction.installment_id, now=now)
            return

        with atomic(self.db):
            self.recorder.delete_transaction(transaction_id)
        log_ledger_event("transaction_voided", transaction_id=transaction_id, user_id=principal.user_id)

    def _get_installment(self, installment_id: str) -> Installment:
        installment = self.installments.get_installment(installment_id)
        if installment is None:
            raise EntityNotFoundError("Installment", installment_id)
        return installment

    def _sync_loan_status(self, loan: Loan) -> None:
        """A loan is CLOSED exactly when none of its installments remain unpaid"""
        unpaid = self.loans.count_installments(loan.id, [InstallmentStatus.PENDING, InstallmentStatus.OVERDUE])
        loan.status = LoanStatus.ACTIVE.value if unpaid else LoanStatus.CLOSED.value

    def _payment_conflict(self, installment_id: str) -> None:
        ledger_conflict_counter.inc()
        record_payment("conflict")
        log_ledger_event("payment_conflict", logging.WARNING, installment_id=installment_id)
