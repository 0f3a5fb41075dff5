"""Installment status state machine.

Pure transition rules applied to any installment-like object exposing
``status``, ``due_date``, ``amount_cents``, ``extra_cents``, ``penalty_cents``,
``due_cents`` and ``paid_at``. Persistence, transaction records and locking
are the caller's job (see ``microledger.services.ledger``).

Legal transitions:

    PENDING -> OVERDUE   (overdue sweep)
    PENDING -> PAID      (payment)
    OVERDUE -> PAID      (late payment)
    PAID    -> PENDING   (reversal)
"""

from datetime import date, datetime
from typing import Any, Dict, FrozenSet

from microledger.domain.exceptions import InvalidTransitionError, ValidationError
from microledger.domain.models import InstallmentStatus

ALLOWED_TRANSITIONS: Dict[InstallmentStatus, FrozenSet[InstallmentStatus]] = {
    InstallmentStatus.PENDING: frozenset({InstallmentStatus.OVERDUE, InstallmentStatus.PAID}),
    InstallmentStatus.OVERDUE: frozenset({InstallmentStatus.PAID}),
    InstallmentStatus.PAID: frozenset({InstallmentStatus.PENDING}),
}


def can_transition(current: str, target: str) -> bool:
    return InstallmentStatus(target) in ALLOWED_TRANSITIONS[InstallmentStatus(current)]


def statuses_leading_to(target: str) -> FrozenSet[InstallmentStatus]:
    """Every status with a legal transition into target"""
    return frozenset(
        current for current, targets in ALLOWED_TRANSITIONS.items() if InstallmentStatus(target) in targets
    )


def ensure_transition(current: str, target: str) -> None:
    """Raise InvalidTransitionError unless current -> target is legal"""
    if not can_transition(current, target):
        raise InvalidTransitionError(InstallmentStatus(current).value, InstallmentStatus(target).value)


def is_overdue(status: str, due_date: date, as_of_date: date) -> bool:
    """PENDING installment whose due date is strictly before the business date"""
    return InstallmentStatus(status) == InstallmentStatus.PENDING and due_date < as_of_date


def mark_overdue(installment: Any, as_of_date: date) -> None:
    ensure_transition(installment.status, InstallmentStatus.OVERDUE)
    if installment.due_date >= as_of_date:
        raise InvalidTransitionError(
            installment.status,
            InstallmentStatus.OVERDUE.value,
            f"due date {installment.due_date} is not before {as_of_date}",
        )
    installment.status = InstallmentStatus.OVERDUE.value


def pay(
    installment: Any,
    amount_cents: int,
    extra_cents: int,
    penalty_cents: int,
    paid_at: datetime,
) -> None:
    """Move a PENDING or OVERDUE installment to PAID and record its amounts"""
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError("Payment amount must be positive")
    if extra_cents is None or penalty_cents is None:
        raise ValidationError("Extra and penalty amounts are required; pass 0 for none")
    if extra_cents < 0 or penalty_cents < 0:
        raise ValidationError("Extra and penalty amounts cannot be negative")

    ensure_transition(installment.status, InstallmentStatus.PAID)

    installment.amount_cents = amount_cents
    installment.extra_cents = extra_cents
    installment.penalty_cents = penalty_cents
    installment.due_cents = 0
    installment.paid_at = paid_at
    installment.status = InstallmentStatus.PAID.value


def unpay(installment: Any) -> None:
    """Reset a PAID installment to PENDING with all recorded amounts cleared"""
    ensure_transition(installment.status, InstallmentStatus.PENDING)

    installment.amount_cents = 0
    installment.extra_cents = 0
    installment.penalty_cents = 0
    installment.due_cents = 0
    installment.paid_at = None
    installment.status = InstallmentStatus.PENDING.value
