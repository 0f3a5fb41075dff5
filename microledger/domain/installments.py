"""Installment schedule generation and collection ordering"""

from datetime import date, timedelta
from typing import Any, List, Sequence

from microledger.domain.exceptions import NoPendingInstallmentError, ValidationError
from microledger.domain.models import InstallmentStatus, PaymentFrequency, ScheduledInstallment
from microledger.utils.date_utils import add_months


def _due_date(start_date: date, index: int, frequency: PaymentFrequency) -> date:
    if frequency == PaymentFrequency.DAILY:
        return start_date + timedelta(days=index)
    if frequency == PaymentFrequency.WEEKLY:
        return start_date + timedelta(weeks=index)
    return add_months(start_date, index)


def generate_installment_schedule(
    principal_cents: int,
    num_installments: int,
    frequency: PaymentFrequency = PaymentFrequency.MONTHLY,
    start_date: date | None = None,
) -> List[ScheduledInstallment]:
    """
    Split a loan principal into equal installments.

    Requirements:
    - Equal installments, spaced by the loan's payment frequency
    - Monthly dates are offsets from start_date, clamped to month end
      (Jan 31 → Feb 29 → Mar 31)
    - Last installment absorbs rounding remainder (≤ num_installments-1 cents drift)

    Args:
        principal_cents: Total amount to split into installments
        num_installments: Number of payments
        frequency: DAILY, WEEKLY or MONTHLY spacing
        start_date: First due date (default: today)

    Returns:
        List of ScheduledInstallment objects with due dates and amounts

    Example:
        1000.03 over 4 → [250.00, 250.00, 250.00, 250.03]
    """
    if principal_cents <= 0:
        raise ValidationError("Principal must be positive")
    if num_installments <= 0:
        raise ValidationError("Number of installments must be positive")

    frequency = PaymentFrequency(frequency)
    if start_date is None:
        start_date = date.today()

    base_amount = principal_cents // num_installments
    remainder = principal_cents % num_installments

    schedule = []
    for i in range(num_installments):
        amount = base_amount + (remainder if i == num_installments - 1 else 0)
        schedule.append(ScheduledInstallment(due_date=_due_date(start_date, i, frequency), amount_cents=amount))

    return schedule


def next_action_installments(borrower_id: str, installments: Sequence[Any]) -> List[Any]:
    """
    Installments an agent should collect next from a borrower.

    Every OVERDUE installment (ascending due date) followed by the single
    earliest-due PENDING installment. PAID installments are ignored. A borrower
    without any PENDING installment raises NoPendingInstallmentError.
    """
    overdue = sorted(
        (i for i in installments if i.status == InstallmentStatus.OVERDUE),
        key=lambda i: i.due_date,
    )
    pending = [i for i in installments if i.status == InstallmentStatus.PENDING]
    if not pending:
        raise NoPendingInstallmentError(borrower_id)

    return overdue + [min(pending, key=lambda i: i.due_date)]
