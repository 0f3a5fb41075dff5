"""Late payment penalty policies"""

from dataclasses import dataclass
from datetime import date
from typing import Protocol


class PenaltyPolicy(Protocol):
    def __call__(self, due_date: date, paid_on: date, installment_amount_cents: int) -> int:
        ...


@dataclass(frozen=True)
class DailyPenaltyPolicy:
    """
    Flat charge per day late after a grace period.

    Days late compares the due date to the business date of payment, so paying
    on the due date (or before) never incurs a penalty.
    """

    cents_per_day: int = 0
    grace_days: int = 0

    def __call__(self, due_date: date, paid_on: date, installment_amount_cents: int) -> int:
        days_late = (paid_on - due_date).days - self.grace_days
        return max(days_late, 0) * self.cents_per_day
