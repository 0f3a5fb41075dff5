"""Domain models - pure Python enums and dataclasses shared by every layer"""

from dataclasses import dataclass
from datetime import date
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    AGENT = "AGENT"


class InstallmentStatus(str, Enum):
    PENDING = "PENDING"
    OVERDUE = "OVERDUE"
    PAID = "PAID"


class LoanStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class TransactionType(str, Enum):
    INSTALLMENT = "INSTALLMENT"
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


class PaymentFrequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller, resolved upstream and passed into each operation"""

    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass
class ScheduledInstallment:
    """Single payment in a generated repayment schedule"""

    due_date: date
    amount_cents: int


@dataclass
class InstallmentSnapshot:
    """Status and due date of an installment as read by a batch job"""

    id: str
    status: str
    due_date: date
