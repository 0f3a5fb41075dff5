"""SQLAlchemy ORM models for the loan ledger"""

import uuid

from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

from microledger.domain.models import InstallmentStatus, LoanStatus, PaymentFrequency
from microledger.utils.date_utils import utcnow

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Login identity; ADMIN or AGENT"""

    __tablename__ = "app_user"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)
    phone = Column(Text, nullable=True)
    role = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    agent = relationship("Agent", back_populates="user", uselist=False)


class Agent(Base):
    """Field agent profile wrapping a user"""

    __tablename__ = "agent"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("app_user.id"), nullable=False, unique=True)
    commission_rate = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="agent")
    borrowers = relationship("Borrower", back_populates="agent")


class Borrower(Base):
    """Loan customer, assigned to at most one agent at a time"""

    __tablename__ = "borrower"

    id = Column(String(36), primary_key=True, default=_new_id)
    agent_id = Column(String(36), ForeignKey("agent.id"), nullable=True, index=True)
    name = Column(Text, nullable=False)
    phone = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    guarantor_name = Column(Text, nullable=True)
    guarantor_phone = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    agent = relationship("Agent", back_populates="borrowers")
    loans = relationship("Loan", back_populates="borrower")


class Loan(Base):
    """Disbursed loan; installments are removed explicitly by the deletion guard"""

    __tablename__ = "loan"

    id = Column(String(36), primary_key=True, default=_new_id)
    borrower_id = Column(String(36), ForeignKey("borrower.id"), nullable=False, index=True)
    principal_cents = Column(BigInteger, nullable=False)
    frequency = Column(Text, nullable=False, default=PaymentFrequency.MONTHLY.value)
    status = Column(Text, nullable=False, default=LoanStatus.ACTIVE.value)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    borrower = relationship("Borrower", back_populates="loans")
    installments = relationship("Installment", back_populates="loan", order_by="Installment.due_date")


class Installment(Base):
    """One scheduled repayment; ``version`` guards concurrent writers"""

    __tablename__ = "installment"

    id = Column(String(36), primary_key=True, default=_new_id)
    loan_id = Column(String(36), ForeignKey("loan.id"), nullable=False, index=True)
    due_date = Column(Date, nullable=False, index=True)
    installment_amount_cents = Column(BigInteger, nullable=False)
    amount_cents = Column(BigInteger, nullable=False, default=0)
    extra_cents = Column(BigInteger, nullable=False, default=0)
    penalty_cents = Column(BigInteger, nullable=False, default=0)
    due_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(Text, nullable=False, default=InstallmentStatus.PENDING.value, index=True)
    paid_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    loan = relationship("Loan", back_populates="installments")
    transactions = relationship("LedgerTransaction", back_populates="installment")

    __mapper_args__ = {"version_id_col": version}


class LedgerTransaction(Base):
    """Immutable monetary event; INSTALLMENT rows back a PAID installment"""

    __tablename__ = "ledger_transaction"
    __table_args__ = (
        # One payment event per installment
        Index(
            "uq_ledger_transaction_installment_payment",
            "installment_id",
            unique=True,
            postgresql_where=text("type = 'INSTALLMENT'"),
            sqlite_where=text("type = 'INSTALLMENT'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    installment_id = Column(String(36), ForeignKey("installment.id"), nullable=True, index=True)
    loan_id = Column(String(36), ForeignKey("loan.id"), nullable=True, index=True)
    type = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    extra_cents = Column(BigInteger, nullable=False, default=0)
    penalty_cents = Column(BigInteger, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    added_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    installment = relationship("Installment", back_populates="transactions")
