"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from microledger.domain.models import PaymentFrequency


class PayInstallmentRequest(BaseModel):
    """Request body for POST /v1/installments/{id}/pay"""

    amount_cents: int = Field(..., gt=0, description="Amount collected against the installment")
    extra_cents: int = Field(0, ge=0, description="Collected on top of the scheduled amount")
    notes: Optional[str] = None
    expected_version: Optional[int] = Field(None, description="Installment version the caller last read")


class InstallmentResponse(BaseModel):
    """Installment with its recorded amounts"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    loan_id: str
    due_date: date
    installment_amount_cents: int
    amount_cents: int
    extra_cents: int
    penalty_cents: int
    due_cents: int
    status: str
    paid_at: Optional[datetime] = None
    version: int


class TransactionResponse(BaseModel):
    """Single ledger transaction"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    installment_id: Optional[str] = None
    loan_id: Optional[str] = None
    type: str
    amount_cents: int
    extra_cents: int
    penalty_cents: int
    notes: Optional[str] = None
    added_by: Optional[str] = None
    created_at: datetime


class BorrowerCreateRequest(BaseModel):
    """Request body for POST /v1/borrowers"""

    name: str = Field(..., min_length=1)
    agent_id: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    guarantor_name: Optional[str] = None
    guarantor_phone: Optional[str] = None


class AssignBorrowerRequest(BaseModel):
    """Request body for POST /v1/borrowers/{id}/assign"""

    agent_id: Optional[str] = None


class BorrowerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    agent_id: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    guarantor_name: Optional[str] = None
    guarantor_phone: Optional[str] = None
    created_at: datetime


class LoanCreateRequest(BaseModel):
    """Request body for POST /v1/loans"""

    borrower_id: str = Field(..., min_length=1)
    principal_cents: int = Field(..., gt=0)
    num_installments: int = Field(..., gt=0, le=1000)
    frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    start_date: Optional[date] = None


class LoanResponse(BaseModel):
    """Loan with its installment schedule"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    borrower_id: str
    principal_cents: int
    frequency: str
    status: str
    created_at: datetime
    installments: List[InstallmentResponse]


class SweepResponse(BaseModel):
    """Response for POST /v1/installments/overdue-sweep"""

    as_of: datetime
    transitioned: int


class MessageResponse(BaseModel):
    message: str
