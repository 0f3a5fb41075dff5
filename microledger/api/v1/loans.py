"""Loan endpoints: create with schedule, guarded delete"""

from datetime import datetime

from fastapi import APIRouter, Depends

from microledger.api.dependencies import get_clock, get_deletion_guard, get_portfolio_service, get_principal
from microledger.api.v1.schemas import LoanCreateRequest, LoanResponse, MessageResponse
from microledger.domain.models import Principal
from microledger.services.guard import DeletionGuard
from microledger.services.portfolio import PortfolioService

router = APIRouter()


@router.post("/loans", response_model=LoanResponse, status_code=201)
def create_loan(
    request_body: LoanCreateRequest,
    principal: Principal = Depends(get_principal),
    now: datetime = Depends(get_clock),
    portfolio: PortfolioService = Depends(get_portfolio_service),
):
    loan = portfolio.create_loan(
        principal,
        request_body.borrower_id,
        request_body.principal_cents,
        request_body.num_installments,
        request_body.frequency,
        request_body.start_date,
        now=now,
    )
    return LoanResponse.model_validate(loan)


@router.delete("/loans/{loan_id}", response_model=MessageResponse)
def delete_loan(
    loan_id: str,
    principal: Principal = Depends(get_principal),
    guard: DeletionGuard = Depends(get_deletion_guard),
):
    """Rejected with 409 while any installment is PAID"""
    guard.delete_loan(principal, loan_id)
    return MessageResponse(message="Loan and all its installments deleted successfully")
