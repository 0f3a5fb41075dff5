"""Borrower endpoints: onboarding, reassignment and collection lists"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends

from microledger.api.dependencies import get_clock, get_deletion_guard, get_portfolio_service, get_principal
from microledger.api.v1.schemas import (
    AssignBorrowerRequest,
    BorrowerCreateRequest,
    BorrowerResponse,
    InstallmentResponse,
)
from microledger.domain.models import Principal
from microledger.services.guard import DeletionGuard
from microledger.services.portfolio import PortfolioService

router = APIRouter()


@router.post("/borrowers", response_model=BorrowerResponse, status_code=201)
def create_borrower(
    request_body: BorrowerCreateRequest,
    principal: Principal = Depends(get_principal),
    portfolio: PortfolioService = Depends(get_portfolio_service),
):
    borrower = portfolio.create_borrower(principal, **request_body.model_dump())
    return BorrowerResponse.model_validate(borrower)


@router.get("/borrowers/today", response_model=List[BorrowerResponse])
def borrowers_today(
    principal: Principal = Depends(get_principal),
    now: datetime = Depends(get_clock),
    portfolio: PortfolioService = Depends(get_portfolio_service),
):
    """Borrowers onboarded during the current business day"""
    borrowers = portfolio.borrowers_created_on(principal, portfolio.today(now))
    return [BorrowerResponse.model_validate(b) for b in borrowers]


@router.get("/agents/{agent_id}/borrowers", response_model=List[BorrowerResponse])
def borrowers_for_agent(
    agent_id: str,
    principal: Principal = Depends(get_principal),
    portfolio: PortfolioService = Depends(get_portfolio_service),
):
    return [BorrowerResponse.model_validate(b) for b in portfolio.borrowers_for_agent(principal, agent_id)]


@router.post("/borrowers/{borrower_id}/assign", response_model=BorrowerResponse)
def assign_borrower(
    borrower_id: str,
    request_body: AssignBorrowerRequest,
    principal: Principal = Depends(get_principal),
    guard: DeletionGuard = Depends(get_deletion_guard),
):
    borrower = guard.reassign_borrower(principal, borrower_id, request_body.agent_id)
    return BorrowerResponse.model_validate(borrower)


@router.get("/borrowers/{borrower_id}/installments", response_model=List[InstallmentResponse])
def next_installments(
    borrower_id: str,
    principal: Principal = Depends(get_principal),
    portfolio: PortfolioService = Depends(get_portfolio_service),
):
    """
    Installments to collect next.

    Returns:
        Every OVERDUE installment, then the earliest PENDING one
    """
    installments = portfolio.next_installments_for_borrower(principal, borrower_id)
    return [InstallmentResponse.model_validate(i) for i in installments]
