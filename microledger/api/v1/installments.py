"""Installment endpoints: pay, unpay, overdue listing and sweep"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from microledger.api.dependencies import get_clock, get_ledger_service, get_portfolio_service, get_principal
from microledger.api.v1.schemas import InstallmentResponse, PayInstallmentRequest, SweepResponse
from microledger.domain.models import Principal
from microledger.infrastructure.database.session import get_db
from microledger.services.access import require_admin
from microledger.services.ledger import LedgerService
from microledger.services.portfolio import PortfolioService
from microledger.services.sweep import run_overdue_sweep

router = APIRouter()


@router.post("/installments/{installment_id}/pay", response_model=InstallmentResponse)
def pay_installment(
    installment_id: str,
    request_body: PayInstallmentRequest,
    principal: Principal = Depends(get_principal),
    now: datetime = Depends(get_clock),
    ledger: LedgerService = Depends(get_ledger_service),
):
    """
    Collect an installment.

    Returns 409 when another agent paid it first; re-read and retry.
    """
    installment = ledger.pay_installment(
        principal,
        installment_id,
        request_body.amount_cents,
        request_body.extra_cents,
        request_body.notes,
        now=now,
        expected_version=request_body.expected_version,
    )
    return InstallmentResponse.model_validate(installment)


@router.post("/installments/{installment_id}/unpaid", response_model=InstallmentResponse)
def mark_unpaid(
    installment_id: str,
    principal: Principal = Depends(get_principal),
    now: datetime = Depends(get_clock),
    ledger: LedgerService = Depends(get_ledger_service),
):
    """Reverse a payment: delete its transactions and reset the installment to PENDING"""
    installment = ledger.unpay_installment(principal, installment_id, now=now)
    return InstallmentResponse.model_validate(installment)


@router.get("/installments/overdue", response_model=List[InstallmentResponse])
def list_overdue(
    principal: Principal = Depends(get_principal),
    now: datetime = Depends(get_clock),
    portfolio: PortfolioService = Depends(get_portfolio_service),
):
    installments = portfolio.overdue_installments(principal, now)
    return [InstallmentResponse.model_validate(i) for i in installments]


@router.post("/installments/overdue-sweep", response_model=SweepResponse)
def overdue_sweep(
    principal: Principal = Depends(get_principal),
    now: datetime = Depends(get_clock),
    db: Session = Depends(get_db),
):
    require_admin(principal)
    transitioned = run_overdue_sweep(db, now)
    return SweepResponse(as_of=now, transitioned=transitioned)
