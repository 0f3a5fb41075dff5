"""Transaction endpoints: daily listing and voiding"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends

from microledger.api.dependencies import get_clock, get_ledger_service, get_portfolio_service, get_principal
from microledger.api.v1.schemas import MessageResponse, TransactionResponse
from microledger.domain.models import Principal
from microledger.services.ledger import LedgerService
from microledger.services.portfolio import PortfolioService

router = APIRouter()


@router.get("/transactions/today", response_model=List[TransactionResponse])
def transactions_today(
    principal: Principal = Depends(get_principal),
    now: datetime = Depends(get_clock),
    portfolio: PortfolioService = Depends(get_portfolio_service),
):
    transactions = portfolio.transactions_on(principal, portfolio.today(now))
    return [TransactionResponse.model_validate(t) for t in transactions]


@router.delete("/transactions/{transaction_id}", response_model=MessageResponse)
def void_transaction(
    transaction_id: str,
    principal: Principal = Depends(get_principal),
    now: datetime = Depends(get_clock),
    ledger: LedgerService = Depends(get_ledger_service),
):
    """Deleting an installment payment reverts that installment to PENDING"""
    ledger.void_transaction(principal, transaction_id, now=now)
    return MessageResponse(message="Transaction deleted successfully")
