"""Dependency injection for FastAPI endpoints"""

from datetime import datetime

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from microledger.domain.models import Principal, UserRole
from microledger.infrastructure.database.session import get_db
from microledger.services.guard import DeletionGuard
from microledger.services.ledger import LedgerService
from microledger.services.portfolio import PortfolioService
from microledger.utils.date_utils import utcnow


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_principal(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Principal:
    """Principal authenticated by the upstream gateway and forwarded in headers"""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        role = UserRole(x_user_role.upper())
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown role {x_user_role}")
    return Principal(user_id=x_user_id, role=role)


def get_clock() -> datetime:
    """Processing time for the request; overridden in tests"""
    return utcnow()


def get_ledger_service(db: Session = Depends(get_db)) -> LedgerService:
    return LedgerService(db)


def get_deletion_guard(db: Session = Depends(get_db)) -> DeletionGuard:
    return DeletionGuard(db)


def get_portfolio_service(db: Session = Depends(get_db)) -> PortfolioService:
    return PortfolioService(db)
