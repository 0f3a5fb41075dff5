"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime
from typing import Generator, Iterator
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from microledger.api.dependencies import get_clock
from microledger.api.main import create_app
from microledger.domain.models import PaymentFrequency, Principal, UserRole
from microledger.infrastructure.database.models import Agent, Base, Borrower, Installment, Loan
from microledger.infrastructure.database.session import build_engine, get_db
from microledger.services.ledger import LedgerService
from microledger.services.portfolio import PortfolioService

# Processing time shared by tests: 2024-01-05 15:30 in the business timezone (UTC+5:30)
NOW = datetime(2024, 1, 5, 10, 0)
LOAN_CREATED_AT = datetime(2023, 12, 20, 9, 0)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def engine(tmp_path) -> Iterator[Engine]:
    """File-backed SQLite so separate sessions see each other's commits"""
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}", lock_timeout_seconds=5.0)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Create test database session"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id="admin-user", role=UserRole.ADMIN)


@pytest.fixture
def portfolio(db: Session) -> PortfolioService:
    return PortfolioService(db, business_offset_minutes=330)


@pytest.fixture
def ledger(db: Session) -> LedgerService:
    return LedgerService(db, business_offset_minutes=330)


def _create_agent(portfolio: PortfolioService, admin: Principal, email: str, name: str) -> Agent:
    user = portfolio.create_user(admin, email=email, name=name, role=UserRole.AGENT, phone="9876543210")
    return portfolio.create_agent(admin, user.id, commission_rate=0.02)


@pytest.fixture
def agent(portfolio: PortfolioService, admin: Principal) -> Agent:
    return _create_agent(portfolio, admin, "agent@example.com", "Agent User")


@pytest.fixture
def other_agent(portfolio: PortfolioService, admin: Principal) -> Agent:
    return _create_agent(portfolio, admin, "second.agent@example.com", "Second Agent")


@pytest.fixture
def agent_principal(agent: Agent) -> Principal:
    return Principal(user_id=agent.user_id, role=UserRole.AGENT)


@pytest.fixture
def other_agent_principal(other_agent: Agent) -> Principal:
    return Principal(user_id=other_agent.user_id, role=UserRole.AGENT)


@pytest.fixture
def borrower(portfolio: PortfolioService, admin: Principal, agent: Agent) -> Borrower:
    return portfolio.create_borrower(
        admin,
        name="John Doe",
        agent_id=agent.id,
        phone="1234567890",
        address="123 Main St",
        guarantor_name="James Doe",
        guarantor_phone="1234500000",
    )


@pytest.fixture
def loan(portfolio: PortfolioService, admin: Principal, borrower: Borrower) -> Loan:
    """Monthly loan of 1500 in three installments of 500 due Jan 1, Feb 1, Mar 1 2024"""
    return portfolio.create_loan(
        admin,
        borrower.id,
        principal_cents=1500,
        num_installments=3,
        frequency=PaymentFrequency.MONTHLY,
        start_date=date(2024, 1, 1),
        now=LOAN_CREATED_AT,
    )


@pytest.fixture
def daily_loan(portfolio: PortfolioService, admin: Principal, borrower: Borrower) -> Loan:
    """Daily loan of 300 in three installments due Jan 2, 3, 4 2024"""
    return portfolio.create_loan(
        admin,
        borrower.id,
        principal_cents=300,
        num_installments=3,
        frequency=PaymentFrequency.DAILY,
        start_date=date(2024, 1, 2),
        now=LOAN_CREATED_AT,
    )


@pytest.fixture
def installments(loan: Loan) -> list[Installment]:
    """The monthly loan's installments in due date order"""
    return list(loan.installments)


@pytest.fixture
def paid_installment(ledger: LedgerService, agent_principal: Principal, installments: list[Installment]) -> Installment:
    return ledger.pay_installment(agent_principal, installments[0].id, 500, notes="collected at home", now=NOW)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database and a fixed clock"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: NOW
    return TestClient(app)


@pytest.fixture
def admin_headers(admin: Principal) -> dict[str, str]:
    return {"X-User-Id": admin.user_id, "X-User-Role": admin.role.value}


@pytest.fixture
def agent_headers(agent_principal: Principal) -> dict[str, str]:
    return {"X-User-Id": agent_principal.user_id, "X-User-Role": agent_principal.role.value}
