"""FastAPI application factory"""

import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from microledger.api.errors import register_exception_handlers
from microledger.api.middleware import MetricsMiddleware, RequestIDMiddleware
from microledger.api.v1 import borrowers, installments, loans, transactions
from microledger.config import settings
from microledger.infrastructure.database.session import get_session_factory
from microledger.infrastructure.observability.logging import setup_logging
from microledger.services.sweep import OverdueSweeper

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the periodic overdue sweep when an interval is configured"""
    task = None
    if settings.overdue_sweep_interval_seconds > 0:
        sweeper = OverdueSweeper(get_session_factory(), settings.overdue_sweep_interval_seconds)
        task = asyncio.create_task(sweeper.run_forever())

    yield

    if task is not None:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Microfinance Ledger",
        description="Installment repayment ledger for agent-collected microfinance loans",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(installments.router, prefix="/v1", tags=["installments"])
    app.include_router(borrowers.router, prefix="/v1", tags=["borrowers"])
    app.include_router(loans.router, prefix="/v1", tags=["loans"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])

    return app


app = create_app()
