"""Overdue sweep: reclassify late PENDING installments as OVERDUE"""

import asyncio
import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from microledger.config import settings
from microledger.domain import state_machine
from microledger.infrastructure.database.repositories import InstallmentRepository
from microledger.infrastructure.database.session import atomic
from microledger.infrastructure.observability.logging import log_ledger_event
from microledger.infrastructure.observability.metrics import sweep_duration_histogram, sweep_transition_counter
from microledger.utils.date_utils import business_date, utcnow

logger = logging.getLogger(__name__)


class OverdueSweep:
    """
    Idempotent batch PENDING -> OVERDUE transition.

    Candidates are selected first, each transition is applied through the
    state machine, and the result is written with a status-guarded UPDATE, so
    an installment paid in between keeps its PAID status and is simply not
    counted. Only status (and the row version) is written.
    """

    def __init__(self, db: Session, business_offset_minutes: int | None = None):
        self.db = db
        self.installments = InstallmentRepository(db)
        self.business_offset_minutes = (
            settings.business_utc_offset_minutes if business_offset_minutes is None else business_offset_minutes
        )

    def run(self, as_of: datetime) -> int:
        """Returns the number of installments moved to OVERDUE"""
        as_of_date = business_date(as_of, self.business_offset_minutes)
        transitioned = 0

        with sweep_duration_histogram.time():
            with atomic(self.db):
                candidates = self.installments.overdue_candidates(as_of_date)
                for candidate in candidates:
                    if not state_machine.is_overdue(candidate.status, candidate.due_date, as_of_date):
                        continue
                    selected_status = candidate.status
                    state_machine.mark_overdue(candidate, as_of_date)
                    if self.installments.update_status_if_unchanged(candidate.id, selected_status, candidate.status):
                        transitioned += 1

        sweep_transition_counter.inc(transitioned)
        log_ledger_event(
            "overdue_sweep_completed",
            as_of_date=as_of_date.isoformat(),
            candidates=len(candidates),
            transitioned=transitioned,
        )
        return transitioned


def run_overdue_sweep(db: Session, as_of: datetime) -> int:
    return OverdueSweep(db).run(as_of)


class OverdueSweeper:
    """Runs the sweep on a fixed interval, each pass in its own session"""

    def __init__(
        self,
        session_factory: sessionmaker,
        interval_seconds: float,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.clock = clock

    def run_once(self) -> int:
        db = self.session_factory()
        try:
            return OverdueSweep(db).run(self.clock())
        finally:
            db.close()

    async def run_forever(self) -> None:
        while True:
            try:
                await asyncio.to_thread(self.run_once)
            except Exception:
                # A failed pass is retried on the next tick
                logger.exception("Overdue sweep failed")
            await asyncio.sleep(self.interval_seconds)
