# File: src/alphamarket/infrastructure/sched/scheduler.py
"""
In-process periodic jobs, run on the API's event loop.

Every tick runs the intraday square-off (only inside the 15:25-15:30 IST
window), expires lapsed subscriptions and reconciles unsettled payments.
Each job gets its own unit of work; a failing job is logged and does not
stop the others or the loop.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, ContextManager, Dict, Optional

from sqlalchemy.orm import Session

from alphamarket.domain.clock import utcnow, in_square_off_window
from alphamarket.infrastructure.db.uow import session_scope

log = logging.getLogger(__name__)


class Scheduler:
    def __init__(
        self,
        strategy_service,
        subscription_service,
        payment_service,
        interval_seconds: float = 60,
        session_factory: Callable[[], ContextManager[Session]] = session_scope,
    ):
        self.strategy_service = strategy_service
        self.subscription_service = subscription_service
        self.payment_service = payment_service
        self.interval_seconds = interval_seconds
        self.session_factory = session_factory
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            log.warning("Scheduler already running.")
            return
        self._task = asyncio.get_running_loop().create_task(self._run_forever(), name="alphamarket-scheduler")
        log.info(f"Scheduler started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("Scheduler stopped")

    async def _run_forever(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()

    # --- Jobs ---

    def square_off(self, now: datetime) -> int:
        if not in_square_off_window(now):
            return 0
        with self.session_factory() as session:
            calls, positions = self.strategy_service.square_off_intraday(session, now)
        return calls + positions

    def expire_subscriptions(self, now: datetime) -> int:
        with self.session_factory() as session:
            return self.subscription_service.expire_due(session, now)

    async def reconcile_payments(self, now: datetime) -> int:
        return await self.payment_service.reconcile_pending(now)

    async def run_once(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        results: Dict[str, Any] = {}
        for name, job in (
            ("squaredOff", self.square_off),
            ("expired", self.expire_subscriptions),
            ("reconciled", self.reconcile_payments),
        ):
            try:
                outcome = job(now)
                if asyncio.iscoroutine(outcome):
                    outcome = await outcome
                results[name] = outcome
            except Exception:
                log.exception(f"Scheduler job '{name}' failed.")
                results[name] = None
        return results
