"""Scheduled reconciliation sweep over all statements of the currently active terms."""

import asyncio
from contextlib import suppress
from datetime import datetime, timezone
from typing import Optional

from fee_ledger.core.app_logger import get_logger
from fee_ledger.core.config import settings
from fee_ledger.core.exceptions import ValidationError

from . import service
from .schemas import RecalculationSummary, ScheduleStatusResponse

logger = get_logger(__name__)

MIN_INTERVAL_MINUTES = 1
MAX_INTERVAL_MINUTES = 1440


def validate_interval(interval_minutes: Optional[int]) -> int:
    interval = interval_minutes if interval_minutes is not None else settings.sweep_interval_minutes
    if not MIN_INTERVAL_MINUTES <= interval <= MAX_INTERVAL_MINUTES:
        raise ValidationError(
            f"Interval must be between {MIN_INTERVAL_MINUTES} and {MAX_INTERVAL_MINUTES} minutes"
        )
    return interval


class BalanceSweepScheduler:
    """
    stopped -> running on start(), running -> stopped on stop().
    Only one loop runs at a time; start() while running is a no-op.
    """

    def __init__(self, session_factory=None) -> None:
        # None means the application's AsyncSessionLocal, resolved at run time.
        self.session_factory = session_factory
        self._task: Optional[asyncio.Task] = None
        self._interval_minutes: Optional[int] = None
        self.run_count = 0
        self.last_run_at: Optional[datetime] = None
        self.last_result: Optional[RecalculationSummary] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _resolve_session_factory(self):
        if self.session_factory is not None:
            return self.session_factory
        from fee_ledger.db.session import AsyncSessionLocal

        return AsyncSessionLocal

    async def run_once(self) -> Optional[RecalculationSummary]:
        """One full sweep. Never raises; failures are logged and kept in last_result."""
        try:
            result = await service.recompute_all_active_terms(
                self._resolve_session_factory(),
                item_timeout=settings.sweep_item_timeout_seconds,
            )
        except Exception:
            logger.exception("Scheduled balance update failed")
            result = None
        self.run_count += 1
        self.last_run_at = datetime.now(timezone.utc)
        if result is not None:
            self.last_result = result
            failures = sum(len(r.failures) for r in result.results)
            logger.info(
                "Scheduled update completed: %s statements updated, %s failures",
                result.total_updated, failures,
            )
        return result

    async def _loop(self, interval_minutes: int) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(interval_minutes * 60)

    async def start(self, interval_minutes: Optional[int] = None) -> bool:
        """Start the loop (first sweep runs immediately). Returns False if it was already running."""
        interval = validate_interval(interval_minutes)
        if self.is_running:
            logger.info("Scheduled balance updates already running")
            return False
        self._interval_minutes = interval
        self._task = asyncio.create_task(self._loop(interval), name="balance-sweep")
        logger.info("Scheduled balance updates started (interval: %s minutes)", interval)
        return True

    async def stop(self) -> bool:
        task = self._task
        if task is None:
            return False
        self._task = None
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.info("Scheduled balance updates stopped")
        return True

    def status(self) -> ScheduleStatusResponse:
        running = self.is_running
        last = self.last_result
        return ScheduleStatusResponse(
            running=running,
            message=(
                "Scheduled balance updates are running"
                if running
                else "Scheduled balance updates are not running"
            ),
            interval_minutes=self._interval_minutes if running else None,
            last_run_at=self.last_run_at,
            last_total_updated=last.total_updated if last else None,
            last_failure_count=sum(len(r.failures) for r in last.results) if last else None,
        )


sweep_scheduler = BalanceSweepScheduler()
