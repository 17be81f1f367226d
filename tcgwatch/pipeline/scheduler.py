"""
TCG Watch — Refresh Scheduler

Runs a stale-printing refresh pass on a fixed cadence
(settings.REFRESH_INTERVAL_MINUTES) until shutdown is signaled.
A failed pass is logged and the loop keeps going.
"""

from __future__ import annotations

import asyncio
import signal
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgwatch.config import settings
from tcgwatch.pipeline.ingest import Scraper
from tcgwatch.pipeline.refresh import RefreshReport, refresh_stale_printings
from tcgwatch.pipeline.tcgplayer import TCGPlayerClient

logger = structlog.get_logger(__name__)


class Scheduler:
    """
    Async scheduler for the periodic refresh pass.

    Opens one marketplace client (and therefore one rate limiter) per pass.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cadence_minutes: int | None = None,
    ):
        self.session_factory = session_factory
        self._shutdown_event = asyncio.Event()

        self._cadence_minutes = (
            cadence_minutes if cadence_minutes is not None else settings.REFRESH_INTERVAL_MINUTES
        )
        # None → first check refreshes immediately
        self._last_refresh: datetime | None = None

    async def shutdown(self) -> None:
        """Signal graceful shutdown to the scheduler loop."""
        logger.info("scheduler_shutdown_requested")
        self._shutdown_event.set()

    def _should_refresh(self) -> bool:
        if self._last_refresh is None:
            return True
        elapsed = datetime.now(timezone.utc) - self._last_refresh
        return elapsed >= timedelta(minutes=self._cadence_minutes)

    async def _refresh(self) -> RefreshReport:
        logger.info("scheduler_refresh_start")

        async with TCGPlayerClient() as client:
            scraper = Scraper(client, self.session_factory)
            report = await refresh_stale_printings(scraper, self.session_factory)

        self._last_refresh = datetime.now(timezone.utc)

        logger.info(
            "scheduler_refresh_complete",
            refreshed=report.refreshed_count,
            errors=report.error_count,
            next_refresh_in_minutes=self._cadence_minutes,
        )
        return report

    async def run(self) -> None:
        """
        Main scheduler loop. Runs until shutdown is signaled.
        """
        logger.info("scheduler_started", cadence_minutes=self._cadence_minutes)

        poll_check_interval = 5

        try:
            while not self._shutdown_event.is_set():
                try:
                    if self._should_refresh():
                        await self._refresh()

                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=poll_check_interval,
                    )
                except asyncio.TimeoutError:
                    # No shutdown signal yet
                    continue
                except Exception as e:
                    logger.error(
                        "scheduler_unknown_error",
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    # Don't hammer the marketplace after a failed pass
                    self._last_refresh = datetime.now(timezone.utc)
                    await asyncio.sleep(poll_check_interval)

        except asyncio.CancelledError:
            logger.info("scheduler_cancelled")
            raise
        finally:
            logger.info("scheduler_stopped")


async def run_scheduler(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """
    Initialize and run the scheduler with graceful shutdown handling.

    Registers SIGTERM/SIGINT handlers to trigger shutdown.
    """
    scheduler = Scheduler(session_factory)

    def handle_signal(_signum: int, _frame: Any) -> None:
        logger.info("scheduler_signal_received")
        asyncio.create_task(scheduler.shutdown())

    loop = asyncio.get_running_loop()

    try:
        loop.add_signal_handler(signal.SIGTERM, handle_signal, signal.SIGTERM, None)
        loop.add_signal_handler(signal.SIGINT, handle_signal, signal.SIGINT, None)
    except NotImplementedError:
        # Windows doesn't support add_signal_handler for all signals
        logger.warning("signal_handlers_not_supported_on_platform")

    try:
        await scheduler.run()
    except Exception as e:
        logger.error("scheduler_fatal_error", error=str(e), error_type=type(e).__name__)
        raise
