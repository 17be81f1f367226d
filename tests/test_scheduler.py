"""
Tests for the scheduler module.

Validates refresh cadence, the refresh pass wiring, and error resilience
of the loop.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from tcgwatch.config import settings
from tcgwatch.pipeline.refresh import RefreshReport
from tcgwatch.pipeline.scheduler import Scheduler


@pytest_asyncio.fixture
async def scheduler(session_factory):
    """Create a Scheduler instance for testing."""
    return Scheduler(session_factory)


@pytest.mark.asyncio
async def test_scheduler_init(scheduler, session_factory):
    """Test scheduler initialization."""
    assert scheduler.session_factory is session_factory
    assert scheduler._shutdown_event is not None
    assert scheduler._cadence_minutes == settings.REFRESH_INTERVAL_MINUTES
    assert scheduler._last_refresh is None


@pytest.mark.asyncio
async def test_custom_cadence(session_factory):
    sched = Scheduler(session_factory, cadence_minutes=5)

    assert sched._cadence_minutes == 5


@pytest.mark.asyncio
async def test_should_refresh_first_run(scheduler):
    """Never refreshed → refresh immediately."""
    assert scheduler._should_refresh() is True


@pytest.mark.asyncio
async def test_should_refresh_cadence(scheduler):
    scheduler._last_refresh = datetime.now(timezone.utc) - timedelta(
        minutes=settings.REFRESH_INTERVAL_MINUTES + 1
    )
    assert scheduler._should_refresh() is True

    scheduler._last_refresh = datetime.now(timezone.utc)
    assert scheduler._should_refresh() is False


@pytest.mark.asyncio
async def test_scheduler_shutdown(scheduler):
    """Test scheduler shutdown signal."""
    assert not scheduler._shutdown_event.is_set()
    await scheduler.shutdown()
    assert scheduler._shutdown_event.is_set()


@pytest.mark.asyncio
async def test_refresh_runs_pass_with_client(scheduler):
    """_refresh opens a client, hands a Scraper to the refresh pass, stamps last run."""
    report = RefreshReport(total_eligible=2, refreshed_count=2)

    with patch("tcgwatch.pipeline.scheduler.TCGPlayerClient") as MockClient, patch(
        "tcgwatch.pipeline.scheduler.refresh_stale_printings",
        AsyncMock(return_value=report),
    ) as mock_refresh:
        mock_client = AsyncMock()
        MockClient.return_value.__aenter__ = AsyncMock(return_value=mock_client)
        MockClient.return_value.__aexit__ = AsyncMock(return_value=None)

        result = await scheduler._refresh()

    assert result is report
    mock_refresh.assert_awaited_once()
    scraper, factory = mock_refresh.await_args.args
    assert scraper._client is mock_client
    assert factory is scheduler.session_factory
    assert scheduler._last_refresh > datetime.now(timezone.utc) - timedelta(seconds=1)


@pytest.mark.asyncio
async def test_run_stops_on_shutdown(scheduler):
    """One pass runs, then shutdown ends the loop."""

    async def refresh_then_stop():
        scheduler._last_refresh = datetime.now(timezone.utc)
        await scheduler.shutdown()
        return RefreshReport()

    mock_refresh = AsyncMock(side_effect=refresh_then_stop)

    with patch.object(scheduler, "_refresh", mock_refresh):
        await asyncio.wait_for(scheduler.run(), timeout=5)

    mock_refresh.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_survives_refresh_error(scheduler):
    """A failed pass is logged, stamps last refresh, and the loop keeps running."""
    mock_refresh = AsyncMock(side_effect=RuntimeError("database gone"))
    sleep = AsyncMock()

    async def stop_on_sleep(_seconds):
        await scheduler.shutdown()

    sleep.side_effect = stop_on_sleep

    with patch.object(scheduler, "_refresh", mock_refresh), patch(
        "tcgwatch.pipeline.scheduler.asyncio.sleep", sleep
    ):
        await asyncio.wait_for(scheduler.run(), timeout=5)

    mock_refresh.assert_awaited_once()
    sleep.assert_awaited_once()
    assert scheduler._last_refresh is not None
