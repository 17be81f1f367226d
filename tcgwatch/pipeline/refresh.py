"""
TCG Watch — Stale Printing Refresh

Selects printings whose listings are stale and re-scrapes them one at a
time. Items are never processed concurrently: they all share one external
rate limit, and a failure on one item must not touch another's state.

Eligibility:
- priority in settings.REFRESH_PRIORITIES (default ENABLED, PRIORITY, FORCE)
- last_scraped is NULL or older than settings.REFRESH_STALE_HOURS
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgwatch.config import Priority, settings
from tcgwatch.models.printing import Printing
from tcgwatch.pipeline.ingest import Scraper

logger = structlog.get_logger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RefreshError(_CamelModel):
    item_no: int
    error: str


class RefreshReport(_CamelModel):
    """Outcome of one refresh pass."""

    refreshed_count: int = 0
    error_count: int = 0
    total_eligible: int = 0
    duration_seconds: int = 0
    average_time_per_card_ms: int = 0
    results: list[dict[str, Any]] = Field(default_factory=list)
    errors: list[RefreshError] = Field(default_factory=list)


async def select_stale_printings(
    session: AsyncSession,
    now: datetime | None = None,
    stale_after: timedelta | None = None,
    priorities: Iterable[Priority] | None = None,
) -> Sequence[Printing]:
    """
    Return refresh candidates, oldest-scraped first (never-scraped leading).

    Args:
        session: Async database session.
        now: Reference time (default: current UTC time).
        stale_after: Age after which listings are stale
            (default: settings.REFRESH_STALE_HOURS).
        priorities: Eligible priorities (default: settings.REFRESH_PRIORITIES).
    """
    now = now or datetime.now(timezone.utc)
    if stale_after is None:
        stale_after = timedelta(hours=settings.REFRESH_STALE_HOURS)
    eligible = list(priorities if priorities is not None else settings.REFRESH_PRIORITIES)
    cutoff = now - stale_after

    stmt = (
        select(Printing)
        .where(
            Printing.priority.in_(eligible),
            or_(Printing.last_scraped.is_(None), Printing.last_scraped < cutoff),
        )
        .order_by(Printing.last_scraped.is_not(None), Printing.last_scraped, Printing.id)
    )
    result = await session.execute(stmt)
    printings = result.scalars().all()

    logger.debug(
        "refresh_candidates_selected",
        count=len(printings),
        cutoff=cutoff.isoformat(),
        priorities=[p.value for p in eligible],
    )
    return printings


async def refresh_stale_printings(
    scraper: Scraper,
    session_factory: async_sessionmaker[AsyncSession],
    quantity: int | None = None,
    stale_after: timedelta | None = None,
    priorities: Iterable[Priority] | None = None,
) -> RefreshReport:
    """
    Re-scrape listings for every stale eligible printing, sequentially.

    A failing item is logged and recorded in the report's errors; the pass
    continues with the next item.
    """
    async with session_factory() as session:
        candidates = await select_stale_printings(
            session, stale_after=stale_after, priorities=priorities
        )
        item_numbers = [p.item_no for p in candidates]

    total = len(item_numbers)
    report = RefreshReport(total_eligible=total)
    logger.info("refresh_start", total_eligible=total)

    started = time.monotonic()

    for index, item_no in enumerate(item_numbers):
        progress = round(index / total * 100)
        try:
            logger.info(
                "refresh_item_start",
                progress_pct=progress,
                position=index + 1,
                total=total,
                item_no=item_no,
            )
            result = await scraper.scrape_listing(item_no, quantity)
            report.results.append({"itemNo": item_no, **result.model_dump(by_alias=True)})
        except Exception as e:
            logger.error(
                "refresh_item_failed",
                progress_pct=progress,
                position=index + 1,
                total=total,
                item_no=item_no,
                error=str(e),
                error_type=type(e).__name__,
            )
            report.errors.append(RefreshError(item_no=item_no, error=str(e) or type(e).__name__))

    duration = time.monotonic() - started
    report.refreshed_count = len(report.results)
    report.error_count = len(report.errors)
    report.duration_seconds = round(duration)
    report.average_time_per_card_ms = round(duration * 1000 / total) if total else 0

    logger.info(
        "refresh_complete",
        refreshed=report.refreshed_count,
        errors=report.error_count,
        duration_seconds=report.duration_seconds,
        average_time_per_card_ms=report.average_time_per_card_ms,
    )
    return report
