"""
TCG Watch — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- File-backed SQLite database (aiosqlite) with the full schema
- Marketplace payload fixtures and builders
- respx router serving the marketplace endpoints
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
import respx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tcgwatch.config import settings
from tcgwatch.models.base import Base

FIXTURES = Path(__file__).parent / "fixtures"
PRODUCT_ID = 517045


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_engine(tmp_path: Path):
    """
    SQLite database on disk under tmp_path.

    File-backed rather than :memory: so every session from the factory
    sees the same database.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tcgwatch.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Fixture Loaders
# ---------------------------------------------------------------------------


def _load(name: str) -> dict[str, Any]:
    with open(FIXTURES / name) as f:
        return json.load(f)


@pytest.fixture
def details_payload() -> dict[str, Any]:
    """Product details for Dark Magician (LOB-005), product 517045."""
    return _load("tcgplayer_details.json")


@pytest.fixture
def listings_payload() -> dict[str, Any]:
    """Three live listings: NM/Unlimited 19.99, LP/1st 21.00, DMG/Unlimited 24.00."""
    return _load("tcgplayer_listings.json")


@pytest.fixture
def sales_payload() -> dict[str, Any]:
    """Three sales: NM/Unlimited 21.50, LP/1st 23.00, HP/Unlimited 18.00."""
    return _load("tcgplayer_sales.json")


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------


_LISTING = {
    "listingId": 1,
    "price": 10.0,
    "quantity": 1,
    "directInventory": 0,
    "condition": "Near Mint",
    "printing": "Unlimited",
    "sellerKey": "seller-1",
    "sellerName": "Seller One",
    "shippingPrice": 0.99,
    "sellerShippingPrice": 0.99,
    "sellerRating": 99.0,
    "sellerSales": "1000+",
    "goldSeller": False,
    "directSeller": False,
    "verifiedSeller": True,
}

_SALE = {
    "condition": "Near Mint",
    "variant": "Unlimited",
    "language": "English",
    "quantity": 1,
    "title": "Dark Magician",
    "listingType": "ListingWithoutPhotos",
    "purchasePrice": 10.0,
    "shippingPrice": 0.0,
    "orderDate": "2026-10-10T12:00:00+00:00",
}


@pytest.fixture
def make_listing() -> Callable[..., dict[str, Any]]:
    """Raw listing payload with overrides, keyed by marketplace field name."""

    def _make(**overrides: Any) -> dict[str, Any]:
        return {**copy.deepcopy(_LISTING), **overrides}

    return _make


@pytest.fixture
def make_sale() -> Callable[..., dict[str, Any]]:
    """Raw latest-sales entry with overrides, keyed by marketplace field name."""

    def _make(**overrides: Any) -> dict[str, Any]:
        return {**copy.deepcopy(_SALE), **overrides}

    return _make


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


def listings_url(product_id: int = PRODUCT_ID) -> str:
    return f"{settings.MARKETPLACE_SEARCH_URL}/product/{product_id}/listings"


def details_url(product_id: int = PRODUCT_ID) -> str:
    return f"{settings.MARKETPLACE_SEARCH_URL}/product/{product_id}/details"


def sales_url(product_id: int = PRODUCT_ID) -> str:
    return f"{settings.MARKETPLACE_SALES_URL}/product/{product_id}/latestsales"


@pytest.fixture
def marketplace(details_payload, listings_payload, sales_payload):
    """
    respx router serving the three fixture payloads for PRODUCT_ID.

    Routes are exposed as marketplace.routes["details" | "listings" | "sales"]
    so tests can swap responses or inspect calls.
    """
    with respx.mock(assert_all_called=False) as mock:
        mock.get(details_url(), name="details").mock(
            return_value=httpx.Response(200, json=details_payload)
        )
        mock.post(listings_url(), name="listings").mock(
            return_value=httpx.Response(200, json=listings_payload)
        )
        mock.post(sales_url(), name="sales").mock(
            return_value=httpx.Response(200, json=sales_payload)
        )
        yield mock
