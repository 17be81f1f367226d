"""
Tests for the TCGplayer marketplace client (tcgwatch/pipeline/tcgplayer.py).

Covers:
- Client initialization and configuration
- fetch_listings / fetch_product_details / fetch_sales_history success paths
- Request bodies sent to the marketplace
- DecodeError on malformed payloads (no partial acceptance)
- HTTP errors propagate unchanged
- Every request goes through the rate limiter
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from tcgwatch.config import Condition, Edition, settings
from tcgwatch.pipeline.rate_limit import RateLimiter
from tcgwatch.pipeline.tcgplayer import (
    DecodeError,
    TCGPlayerClient,
    TCGPlayerListing,
    TCGPlayerProductDetails,
    TCGPlayerSale,
    decode,
    listing_search_body,
    sales_history_body,
)

PRODUCT_ID = 517045


def _client() -> TCGPlayerClient:
    return TCGPlayerClient(limiter=RateLimiter(0))


# ---------------------------------------------------------------------------
# Test 1: Client initializes with default settings
# ---------------------------------------------------------------------------


def test_client_init_defaults() -> None:
    client = TCGPlayerClient()

    assert client._search_url == settings.MARKETPLACE_SEARCH_URL
    assert client._sales_url == settings.MARKETPLACE_SALES_URL
    assert client._timeout == settings.MARKETPLACE_TIMEOUT_SECONDS
    assert client._client is None  # Not yet opened


def test_client_custom_urls_strip_trailing_slash() -> None:
    client = TCGPlayerClient(search_url="https://search.test/v1/", sales_url="https://sales.test/")

    assert client._search_url == "https://search.test/v1"
    assert client._sales_url == "https://sales.test"


@pytest.mark.asyncio
async def test_request_outside_context_manager_fails() -> None:
    client = _client()

    with pytest.raises(AssertionError):
        await client.fetch_product_details(PRODUCT_ID)


# ---------------------------------------------------------------------------
# Test 2: fetch_listings: success path and request body
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fetch_listings_success(marketplace) -> None:
    async with _client() as client:
        listings = await client.fetch_listings(PRODUCT_ID, quantity=25)

    assert len(listings) == 3
    first = listings[0]
    assert isinstance(first, TCGPlayerListing)
    assert first.price == Decimal("19.99")
    assert first.condition == Condition.NEAR_MINT
    assert first.printing == Edition.UNLIMITED
    assert first.seller_key == "a1b2c3"
    assert first.direct_inventory == 0
    assert first.gold_seller is True

    # numeric seller sales arrive as text
    assert listings[2].seller_sales == "250"
    assert listings[1].printing == Edition.FIRST_EDITION

    body = json.loads(marketplace.routes["listings"].calls.last.request.content)
    assert body == listing_search_body(25)
    assert body["size"] == 25
    assert body["sort"] == {"field": "price+shipping", "order": "asc"}
    assert body["filters"]["term"]["language"] == ["English"]


@pytest.mark.asyncio
async def test_fetch_listings_default_quantity(marketplace) -> None:
    async with _client() as client:
        await client.fetch_listings(PRODUCT_ID)

    body = json.loads(marketplace.routes["listings"].calls.last.request.content)
    assert body["size"] == settings.DEFAULT_LISTING_QUANTITY


@pytest.mark.asyncio
async def test_fetch_listings_empty_wrapper_is_decode_error(marketplace) -> None:
    marketplace.routes["listings"].mock(return_value=httpx.Response(200, json={"results": []}))

    async with _client() as client:
        with pytest.raises(DecodeError):
            await client.fetch_listings(PRODUCT_ID)


@pytest.mark.asyncio
async def test_fetch_listings_unknown_condition_rejects_whole_payload(
    marketplace, make_listing
) -> None:
    payload = {
        "results": [
            {"results": [make_listing(), make_listing(condition="Pristine", sellerKey="x")]}
        ]
    }
    marketplace.routes["listings"].mock(return_value=httpx.Response(200, json=payload))

    async with _client() as client:
        with pytest.raises(DecodeError):
            await client.fetch_listings(PRODUCT_ID)


@pytest.mark.asyncio
async def test_fetch_listings_missing_field(marketplace, make_listing) -> None:
    listing = make_listing()
    del listing["sellerKey"]
    marketplace.routes["listings"].mock(
        return_value=httpx.Response(200, json={"results": [{"results": [listing]}]})
    )

    async with _client() as client:
        with pytest.raises(DecodeError):
            await client.fetch_listings(PRODUCT_ID)


# ---------------------------------------------------------------------------
# Test 3: fetch_product_details
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fetch_product_details_success(marketplace) -> None:
    async with _client() as client:
        details = await client.fetch_product_details(PRODUCT_ID)

    assert isinstance(details, TCGPlayerProductDetails)
    assert details.product_id == PRODUCT_ID
    assert details.card_name == "Dark Magician"
    assert details.set_code == "LOB-005"
    assert details.set_name == "Legend of Blue Eyes White Dragon"
    assert details.rarity_name == "Ultra Rare"
    assert details.market_price == Decimal("24.5")


def test_card_name_splits_on_first_paren() -> None:
    details = TCGPlayerProductDetails.model_validate(
        {
            "productId": 1,
            "productName": "Blue-Eyes White Dragon (Alternate Art) (LOB-001)",
            "setName": "LOB",
            "rarityName": "Ultra Rare",
            "marketPrice": 100,
            "customAttributes": {"number": "LOB-001"},
        }
    )

    assert details.card_name == "Blue-Eyes White Dragon"


def test_card_name_without_suffix_is_whole_title() -> None:
    details = TCGPlayerProductDetails.model_validate(
        {
            "productId": 1,
            "productName": "Pot of Greed",
            "setName": "LOB",
            "rarityName": "Rare",
            "marketPrice": 3.1,
            "customAttributes": {"number": "LOB-119"},
        }
    )

    assert details.card_name == "Pot of Greed"


@pytest.mark.asyncio
async def test_fetch_product_details_wrong_type(marketplace, details_payload) -> None:
    details_payload["productId"] = "not-a-number"
    marketplace.routes["details"].mock(return_value=httpx.Response(200, json=details_payload))

    async with _client() as client:
        with pytest.raises(DecodeError):
            await client.fetch_product_details(PRODUCT_ID)


@pytest.mark.asyncio
async def test_non_json_response_is_decode_error(marketplace) -> None:
    marketplace.routes["details"].mock(return_value=httpx.Response(200, text="<html>"))

    async with _client() as client:
        with pytest.raises(DecodeError):
            await client.fetch_product_details(PRODUCT_ID)


# ---------------------------------------------------------------------------
# Test 4: fetch_sales_history
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fetch_sales_history_success(marketplace) -> None:
    async with _client() as client:
        sales = await client.fetch_sales_history(PRODUCT_ID, limit=10)

    assert len(sales) == 3
    assert all(isinstance(s, TCGPlayerSale) for s in sales)
    assert sales[0].condition == Condition.NEAR_MINT
    assert sales[0].purchase_price == Decimal("21.5")
    assert sales[0].order_date.tzinfo is not None
    assert sales[1].variant == "1st Edition"

    body = json.loads(marketplace.routes["sales"].calls.last.request.content)
    assert body == sales_history_body(10)
    assert body["listingType"] == "ListingWithoutPhotos"
    assert body["languages"] == [1]


def test_sale_condition_upper_cased(make_sale) -> None:
    sale = TCGPlayerSale.model_validate(make_sale(condition="lightly played"))

    assert sale.condition == Condition.LIGHTLY_PLAYED


def test_sale_naive_order_date_assumed_utc(make_sale) -> None:
    sale = TCGPlayerSale.model_validate(make_sale(orderDate="2026-10-10T12:00:00"))

    assert sale.order_date == datetime(2026, 10, 10, 12, tzinfo=timezone.utc)


def test_decode_wraps_validation_error() -> None:
    with pytest.raises(DecodeError) as exc_info:
        decode(TCGPlayerSale, {"condition": "Near Mint"}, "sale")

    assert isinstance(exc_info.value, ValueError)
    assert "sale" in str(exc_info.value)


@pytest.mark.asyncio
async def test_fetch_sales_history_missing_data(marketplace) -> None:
    marketplace.routes["sales"].mock(return_value=httpx.Response(200, json={"nextPage": ""}))

    async with _client() as client:
        with pytest.raises(DecodeError):
            await client.fetch_sales_history(PRODUCT_ID)


# ---------------------------------------------------------------------------
# Test 5: HTTP errors propagate, nothing is retried
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_http_error_propagates_without_retry(marketplace) -> None:
    marketplace.routes["details"].mock(return_value=httpx.Response(503))

    async with _client() as client:
        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await client.fetch_product_details(PRODUCT_ID)

    assert exc_info.value.response.status_code == 503
    assert marketplace.routes["details"].call_count == 1


@pytest.mark.asyncio
async def test_transport_error_propagates() -> None:
    with respx.mock() as mock:
        mock.get(f"{settings.MARKETPLACE_SEARCH_URL}/product/{PRODUCT_ID}/details").mock(
            side_effect=httpx.ConnectError
        )

        async with _client() as client:
            with pytest.raises(httpx.ConnectError):
                await client.fetch_product_details(PRODUCT_ID)


# ---------------------------------------------------------------------------
# Test 6: Every request waits on the limiter
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_each_request_acquires_limiter(marketplace) -> None:
    limiter = RateLimiter(0)
    limiter.acquire = AsyncMock()

    async with TCGPlayerClient(limiter=limiter) as client:
        await client.fetch_product_details(PRODUCT_ID)
        await client.fetch_listings(PRODUCT_ID)
        await client.fetch_sales_history(PRODUCT_ID)

    assert limiter.acquire.await_count == 3
