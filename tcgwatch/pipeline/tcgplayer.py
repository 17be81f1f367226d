"""
TCG Watch — TCGplayer Marketplace Client

Fetches live listings, product details and the latest-sales page for a
marketplace product id, and decodes each payload into typed records.

Decoding is the only validation boundary: any payload that does not match
the expected shape raises DecodeError and aborts the operation in progress.
Nothing is retried; HTTP and transport errors propagate unchanged. Every
outbound call waits on the shared RateLimiter first.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tcgwatch.config import Condition, Edition, settings
from tcgwatch.pipeline.rate_limit import RateLimiter

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class DecodeError(ValueError):
    """Marketplace payload did not match the expected shape."""


# ---------------------------------------------------------------------------
# Pydantic Response Models
# ---------------------------------------------------------------------------


def _to_decimal(v: Any) -> Any:
    # floats go through str() so 9.99 stays 9.99
    if isinstance(v, float):
        return Decimal(str(v))
    return v


class _MarketplaceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TCGPlayerListing(_MarketplaceModel):
    """One live listing from the listing search endpoint."""

    price: Decimal
    quantity: int
    direct_inventory: int = Field(alias="directInventory")
    condition: Condition
    printing: Edition = Field(description="Listing edition")
    seller_key: str = Field(alias="sellerKey")
    seller_name: str = Field(alias="sellerName")
    shipping_price: Decimal = Field(alias="shippingPrice")
    seller_shipping_price: Decimal = Field(alias="sellerShippingPrice")
    seller_rating: Decimal = Field(alias="sellerRating")
    seller_sales: str = Field(alias="sellerSales")
    gold_seller: bool = Field(alias="goldSeller")
    direct_seller: bool = Field(alias="directSeller")
    verified_seller: bool = Field(alias="verifiedSeller")
    listing_id: int | None = Field(default=None, alias="listingId")

    @field_validator("condition", "printing", mode="before")
    @classmethod
    def upper_enum(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator(
        "price", "shipping_price", "seller_shipping_price", "seller_rating", mode="before"
    )
    @classmethod
    def parse_decimal(cls, v: Any) -> Any:
        return _to_decimal(v)

    @field_validator("seller_sales", mode="before")
    @classmethod
    def sales_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v


class _ListingResultGroup(_MarketplaceModel):
    results: list[TCGPlayerListing]


class TCGPlayerListingResponse(_MarketplaceModel):
    """Listing search wraps its hits one level deep: results[0].results."""

    results: list[_ListingResultGroup]


class TCGPlayerCustomAttributes(_MarketplaceModel):
    number: str = Field(description="Collector number / set code, e.g. 'LOB-005'")
    description: str | None = None
    rarity_db_name: str | None = Field(default=None, alias="rarityDbName")


class TCGPlayerProductDetails(_MarketplaceModel):
    """Product detail record."""

    product_id: int = Field(alias="productId")
    product_name: str = Field(alias="productName")
    set_name: str = Field(alias="setName")
    rarity_name: str = Field(alias="rarityName")
    market_price: Decimal = Field(alias="marketPrice")
    custom_attributes: TCGPlayerCustomAttributes = Field(alias="customAttributes")
    lowest_price: Decimal | None = Field(default=None, alias="lowestPrice")
    median_price: Decimal | None = Field(default=None, alias="medianPrice")
    listings: int | None = None
    sellers: int | None = None

    @field_validator("market_price", "lowest_price", "median_price", mode="before")
    @classmethod
    def parse_decimal(cls, v: Any) -> Any:
        return _to_decimal(v)

    @property
    def card_name(self) -> str:
        """Product title up to the first ' ('; the printing suffix is dropped."""
        return self.product_name.split(" (", 1)[0]

    @property
    def set_code(self) -> str:
        return self.custom_attributes.number


class TCGPlayerSale(_MarketplaceModel):
    """One realized sale from the latest-sales page."""

    condition: Condition
    variant: str
    quantity: int
    purchase_price: Decimal = Field(alias="purchasePrice")
    shipping_price: Decimal = Field(alias="shippingPrice")
    order_date: datetime = Field(alias="orderDate")
    language: str = "English"
    title: str = ""
    listing_type: str = Field(default="", alias="listingType")

    @field_validator("condition", mode="before")
    @classmethod
    def upper_condition(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("purchase_price", "shipping_price", mode="before")
    @classmethod
    def parse_decimal(cls, v: Any) -> Any:
        return _to_decimal(v)

    @field_validator("order_date")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)


class TCGPlayerSalesResponse(_MarketplaceModel):
    previous_page: str | None = Field(default=None, alias="previousPage")
    next_page: str | None = Field(default=None, alias="nextPage")
    result_count: int = Field(default=0, alias="resultCount")
    total_results: int = Field(default=0, alias="totalResults")
    data: list[TCGPlayerSale]


def decode(model: type[ModelT], payload: Any, what: str) -> ModelT:
    """Validate a raw payload, converting validation failures to DecodeError."""
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.error(
            "tcgplayer_decode_failed",
            payload_kind=what,
            error_count=e.error_count(),
            first_error=str(e.errors()[0]["msg"]) if e.errors() else None,
        )
        raise DecodeError(f"Unexpected {what} payload: {e}") from e


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


def listing_search_body(quantity: int) -> dict[str, Any]:
    """Live English standard listings with stock, cheapest price+shipping first."""
    return {
        "filters": {
            "term": {
                "sellerStatus": "Live",
                "channelId": 0,
                "language": ["English"],
                "listingType": "standard",
            },
            "range": {"quantity": {"gte": 1}},
            "exclude": {"channelExclusion": 0},
        },
        "from": 0,
        "size": quantity,
        "sort": {"field": "price+shipping", "order": "asc"},
        "context": {"shippingCountry": "US", "cart": {}},
    }


def sales_history_body(limit: int) -> dict[str, Any]:
    return {
        "conditions": [],
        "languages": [1],  # English
        "variants": [],
        "listingType": "ListingWithoutPhotos",
        "limit": limit,
    }


# ---------------------------------------------------------------------------
# API Client
# ---------------------------------------------------------------------------


class TCGPlayerClient:
    """
    Async client for the TCGplayer marketplace endpoints.

    Usage:
        async with TCGPlayerClient() as client:
            details = await client.fetch_product_details(12345)
            listings = await client.fetch_listings(12345, quantity=50)
    """

    def __init__(
        self,
        limiter: RateLimiter | None = None,
        search_url: str | None = None,
        sales_url: str | None = None,
        timeout: float | None = None,
    ):
        self._limiter = limiter or RateLimiter()
        self._search_url = (search_url or settings.MARKETPLACE_SEARCH_URL).rstrip("/")
        self._sales_url = (sales_url or settings.MARKETPLACE_SALES_URL).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.MARKETPLACE_TIMEOUT_SECONDS
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> TCGPlayerClient:
        self._client = httpx.AsyncClient(
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=self._timeout,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        url: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Issue one throttled request and return the parsed JSON body."""
        assert self._client is not None, "Client not initialized. Use 'async with'."

        await self._limiter.acquire()

        try:
            response = await self._client.request(method, url, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "tcgplayer_http_error",
                status_code=e.response.status_code,
                url=url,
            )
            raise
        except httpx.RequestError as e:
            logger.error("tcgplayer_request_error", error=str(e), url=url)
            raise

        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Response from {url} is not JSON") from e

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def fetch_listings(
        self, product_id: int, quantity: int | None = None
    ) -> list[TCGPlayerListing]:
        """
        Fetch up to `quantity` live listings for a product.

        Raises:
            DecodeError: payload shape mismatch, including an empty result wrapper.
        """
        size = quantity if quantity is not None else settings.DEFAULT_LISTING_QUANTITY
        logger.info("tcgplayer_fetch_listings", product_id=product_id, size=size)

        data = await self._request(
            "POST",
            f"{self._search_url}/product/{product_id}/listings",
            json=listing_search_body(size),
        )
        response = decode(TCGPlayerListingResponse, data, "listing search")
        if not response.results:
            raise DecodeError(f"Listing search for product {product_id} returned no result groups")

        listings = response.results[0].results
        logger.info(
            "tcgplayer_fetch_listings_complete",
            product_id=product_id,
            results_count=len(listings),
        )
        return listings

    async def fetch_product_details(self, product_id: int) -> TCGPlayerProductDetails:
        logger.info("tcgplayer_fetch_details", product_id=product_id)

        data = await self._request("GET", f"{self._search_url}/product/{product_id}/details")
        details = decode(TCGPlayerProductDetails, data, "product details")

        logger.info(
            "tcgplayer_fetch_details_complete",
            product_id=product_id,
            product_name=details.product_name,
        )
        return details

    async def fetch_sales_history(
        self, product_id: int, limit: int | None = None
    ) -> list[TCGPlayerSale]:
        """Fetch the most recent `limit` English sales for a product."""
        limit = limit if limit is not None else settings.DEFAULT_SALES_LIMIT
        logger.info("tcgplayer_fetch_sales", product_id=product_id, limit=limit)

        data = await self._request(
            "POST",
            f"{self._sales_url}/product/{product_id}/latestsales",
            json=sales_history_body(limit),
        )
        response = decode(TCGPlayerSalesResponse, data, "sales history")

        logger.info(
            "tcgplayer_fetch_sales_complete",
            product_id=product_id,
            results_count=len(response.data),
            total_results=response.total_results,
        )
        return response.data
