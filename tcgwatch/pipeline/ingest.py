"""
TCG Watch — Listing & Sales Ingestor

Replaces a printing's listings and/or sales history with freshly fetched
marketplace data, stamps the staleness timestamps, and recomputes the
printing's good-deal price.

Entry points (Scraper):
- scrape_listing:       listings only; prices against stored sales
- scrape_sales_history: sales only; prices against stored listings
- scrape_all:           both, fetched concurrently; prices against the fresh pair

Replacement is wholesale (delete + insert, no diffing). All writes for one
entry point happen in a single transaction, so readers never observe a
printing with its listing set cleared but not yet refilled.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Sequence

import structlog
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgwatch.engine.good_deal import calculate_good_deal_price
from tcgwatch.models.card import Card
from tcgwatch.models.listing import Listing
from tcgwatch.models.printing import Printing
from tcgwatch.models.sale_record import SaleRecord
from tcgwatch.models.seller import Seller
from tcgwatch.pipeline.catalog import get_or_insert_card, get_or_insert_printing, reconcile_sellers
from tcgwatch.pipeline.tcgplayer import TCGPlayerClient, TCGPlayerListing, TCGPlayerSale
from tcgwatch.utils.condition_map import map_variant_to_edition

logger = structlog.get_logger(__name__)


class ScrapeResult(BaseModel):
    """Summary returned to callers; serializes with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    card_name: str
    set_code: str
    rarity: str
    number_of_listings: int = 0
    number_of_sales: int = 0
    good_deal_price: Decimal | None = None


# ---------------------------------------------------------------------------
# Replace-wholesale writers
# ---------------------------------------------------------------------------


async def replace_listings(
    session: AsyncSession,
    printing: Printing,
    raw_listings: Sequence[TCGPlayerListing],
    seller_map: dict[str, Seller],
) -> list[Listing]:
    """
    Swap the printing's listings for one row per raw listing.

    Every raw listing's seller must already be in seller_map (see
    catalog.reconcile_sellers). Stamps printing.last_scraped.
    """
    await session.execute(delete(Listing).where(Listing.printing_id == printing.id))

    rows = [
        Listing(
            price=raw.price,
            quantity=raw.quantity,
            direct_quantity=raw.direct_inventory,
            condition=raw.condition,
            edition=raw.printing,
            printing_id=printing.id,
            seller_id=seller_map[raw.seller_key].id,
        )
        for raw in raw_listings
    ]
    session.add_all(rows)
    printing.last_scraped = datetime.now(timezone.utc)
    await session.flush()

    logger.info("listings_replaced", item_no=printing.item_no, count=len(rows))
    return rows


async def replace_sales_history(
    session: AsyncSession,
    printing: Printing,
    raw_sales: Sequence[TCGPlayerSale],
) -> list[SaleRecord]:
    """Swap the printing's sales history. Stamps printing.sales_last_scraped."""
    await session.execute(delete(SaleRecord).where(SaleRecord.printing_id == printing.id))

    rows = [
        SaleRecord(
            condition=raw.condition,
            edition=map_variant_to_edition(raw.variant),
            quantity=raw.quantity,
            purchase_price=raw.purchase_price,
            shipping_price=raw.shipping_price,
            order_date=raw.order_date,
            printing_id=printing.id,
        )
        for raw in raw_sales
    ]
    session.add_all(rows)
    printing.sales_last_scraped = datetime.now(timezone.utc)
    await session.flush()

    logger.info("sales_history_replaced", item_no=printing.item_no, count=len(rows))
    return rows


# ---------------------------------------------------------------------------
# Stored rows → marketplace-shaped records (pricing input)
# ---------------------------------------------------------------------------


def listing_record_from_row(listing: Listing, seller: Seller) -> TCGPlayerListing:
    return TCGPlayerListing(
        price=listing.price,
        quantity=listing.quantity,
        direct_inventory=listing.direct_quantity,
        condition=listing.condition,
        printing=listing.edition,
        seller_key=seller.key,
        seller_name=seller.name,
        shipping_price=seller.shipping,
        seller_shipping_price=seller.shipping,
        seller_rating=seller.rating,
        seller_sales=seller.number_of_sales,
        gold_seller=seller.gold,
        direct_seller=seller.direct,
        verified_seller=seller.verified,
    )


def sale_record_from_row(sale: SaleRecord, card: Card) -> TCGPlayerSale:
    return TCGPlayerSale(
        condition=sale.condition,
        variant=sale.edition.value,
        quantity=sale.quantity,
        purchase_price=sale.purchase_price,
        shipping_price=sale.shipping_price,
        order_date=sale.order_date,
        title=card.name,
        listing_type="standard",
    )


async def load_listing_records(session: AsyncSession, printing: Printing) -> list[TCGPlayerListing]:
    rows = await session.execute(
        select(Listing, Seller)
        .join(Seller, Seller.id == Listing.seller_id)
        .where(Listing.printing_id == printing.id)
    )
    return [listing_record_from_row(listing, seller) for listing, seller in rows.all()]


async def load_sale_records(
    session: AsyncSession, printing: Printing, card: Card
) -> list[TCGPlayerSale]:
    rows = await session.execute(select(SaleRecord).where(SaleRecord.printing_id == printing.id))
    return [sale_record_from_row(sale, card) for sale in rows.scalars().all()]


async def store_good_deal_price(
    session: AsyncSession,
    printing: Printing,
    listings: Iterable[TCGPlayerListing],
    sales: Iterable[TCGPlayerSale],
) -> Decimal | None:
    """Recompute the good-deal price; persist it only when one was produced."""
    price = calculate_good_deal_price(listings, sales, printing)
    if price is not None:
        printing.good_deal_price = price
        await session.flush()
    return price


# ---------------------------------------------------------------------------
# Pipeline entry points
# ---------------------------------------------------------------------------


class Scraper:
    """
    Drives fetch → reconcile → replace → price for one marketplace product.

    Usage:
        async with TCGPlayerClient() as client:
            scraper = Scraper(client, session_factory)
            result = await scraper.scrape_all(12345)
    """

    def __init__(
        self,
        client: TCGPlayerClient,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self._client = client
        self._session_factory = session_factory

    async def scrape_listing(self, product_id: int, quantity: int | None = None) -> ScrapeResult:
        """Refresh live listings and reprice against the stored sales history."""
        logger.info("scrape_listing_start", product_id=product_id)

        details = await self._client.fetch_product_details(product_id)
        raw_listings = await self._client.fetch_listings(product_id, quantity)

        async with self._session_factory() as session, session.begin():
            seller_map = await reconcile_sellers(session, raw_listings)
            card = await get_or_insert_card(session, details)
            printing = await get_or_insert_printing(session, card, details)

            stored_sales = await load_sale_records(session, printing, card)
            listings = await replace_listings(session, printing, raw_listings, seller_map)
            good_deal_price = await store_good_deal_price(
                session, printing, raw_listings, stored_sales
            )

            result = ScrapeResult(
                card_name=card.name,
                set_code=printing.set_code,
                rarity=printing.rarity,
                number_of_listings=len(listings),
                good_deal_price=good_deal_price,
            )

        logger.info(
            "scrape_listing_complete",
            product_id=product_id,
            listings=result.number_of_listings,
            good_deal_price=str(good_deal_price) if good_deal_price is not None else None,
        )
        return result

    async def scrape_sales_history(self, product_id: int, limit: int | None = None) -> ScrapeResult:
        """Refresh sales history and reprice against the stored listings."""
        logger.info("scrape_sales_start", product_id=product_id)

        details = await self._client.fetch_product_details(product_id)
        raw_sales = await self._client.fetch_sales_history(product_id, limit)

        async with self._session_factory() as session, session.begin():
            card = await get_or_insert_card(session, details)
            printing = await get_or_insert_printing(session, card, details)

            sales = await replace_sales_history(session, printing, raw_sales)
            stored_listings = await load_listing_records(session, printing)
            good_deal_price = await store_good_deal_price(
                session, printing, stored_listings, raw_sales
            )

            result = ScrapeResult(
                card_name=card.name,
                set_code=printing.set_code,
                rarity=printing.rarity,
                number_of_sales=len(sales),
                good_deal_price=good_deal_price,
            )

        logger.info(
            "scrape_sales_complete",
            product_id=product_id,
            sales=result.number_of_sales,
            good_deal_price=str(good_deal_price) if good_deal_price is not None else None,
        )
        return result

    async def scrape_all(
        self,
        product_id: int,
        listing_quantity: int | None = None,
        sales_limit: int | None = None,
    ) -> ScrapeResult:
        """Refresh listings and sales together and reprice against both."""
        logger.info("scrape_all_start", product_id=product_id)

        details = await self._client.fetch_product_details(product_id)
        # Both fetches wait on the same rate limiter and both finish before
        # any error propagates
        fetched = await asyncio.gather(
            self._client.fetch_listings(product_id, listing_quantity),
            self._client.fetch_sales_history(product_id, sales_limit),
            return_exceptions=True,
        )
        for outcome in fetched:
            if isinstance(outcome, BaseException):
                logger.error(
                    "scrape_all_fetch_failed",
                    product_id=product_id,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
                raise outcome
        raw_listings, raw_sales = fetched

        async with self._session_factory() as session, session.begin():
            seller_map = await reconcile_sellers(session, raw_listings)
            card = await get_or_insert_card(session, details)
            printing = await get_or_insert_printing(session, card, details)

            listings = await replace_listings(session, printing, raw_listings, seller_map)
            sales = await replace_sales_history(session, printing, raw_sales)
            good_deal_price = await store_good_deal_price(
                session, printing, raw_listings, raw_sales
            )

            result = ScrapeResult(
                card_name=card.name,
                set_code=printing.set_code,
                rarity=printing.rarity,
                number_of_listings=len(listings),
                number_of_sales=len(sales),
                good_deal_price=good_deal_price,
            )

        logger.info(
            "scrape_all_complete",
            product_id=product_id,
            listings=result.number_of_listings,
            sales=result.number_of_sales,
            good_deal_price=str(good_deal_price) if good_deal_price is not None else None,
        )
        return result
