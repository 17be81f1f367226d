"""
TCG Watch — Catalog Reconciler

Maps decoded marketplace records onto Card, Printing and Seller rows.

Every natural key (Card.name, Printing.item_no, Seller.key) is written
with INSERT ... ON CONFLICT against its unique constraint and then read
back, so concurrent ingestion of the same product cannot create
duplicates.
"""

from __future__ import annotations

from typing import Any, Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from tcgwatch.config import Condition, Edition, Priority
from tcgwatch.models.card import Card
from tcgwatch.models.printing import Printing
from tcgwatch.models.seller import Seller
from tcgwatch.pipeline.tcgplayer import TCGPlayerListing, TCGPlayerProductDetails

logger = structlog.get_logger(__name__)


def _dialect_insert(session: AsyncSession) -> Any:
    """Return the dialect's insert() construct that supports ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert not supported for dialect {dialect!r}")


# ---------------------------------------------------------------------------
# Cards & printings
# ---------------------------------------------------------------------------


async def get_or_insert_card(session: AsyncSession, details: TCGPlayerProductDetails) -> Card:
    """
    Return the Card named after the product's base title, creating it if new.

    Matching is exact: "Dark Magician" and "dark magician" are different cards.
    """
    name = details.card_name
    insert = _dialect_insert(session)

    result = await session.execute(
        insert(Card).values(name=name).on_conflict_do_nothing(index_elements=["name"])
    )
    if result.rowcount:
        logger.info("card_inserted", name=name)

    return (await session.execute(select(Card).where(Card.name == name))).scalar_one()


async def get_or_insert_printing(
    session: AsyncSession,
    card: Card,
    details: TCGPlayerProductDetails,
) -> Printing:
    """
    Return the Printing for details.product_id, creating it with default
    acquisition preferences if new.

    An existing printing keeps its original detail snapshot; a re-fetch of
    product details does not overwrite it.
    """
    insert = _dialect_insert(session)

    stmt = (
        insert(Printing)
        .values(
            item_no=details.product_id,
            set_name=details.set_name,
            set_code=details.set_code,
            rarity=details.rarity_name,
            market_price=details.market_price,
            card_id=card.id,
            priority=Priority.ENABLED,
            desired_quantity=1,
            desired_edition=Edition.ANY,
            desired_condition=Condition.MODERATELY_PLAYED,
        )
        .on_conflict_do_nothing(index_elements=["item_no"])
    )
    result = await session.execute(stmt)
    if result.rowcount:
        logger.info(
            "printing_inserted",
            item_no=details.product_id,
            card=card.name,
            set_code=details.set_code,
        )

    return (
        await session.execute(select(Printing).where(Printing.item_no == details.product_id))
    ).scalar_one()


# ---------------------------------------------------------------------------
# Sellers
# ---------------------------------------------------------------------------


def _seller_values(listing: TCGPlayerListing) -> dict[str, Any]:
    return {
        "name": listing.seller_name,
        "key": listing.seller_key,
        "shipping": listing.shipping_price,
        "rating": listing.seller_rating,
        "number_of_sales": listing.seller_sales,
        "free_shipping": not listing.seller_shipping_price,
        "gold": listing.gold_seller,
        "direct": listing.direct_seller,
        "verified": listing.verified_seller,
    }


async def reconcile_sellers(
    session: AsyncSession,
    raw_listings: Iterable[TCGPlayerListing],
) -> dict[str, Seller]:
    """
    Bring the seller table in line with the sellers seen in raw_listings.

    Known sellers whose shipping or name drifted get name, shipping and
    free_shipping patched; unknown sellers are upserted. Identity fields
    (rating, sales, gold/direct/verified) are never touched after the first
    sighting. Last writer wins when the same key appears more than once.

    Returns:
        Every known seller keyed by marketplace seller key.
    """
    sellers = (await session.execute(select(Seller))).scalars().all()
    seller_map: dict[str, Seller] = {seller.key: seller for seller in sellers}

    insert = _dialect_insert(session)
    patched = 0
    inserted = 0

    for listing in raw_listings:
        known = seller_map.get(listing.seller_key)

        if known is not None:
            if known.shipping != listing.shipping_price or known.name != listing.seller_name:
                known.name = listing.seller_name
                known.shipping = listing.shipping_price
                known.free_shipping = not listing.seller_shipping_price
                await session.flush()
                patched += 1
                logger.debug(
                    "seller_patched",
                    key=known.key,
                    name=known.name,
                    shipping=str(known.shipping),
                )
            continue

        values = _seller_values(listing)
        stmt = insert(Seller).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={
                "name": stmt.excluded.name,
                "shipping": stmt.excluded.shipping,
                "free_shipping": stmt.excluded.free_shipping,
            },
        )
        await session.execute(stmt)
        seller_map[listing.seller_key] = (
            await session.execute(select(Seller).where(Seller.key == listing.seller_key))
        ).scalar_one()
        inserted += 1

    logger.info("sellers_reconciled", known=len(seller_map), inserted=inserted, patched=patched)
    return seller_map
