"""
TCG Watch — Catalog Queries & Maintenance

Read and maintenance operations over the tracked catalog, used by the HTTP
layer and scripts/scrape.py. Functions take an open session and never
commit; the caller owns the transaction.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, NamedTuple

import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tcgwatch.config import Condition, Edition, Priority
from tcgwatch.engine.acquisition import SellerCards, group_rows
from tcgwatch.models.card import Card
from tcgwatch.models.listing import Listing
from tcgwatch.models.printing import Printing
from tcgwatch.models.sale_record import SaleRecord
from tcgwatch.models.seller import Seller

logger = structlog.get_logger(__name__)


class PrintingNotFoundError(LookupError):
    def __init__(self, printing_id: int):
        super().__init__(f"Printing not found: {printing_id}")
        self.printing_id = printing_id


class SellerNotFoundError(LookupError):
    def __init__(self, seller_id: int):
        super().__init__(f"Seller not found or has no applicable listings: {seller_id}")
        self.seller_id = seller_id


class CardWithPrintings(NamedTuple):
    card: Card
    printings: list[Printing]


class PrintingListingsView(NamedTuple):
    printing: Printing
    card: Card
    listings: list[tuple[Listing, Seller]]


class PrintingSalesView(NamedTuple):
    printing: Printing
    card: Card
    sales: list[SaleRecord]


class PreferenceUpdate(BaseModel):
    """
    Partial update of a printing's acquisition preferences.

    Unknown fields are rejected. Accepts snake_case or camelCase keys.
    Only max_price may be cleared with an explicit null.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    max_price: Decimal | None = Field(default=None, ge=0)
    priority: Priority | None = None
    desired_quantity: int | None = Field(default=None, ge=1)
    desired_edition: Edition | None = None
    desired_condition: Condition | None = None

    @model_validator(mode="after")
    def _reject_null_required(self) -> "PreferenceUpdate":
        for name in ("priority", "desired_quantity", "desired_edition", "desired_condition"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_cards(session: AsyncSession) -> list[CardWithPrintings]:
    """Every card with its printings, sorted case-insensitively by name."""
    rows = await session.execute(
        select(Card, Printing)
        .outerjoin(Printing, Printing.card_id == Card.id)
        .order_by(Card.id, Printing.id)
    )

    grouped: dict[int, CardWithPrintings] = {}
    for card, printing in rows.tuples().all():
        entry = grouped.setdefault(card.id, CardWithPrintings(card, []))
        if printing is not None:
            entry.printings.append(printing)

    return sorted(grouped.values(), key=lambda entry: entry.card.name.upper())


async def _resolve_printing(session: AsyncSession, id_or_item_no: int) -> Printing:
    printing = await session.get(Printing, id_or_item_no)
    if printing is None:
        result = await session.execute(
            select(Printing).where(Printing.item_no == id_or_item_no)
        )
        printing = result.scalar_one_or_none()
    if printing is None:
        raise PrintingNotFoundError(id_or_item_no)
    return printing


async def get_printing_listings(
    session: AsyncSession, id_or_item_no: int
) -> PrintingListingsView:
    """
    A printing's live listings with their sellers, cheapest first.

    The argument is tried as a printing id first, then as a marketplace
    item number.
    """
    printing = await _resolve_printing(session, id_or_item_no)
    card = await session.get(Card, printing.card_id)

    rows = await session.execute(
        select(Listing, Seller)
        .join(Seller, Seller.id == Listing.seller_id)
        .where(Listing.printing_id == printing.id)
        .order_by(Listing.price, Listing.id)
    )
    return PrintingListingsView(printing, card, list(rows.tuples().all()))


async def get_sales_history(session: AsyncSession, printing_id: int) -> PrintingSalesView:
    """A printing's stored sales, most recent first."""
    printing = await session.get(Printing, printing_id)
    if printing is None:
        raise PrintingNotFoundError(printing_id)
    card = await session.get(Card, printing.card_id)

    rows = await session.execute(
        select(SaleRecord)
        .where(SaleRecord.printing_id == printing.id)
        .order_by(SaleRecord.order_date.desc(), SaleRecord.id)
    )
    return PrintingSalesView(printing, card, list(rows.scalars().all()))


async def get_seller_listings(session: AsyncSession, seller_id: int) -> SellerCards:
    """One seller's listings nested by card and printing, DISABLED printings excluded."""
    rows = await session.execute(
        select(Seller, Listing, Printing, Card)
        .join(Listing, Listing.seller_id == Seller.id)
        .join(Printing, Printing.id == Listing.printing_id)
        .join(Card, Card.id == Printing.card_id)
        .where(Seller.id == seller_id, Printing.priority != Priority.DISABLED)
        .order_by(Card.id, Printing.id, Listing.price)
    )
    grouped = group_rows(rows.tuples().all())
    if not grouped:
        raise SellerNotFoundError(seller_id)
    return grouped[0]


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


async def update_printing_preferences(
    session: AsyncSession,
    printing_id: int,
    changes: PreferenceUpdate | Mapping[str, Any],
) -> Printing:
    """
    Apply a partial preference update.

    Raises:
        pydantic.ValidationError: unknown field or invalid value.
        PrintingNotFoundError: no printing with that id.
    """
    if not isinstance(changes, PreferenceUpdate):
        changes = PreferenceUpdate.model_validate(changes)

    printing = await session.get(Printing, printing_id)
    if printing is None:
        raise PrintingNotFoundError(printing_id)

    updates = changes.model_dump(exclude_unset=True)
    for name, value in updates.items():
        setattr(printing, name, value)
    await session.flush()

    logger.info("printing_preferences_updated", printing_id=printing_id, fields=sorted(updates))
    return printing


async def delete_printing(session: AsyncSession, printing_id: int) -> bool:
    """
    Delete a printing with its listings and sales; drop its card when no
    other printing references it. Returns False if there was no such printing.
    """
    printing = await session.get(Printing, printing_id)
    if printing is None:
        return False
    card_id = printing.card_id

    await session.execute(delete(Listing).where(Listing.printing_id == printing_id))
    await session.execute(delete(SaleRecord).where(SaleRecord.printing_id == printing_id))
    await session.delete(printing)
    await session.flush()

    remaining = await session.scalar(
        select(func.count()).select_from(Printing).where(Printing.card_id == card_id)
    )
    card_deleted = not remaining
    if card_deleted:
        await session.execute(delete(Card).where(Card.id == card_id))

    logger.info(
        "printing_deleted",
        printing_id=printing_id,
        card_id=card_id,
        card_deleted=card_deleted,
    )
    return True
