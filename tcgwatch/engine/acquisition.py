"""
TCG Watch — Acquisition Rules & Seller Ranking

Decides which live listings satisfy each printing's acquisition policy and
ranks sellers by how many open wants they can fill.

Rule (per printing, per listing):
- FORCE always passes; DISABLED and HIDE never pass.
- Otherwise reject when price > max_price (if set), when condition is worse
  than desired, when desired edition is not ANY and differs, or when
  quantity < desired_quantity (waived for PRIORITY).

Scoring:
- listings  → 0 for HIDE/DISABLED, else min(sum(quantity), desired_quantity)
- printings → min over the card's printings (a seller is only as good as
  its worst-served want for that card)
- seller    → sum over cards

Ranking keeps sellers scoring above settings.SELLER_MIN_SCORE, best first.
"""

from __future__ import annotations

from typing import Iterable, NamedTuple, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tcgwatch.config import Priority, settings
from tcgwatch.models.card import Card
from tcgwatch.models.listing import Listing
from tcgwatch.models.printing import Printing
from tcgwatch.models.seller import Seller
from tcgwatch.utils.condition_map import edition_matches, meets_condition

logger = structlog.get_logger(__name__)


class PrintingListings(NamedTuple):
    printing: Printing
    listings: list[Listing]


class CardPrintings(NamedTuple):
    card: Card
    printings: list[PrintingListings]


class SellerCards(NamedTuple):
    seller: Seller
    cards: list[CardPrintings]


# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------


def passes_acquisition_rule(printing: Printing, listing: Listing) -> bool:
    """True if the listing is worth surfacing under the printing's policy."""
    if printing.priority == Priority.FORCE:
        return True

    if printing.priority in (Priority.DISABLED, Priority.HIDE):
        return False

    # max_price of 0 is treated as unset
    if printing.max_price and listing.price > printing.max_price:
        return False

    if not meets_condition(listing.condition, printing.desired_condition):
        return False

    if not edition_matches(listing.edition, printing.desired_edition):
        return False

    if printing.priority != Priority.PRIORITY and listing.quantity < printing.desired_quantity:
        return False

    return True


def filter_sellers(sellers: Iterable[SellerCards]) -> list[SellerCards]:
    """
    Keep only passing listings, then drop printings, cards and sellers
    left with nothing.
    """
    kept: list[SellerCards] = []
    for entry in sellers:
        cards: list[CardPrintings] = []
        for card_entry in entry.cards:
            printings = [
                PrintingListings(
                    p.printing,
                    [l for l in p.listings if passes_acquisition_rule(p.printing, l)],
                )
                for p in card_entry.printings
            ]
            printings = [p for p in printings if p.listings]
            if printings:
                cards.append(CardPrintings(card_entry.card, printings))
        if cards:
            kept.append(SellerCards(entry.seller, cards))
    return kept


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def score_listings(printing: Printing, listings: Sequence[Listing]) -> int:
    if printing.priority in (Priority.HIDE, Priority.DISABLED):
        return 0
    return min(sum(listing.quantity for listing in listings), printing.desired_quantity)


def score_printings(printings: Sequence[PrintingListings]) -> int:
    if not printings:
        return 0
    return min(score_listings(p.printing, p.listings) for p in printings)


def score_seller(seller: SellerCards) -> int:
    return sum(score_printings(card.printings) for card in seller.cards)


def rank_filtered(
    sellers: Iterable[SellerCards],
    min_score: int | None = None,
) -> list[SellerCards]:
    """Filter by rule, drop sellers scoring <= min_score, sort best first."""
    min_score = min_score if min_score is not None else settings.SELLER_MIN_SCORE

    scored = [(score_seller(s), s) for s in filter_sellers(sellers)]
    scored = [(score, s) for score, s in scored if score > min_score]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [s for _, s in scored]


# ---------------------------------------------------------------------------
# Catalog access
# ---------------------------------------------------------------------------


def group_rows(rows: Iterable[tuple[Seller, Listing, Printing, Card]]) -> list[SellerCards]:
    """Nest flat join rows into seller → card → printing → listings, keeping row order."""
    tree: dict[int, tuple[Seller, dict[int, tuple[Card, dict[int, PrintingListings]]]]] = {}

    for seller, listing, printing, card in rows:
        _, cards = tree.setdefault(seller.id, (seller, {}))
        _, printings = cards.setdefault(card.id, (card, {}))
        printings.setdefault(printing.id, PrintingListings(printing, [])).listings.append(listing)

    return [
        SellerCards(
            seller,
            [CardPrintings(card, list(printings.values())) for card, printings in cards.values()],
        )
        for seller, cards in tree.values()
    ]


async def load_seller_listings(session: AsyncSession) -> list[SellerCards]:
    """Every non-blocked seller's listings, nested by card and printing."""
    stmt = (
        select(Seller, Listing, Printing, Card)
        .join(Listing, Listing.seller_id == Seller.id)
        .join(Printing, Printing.id == Listing.printing_id)
        .join(Card, Card.id == Printing.card_id)
        .where(Seller.blocked.is_(False))
        .order_by(Seller.id, Card.id, Printing.id, Listing.price)
    )
    result = await session.execute(stmt)
    return group_rows(result.tuples().all())


async def rank_sellers(session: AsyncSession, min_score: int | None = None) -> list[SellerCards]:
    """Sellers that can fill open wants, best first."""
    sellers = await load_seller_listings(session)
    ranked = rank_filtered(sellers, min_score)

    logger.info("sellers_ranked", candidates=len(sellers), ranked=len(ranked))
    return ranked
