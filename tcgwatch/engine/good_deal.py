"""
TCG Watch — Good-Deal Price

Derives a recommended acquisition price for a printing from its live
listings and recent sales, filtered by the printing's desired condition
and edition.

Strategies (config.GoodDealStrategy):

    WEIGHTED_PERCENTILE (default)
        1. Keep listings/sales at least as good as the desired condition and
           whose edition matches (either side ANY counts as a match).
        2. Sample = each sale's purchase price twice, each listing's price once.
        3. Empty sample → None.
        4. Sort ascending; take index floor(n × 0.25); round to cents.

    TREND_BLENDED (legacy)
        Median of recency-discounted sale totals blended with the 25th
        percentile of listing totals, adjusted for price trend and sales rate.

Optionally falls back to marketPrice × 0.85 when a strategy has no data.
The public entry point never raises: failures are logged and return None.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Sequence

import structlog

from tcgwatch.config import Condition, Edition, GoodDealStrategy, settings
from tcgwatch.models.printing import Printing
from tcgwatch.pipeline.tcgplayer import TCGPlayerListing, TCGPlayerSale
from tcgwatch.utils.condition_map import edition_matches, map_variant_to_edition, meets_condition

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


def _round(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _desired(printing: Printing) -> tuple[Condition, Edition, int]:
    # Unsaved printings may not have column defaults applied yet
    return (
        printing.desired_condition or Condition.MODERATELY_PLAYED,
        printing.desired_edition or Edition.ANY,
        printing.desired_quantity or 1,
    )


def _matches(condition: Condition, edition: Edition, printing: Printing) -> bool:
    desired_condition, desired_edition, _ = _desired(printing)
    return meets_condition(condition, desired_condition) and edition_matches(
        edition, desired_edition, any_actual_matches=True
    )


def _percentile(values: Sequence[Decimal], fraction: Decimal) -> Decimal:
    """Value at index floor(n × fraction) of an ascending sequence."""
    index = min(int(len(values) * fraction), len(values) - 1)
    return values[index]


def matching_listings(
    listings: Iterable[TCGPlayerListing], printing: Printing
) -> list[TCGPlayerListing]:
    return [li for li in listings if _matches(li.condition, li.printing, printing)]


def matching_sales(sales: Iterable[TCGPlayerSale], printing: Printing) -> list[TCGPlayerSale]:
    return [s for s in sales if _matches(s.condition, map_variant_to_edition(s.variant), printing)]


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def weighted_percentile_price(
    listings: Sequence[TCGPlayerListing],
    sales: Sequence[TCGPlayerSale],
    printing: Printing,
    percentile: Decimal | None = None,
    sale_weight: int | None = None,
) -> Decimal | None:
    """
    25th percentile of a combined sample where sales count double.

    Example: sales [10, 12], listings [9, 20]
        sample [9, 10, 10, 12, 12, 20] → index floor(6 × 0.25) = 1 → 10.00
    """
    percentile = percentile if percentile is not None else settings.GOOD_DEAL_PERCENTILE
    sale_weight = sale_weight if sale_weight is not None else settings.GOOD_DEAL_SALE_WEIGHT

    sample: list[Decimal] = []
    for sale in matching_sales(sales, printing):
        sample.extend([sale.purchase_price] * sale_weight)
    for listing in matching_listings(listings, printing):
        sample.append(listing.price)

    if not sample:
        return None

    sample.sort()
    return _round(_percentile(sample, percentile))


def trend_blended_price(
    listings: Sequence[TCGPlayerListing],
    sales: Sequence[TCGPlayerSale],
    printing: Printing,
    now: datetime | None = None,
) -> Decimal | None:
    """Legacy heuristic kept for parity with historical good-deal prices."""
    now = now or datetime.now(timezone.utc)
    _, _, desired_quantity = _desired(printing)

    # --- Sales: recency-discounted totals ---
    priced_sales: list[tuple[Decimal, datetime]] = []
    for sale in matching_sales(sales, printing):
        total = sale.purchase_price + sale.shipping_price
        quantity_multiplier = (
            Decimal("0.9") if desired_quantity > 1 and sale.quantity > 1 else Decimal("1.0")
        )
        days_since_sale = (now - sale.order_date).days
        recency = max(Decimal("0.8"), 1 - Decimal(days_since_sale) / 100)
        priced_sales.append((total * quantity_multiplier * recency, sale.order_date))

    sales_median: Decimal | None = None
    sales_trend = Decimal("0")
    sales_rate = Decimal("0")

    if priced_sales:
        prices = sorted(p for p, _ in priced_sales)
        mid = len(prices) // 2
        if len(prices) % 2 == 0:
            sales_median = (prices[mid - 1] + prices[mid]) / 2
        else:
            sales_median = prices[mid]

        if len(priced_sales) >= 5:
            by_date = sorted(priced_sales, key=lambda s: s[1], reverse=True)
            recent_avg = sum(p for p, _ in by_date[:3]) / 3
            # Older window never overlaps the recent three; divisor stays 3
            older_avg = sum(p for p, _ in by_date[max(3, len(by_date) - 3):]) / 3
            sales_trend = (recent_avg - older_avg) / older_avg

        if len(priced_sales) >= 2:
            dates = [d for _, d in priced_sales]
            day_span = max(1, (max(dates) - min(dates)).days)
            sales_rate = Decimal(len(priced_sales)) / day_span

    # --- Listings: totals with shipping, sufficient quantity only ---
    listing_totals = sorted(
        listing.price + listing.shipping_price
        for listing in matching_listings(listings, printing)
        if listing.quantity >= desired_quantity
    )
    listings_percentile = (
        _percentile(listing_totals, Decimal("0.25")) if listing_totals else None
    )

    if sales_median and listings_percentile:
        base = min(sales_median * Decimal("0.9"), listings_percentile)

        if sales_trend < Decimal("-0.1"):
            base *= Decimal("0.9")
        elif sales_trend > Decimal("0.1"):
            base *= Decimal("0.95")

        if sales_rate > 1:
            base *= Decimal("0.95")
        elif sales_rate < Decimal("0.2"):
            base *= Decimal("0.85")

        return _round(base)
    if sales_median:
        return _round(sales_median * Decimal("0.85"))
    if listings_percentile:
        return _round(listings_percentile * Decimal("0.9"))
    return None


_STRATEGIES: dict[
    GoodDealStrategy,
    Callable[[Sequence[TCGPlayerListing], Sequence[TCGPlayerSale], Printing], Decimal | None],
] = {
    GoodDealStrategy.WEIGHTED_PERCENTILE: weighted_percentile_price,
    GoodDealStrategy.TREND_BLENDED: trend_blended_price,
}


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def calculate_good_deal_price(
    listings: Iterable[TCGPlayerListing],
    sales: Iterable[TCGPlayerSale],
    printing: Printing,
    strategy: GoodDealStrategy | None = None,
    market_fallback: bool | None = None,
) -> Decimal | None:
    """
    Compute the good-deal price for a printing.

    Args:
        listings: Live listings in marketplace shape.
        sales: Sales history in marketplace shape.
        printing: Printing whose desired condition/edition/quantity apply.
        strategy: Heuristic to run (default: settings.GOOD_DEAL_STRATEGY).
        market_fallback: Use marketPrice × ratio when the heuristic has no
            data (default: settings.GOOD_DEAL_MARKET_FALLBACK).

    Returns:
        Price rounded to cents, or None when there is nothing to recommend.
        None means "leave the stored price alone".
    """
    strategy = strategy or settings.GOOD_DEAL_STRATEGY
    if market_fallback is None:
        market_fallback = settings.GOOD_DEAL_MARKET_FALLBACK

    try:
        price = _STRATEGIES[strategy](list(listings), list(sales), printing)

        if price is None and market_fallback and printing.market_price:
            price = _round(
                Decimal(printing.market_price) * settings.GOOD_DEAL_MARKET_FALLBACK_RATIO
            )
            logger.debug("good_deal_price_market_fallback", item_no=printing.item_no)
    except Exception as e:
        logger.error(
            "good_deal_price_failed",
            item_no=getattr(printing, "item_no", None),
            strategy=getattr(strategy, "value", str(strategy)),
            error=str(e),
            error_type=type(e).__name__,
        )
        return None

    logger.debug(
        "good_deal_price_calculated",
        item_no=printing.item_no,
        strategy=strategy.value,
        price=str(price) if price is not None else None,
    )
    return price
