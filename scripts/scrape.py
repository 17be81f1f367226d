"""
TCG Watch — Manual Scrape & Catalog CLI

Runs one ingestion entry point (or a full stale refresh) against the
configured database and prints the result as JSON. Also exposes the
catalog reads used while curating the want list.

Usage:
    python scripts/scrape.py listing 517045 --quantity 50
    python scripts/scrape.py all 517045
    python scripts/scrape.py refresh
    python scripts/scrape.py sellers
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from decimal import Decimal
from typing import Any

# Resolve project root so this script can be run from any working directory
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tcgwatch.config import settings
from tcgwatch.engine.acquisition import SellerCards, score_seller
from tcgwatch.engine.acquisition import rank_sellers as rank_sellers_query
from tcgwatch.main import configure_logging, create_db_engine
from tcgwatch.models.printing import Printing
from tcgwatch.pipeline.ingest import Scraper
from tcgwatch.pipeline.refresh import refresh_stale_printings
from tcgwatch.pipeline.tcgplayer import TCGPlayerClient
from tcgwatch.queries import (
    delete_printing,
    get_printing_listings,
    get_sales_history,
    get_seller_listings,
    list_cards,
    update_printing_preferences,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Scrape TCGplayer products into the TCG Watch catalog.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/scrape.py listing 517045
  python scripts/scrape.py sales 517045 --limit 25
  python scripts/scrape.py all 517045
  python scripts/scrape.py refresh
  python scripts/scrape.py sellers
  python scripts/scrape.py update 3 --max-price 12.50 --priority PRIORITY
""",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    listing = sub.add_parser("listing", help="Refresh live listings for a product.")
    listing.add_argument("product_id", type=int)
    listing.add_argument("--quantity", type=int, default=settings.DEFAULT_LISTING_QUANTITY)

    sales = sub.add_parser("sales", help="Refresh sales history for a product.")
    sales.add_argument("product_id", type=int)
    sales.add_argument("--limit", type=int, default=settings.DEFAULT_SALES_LIMIT)

    both = sub.add_parser("all", help="Refresh listings and sales history together.")
    both.add_argument("product_id", type=int)
    both.add_argument("--quantity", type=int, default=settings.DEFAULT_LISTING_QUANTITY)
    both.add_argument("--limit", type=int, default=settings.DEFAULT_SALES_LIMIT)

    sub.add_parser("refresh", help="Re-scrape listings for every stale printing.")
    sub.add_parser("sellers", help="Rank sellers by how many wants they can fill.")
    sub.add_parser("cards", help="List tracked cards and their printings.")

    show = sub.add_parser("show", help="Show a printing's listings (printing id or item number).")
    show.add_argument("id", type=int)

    history = sub.add_parser("history", help="Show a printing's stored sales history.")
    history.add_argument("printing_id", type=int)

    seller = sub.add_parser("seller", help="Show one seller's listings.")
    seller.add_argument("seller_id", type=int)

    update = sub.add_parser("update", help="Change a printing's acquisition preferences.")
    update.add_argument("printing_id", type=int)
    update.add_argument("--max-price", type=Decimal)
    update.add_argument("--priority")
    update.add_argument("--desired-quantity", type=int)
    update.add_argument("--desired-edition")
    update.add_argument("--desired-condition")

    delete = sub.add_parser("delete", help="Delete a printing with its listings and sales.")
    delete.add_argument("printing_id", type=int)

    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# JSON shaping
# ---------------------------------------------------------------------------


def _money(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def printing_payload(printing: Printing) -> dict[str, Any]:
    return {
        "id": printing.id,
        "itemNo": printing.item_no,
        "setName": printing.set_name,
        "setCode": printing.set_code,
        "rarity": printing.rarity,
        "marketPrice": _money(printing.market_price),
        "maxPrice": _money(printing.max_price),
        "priority": printing.priority.value,
        "desiredQuantity": printing.desired_quantity,
        "desiredEdition": printing.desired_edition.value,
        "desiredCondition": printing.desired_condition.value,
        "lastScraped": printing.last_scraped.isoformat() if printing.last_scraped else None,
        "goodDealPrice": _money(printing.good_deal_price),
    }


def seller_payload(entry: SellerCards) -> dict[str, Any]:
    return {
        "seller": {
            "id": entry.seller.id,
            "name": entry.seller.name,
            "key": entry.seller.key,
            "shipping": _money(entry.seller.shipping),
        },
        "score": score_seller(entry),
        "cards": [
            {
                "card": card.card.name,
                "printings": [
                    {
                        "printing": printing_payload(p.printing),
                        "listings": [
                            {
                                "price": _money(li.price),
                                "quantity": li.quantity,
                                "condition": li.condition.value,
                                "edition": li.edition.value,
                            }
                            for li in p.listings
                        ],
                    }
                    for p in card.printings
                ],
            }
            for card in entry.cards
        ],
    }


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def run(args: argparse.Namespace) -> Any:
    engine, session_factory = create_db_engine()

    try:
        if args.command in ("listing", "sales", "all", "refresh"):
            async with TCGPlayerClient() as client:
                scraper = Scraper(client, session_factory)
                if args.command == "listing":
                    result = await scraper.scrape_listing(args.product_id, args.quantity)
                elif args.command == "sales":
                    result = await scraper.scrape_sales_history(args.product_id, args.limit)
                elif args.command == "all":
                    result = await scraper.scrape_all(args.product_id, args.quantity, args.limit)
                else:
                    result = await refresh_stale_printings(scraper, session_factory)
            return result.model_dump(mode="json", by_alias=True)

        async with session_factory() as session, session.begin():
            if args.command == "sellers":
                return [seller_payload(s) for s in await rank_sellers_query(session)]

            if args.command == "cards":
                return [
                    {
                        "card": {"id": entry.card.id, "name": entry.card.name},
                        "printings": [printing_payload(p) for p in entry.printings],
                    }
                    for entry in await list_cards(session)
                ]

            if args.command == "show":
                view = await get_printing_listings(session, args.id)
                return {
                    "card": view.card.name,
                    "printing": printing_payload(view.printing),
                    "listings": [
                        {
                            "price": _money(listing.price),
                            "quantity": listing.quantity,
                            "condition": listing.condition.value,
                            "edition": listing.edition.value,
                            "seller": seller.name,
                            "shipping": _money(seller.shipping),
                        }
                        for listing, seller in view.listings
                    ],
                }

            if args.command == "history":
                view = await get_sales_history(session, args.printing_id)
                return {
                    "card": view.card.name,
                    "printing": printing_payload(view.printing),
                    "sales": [
                        {
                            "orderDate": sale.order_date.isoformat(),
                            "purchasePrice": _money(sale.purchase_price),
                            "shippingPrice": _money(sale.shipping_price),
                            "quantity": sale.quantity,
                            "condition": sale.condition.value,
                            "edition": sale.edition.value,
                        }
                        for sale in view.sales
                    ],
                }

            if args.command == "seller":
                return seller_payload(await get_seller_listings(session, args.seller_id))

            if args.command == "update":
                changes = {
                    name: value
                    for name, value in (
                        ("max_price", args.max_price),
                        ("priority", args.priority),
                        ("desired_quantity", args.desired_quantity),
                        ("desired_edition", args.desired_edition),
                        ("desired_condition", args.desired_condition),
                    )
                    if value is not None
                }
                printing = await update_printing_preferences(session, args.printing_id, changes)
                return printing_payload(printing)

            if args.command == "delete":
                return {"deleted": await delete_printing(session, args.printing_id)}

        raise ValueError(f"Unknown command: {args.command}")
    finally:
        await engine.dispose()


async def main() -> None:
    args = parse_args()
    configure_logging(log_level=settings.LOG_LEVEL)

    try:
        output = await run(args)
    except Exception as e:
        print(f"{args.command} failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(output, indent=2))


if __name__ == "__main__":
    asyncio.run(main())
