"""Initial schema — cards, printings, sellers, listings, sales_history

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUMS = {
    "priority": ("DISABLED", "ENABLED", "PRIORITY", "FORCE", "HIDE"),
    "condition": (
        "NEAR MINT",
        "LIGHTLY PLAYED",
        "MODERATELY PLAYED",
        "HEAVILY PLAYED",
        "DAMAGED",
    ),
    "edition": ("ANY", "1ST EDITION", "LIMITED", "UNLIMITED"),
}


def _enum(name: str) -> postgresql.ENUM:
    # Types are created once up front; listings and sales_history share them
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # --- cards ---
    op.create_table(
        "cards",
        sa.Column("id", sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False, comment="Base card name"),
        sa.UniqueConstraint("name", name="uq_cards_name"),
    )

    # --- printings ---
    op.create_table(
        "printings",
        sa.Column("id", sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column("item_no", sa.INTEGER(), nullable=False, comment="Marketplace product id"),
        sa.Column("set_name", sa.String(), nullable=False),
        sa.Column("set_code", sa.String(), nullable=False),
        sa.Column("rarity", sa.String(), nullable=False),
        sa.Column("market_price", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("card_id", sa.INTEGER(), sa.ForeignKey("cards.id"), nullable=False),
        sa.Column("max_price", sa.DECIMAL(10, 2), nullable=True),
        sa.Column("priority", _enum("priority"), nullable=False, server_default="ENABLED"),
        sa.Column("desired_quantity", sa.INTEGER(), nullable=False, server_default="1"),
        sa.Column("desired_edition", _enum("edition"), nullable=False, server_default="ANY"),
        sa.Column(
            "desired_condition",
            _enum("condition"),
            nullable=False,
            server_default="MODERATELY PLAYED",
        ),
        sa.Column(
            "last_scraped",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="Last listing refresh",
        ),
        sa.Column(
            "sales_last_scraped",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="Last sales-history refresh",
        ),
        sa.Column(
            "good_deal_price",
            sa.DECIMAL(10, 2),
            nullable=True,
            comment="Derived acquisition price",
        ),
        sa.UniqueConstraint("item_no", name="uq_printings_item_no"),
    )
    op.create_index("ix_printings_card_id", "printings", ["card_id"])

    # --- sellers ---
    op.create_table(
        "sellers",
        sa.Column("id", sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("key", sa.String(), nullable=False, comment="Marketplace seller key"),
        sa.Column("shipping", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("rating", sa.DECIMAL(5, 2), nullable=False),
        sa.Column("number_of_sales", sa.String(), nullable=False),
        sa.Column("free_shipping", sa.BOOLEAN(), nullable=False),
        sa.Column("gold", sa.BOOLEAN(), nullable=False),
        sa.Column("direct", sa.BOOLEAN(), nullable=False),
        sa.Column("verified", sa.BOOLEAN(), nullable=False),
        sa.Column("blocked", sa.BOOLEAN(), nullable=False, server_default="false"),
        sa.UniqueConstraint("key", name="uq_sellers_key"),
    )

    # --- listings ---
    op.create_table(
        "listings",
        sa.Column("id", sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column("price", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("quantity", sa.INTEGER(), nullable=False),
        sa.Column("direct_quantity", sa.INTEGER(), nullable=False),
        sa.Column("condition", _enum("condition"), nullable=False),
        sa.Column("edition", _enum("edition"), nullable=False),
        sa.Column("printing_id", sa.INTEGER(), sa.ForeignKey("printings.id"), nullable=False),
        sa.Column("seller_id", sa.INTEGER(), sa.ForeignKey("sellers.id"), nullable=False),
    )
    op.create_index("ix_listings_printing_id", "listings", ["printing_id"])
    op.create_index("ix_listings_seller_id", "listings", ["seller_id"])

    # --- sales_history ---
    op.create_table(
        "sales_history",
        sa.Column("id", sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column("condition", _enum("condition"), nullable=False),
        sa.Column("edition", _enum("edition"), nullable=False),
        sa.Column("quantity", sa.INTEGER(), nullable=False),
        sa.Column("purchase_price", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("shipping_price", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("order_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("printing_id", sa.INTEGER(), sa.ForeignKey("printings.id"), nullable=False),
    )
    op.create_index("ix_sales_history_printing_id", "sales_history", ["printing_id"])


def downgrade() -> None:
    op.drop_index("ix_sales_history_printing_id", table_name="sales_history")
    op.drop_table("sales_history")
    op.drop_index("ix_listings_seller_id", table_name="listings")
    op.drop_index("ix_listings_printing_id", table_name="listings")
    op.drop_table("listings")
    op.drop_table("sellers")
    op.drop_index("ix_printings_card_id", table_name="printings")
    op.drop_table("printings")
    op.drop_table("cards")

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
