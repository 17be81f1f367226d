"""
TCG Watch — Printing Model

A tracked acquisition target: one marketplace product (card + set + rarity)
plus the collector's acquisition preferences for it.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, INTEGER, TIMESTAMP, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from tcgwatch.config import Condition, Edition, Priority
from tcgwatch.models.base import Base, enum_type


class Printing(Base):
    """
    Marketplace product tracked for acquisition.

    item_no is the marketplace product id and is the natural key used for
    reconciliation. Product detail fields are a snapshot taken at first
    ingest and are never overwritten by later detail fetches.
    """

    __tablename__ = "printings"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    item_no: Mapped[int] = mapped_column(
        INTEGER, nullable=False, unique=True, comment="Marketplace product id"
    )
    set_name: Mapped[str] = mapped_column(String, nullable=False)
    set_code: Mapped[str] = mapped_column(String, nullable=False)
    rarity: Mapped[str] = mapped_column(String, nullable=False)
    market_price: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    card_id: Mapped[int] = mapped_column(
        INTEGER, ForeignKey("cards.id"), nullable=False, index=True
    )

    # Acquisition preferences
    max_price: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 2), nullable=True)
    priority: Mapped[Priority] = mapped_column(
        enum_type(Priority, "priority"), nullable=False, default=Priority.ENABLED
    )
    desired_quantity: Mapped[int] = mapped_column(INTEGER, nullable=False, default=1)
    desired_edition: Mapped[Edition] = mapped_column(
        enum_type(Edition, "edition"), nullable=False, default=Edition.ANY
    )
    desired_condition: Mapped[Condition] = mapped_column(
        enum_type(Condition, "condition"),
        nullable=False,
        default=Condition.MODERATELY_PLAYED,
    )

    # Staleness stamps
    last_scraped: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, comment="Last listing refresh"
    )
    sales_last_scraped: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, comment="Last sales-history refresh"
    )
    good_deal_price: Mapped[Decimal | None] = mapped_column(
        DECIMAL(10, 2), nullable=True, comment="Derived acquisition price"
    )

    def __repr__(self) -> str:
        return (
            f"<Printing id={self.id} item_no={self.item_no} "
            f"set_code={self.set_code!r} priority={self.priority}>"
        )
