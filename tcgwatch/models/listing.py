"""
TCG Watch — Listing Model

Live marketplace asks for a printing. The full set for a printing is
deleted and re-inserted on every refresh, so listing ids carry no meaning
across refreshes.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import DECIMAL, INTEGER, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from tcgwatch.config import Condition, Edition
from tcgwatch.models.base import Base, enum_type


class Listing(Base):
    __tablename__ = "listings"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    price: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(INTEGER, nullable=False)
    direct_quantity: Mapped[int] = mapped_column(INTEGER, nullable=False)
    condition: Mapped[Condition] = mapped_column(
        enum_type(Condition, "condition"), nullable=False
    )
    edition: Mapped[Edition] = mapped_column(enum_type(Edition, "edition"), nullable=False)
    printing_id: Mapped[int] = mapped_column(
        INTEGER, ForeignKey("printings.id"), nullable=False, index=True
    )
    seller_id: Mapped[int] = mapped_column(
        INTEGER, ForeignKey("sellers.id"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return (
            f"<Listing printing_id={self.printing_id} seller_id={self.seller_id} "
            f"price={self.price} qty={self.quantity}>"
        )
