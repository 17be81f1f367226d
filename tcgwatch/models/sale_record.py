"""
TCG Watch — Sale Record Model

Realized marketplace sales for a printing. Same replace-wholesale
lifecycle as listings.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, INTEGER, TIMESTAMP, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from tcgwatch.config import Condition, Edition
from tcgwatch.models.base import Base, enum_type


class SaleRecord(Base):
    __tablename__ = "sales_history"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    condition: Mapped[Condition] = mapped_column(
        enum_type(Condition, "condition"), nullable=False
    )
    edition: Mapped[Edition] = mapped_column(enum_type(Edition, "edition"), nullable=False)
    quantity: Mapped[int] = mapped_column(INTEGER, nullable=False)
    purchase_price: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    shipping_price: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    order_date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    printing_id: Mapped[int] = mapped_column(
        INTEGER, ForeignKey("printings.id"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return (
            f"<SaleRecord printing_id={self.printing_id} "
            f"price={self.purchase_price} at={self.order_date}>"
        )
