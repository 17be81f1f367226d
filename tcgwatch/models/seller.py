"""
TCG Watch — Seller Model

Marketplace sellers keyed by their marketplace identity (seller key).
Name and shipping drift is patched on every sighting; the rest is a
snapshot from the first sighting.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import BOOLEAN, DECIMAL, INTEGER, String, false
from sqlalchemy.orm import Mapped, mapped_column

from tcgwatch.models.base import Base


class Seller(Base):
    __tablename__ = "sellers"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    key: Mapped[str] = mapped_column(
        String, nullable=False, unique=True, comment="Marketplace seller key"
    )
    shipping: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    rating: Mapped[Decimal] = mapped_column(DECIMAL(5, 2), nullable=False)
    number_of_sales: Mapped[str] = mapped_column(
        String, nullable=False, comment="Marketplace sales bucket, e.g. '10000+'"
    )

    free_shipping: Mapped[bool] = mapped_column(BOOLEAN, nullable=False)
    gold: Mapped[bool] = mapped_column(BOOLEAN, nullable=False)
    direct: Mapped[bool] = mapped_column(BOOLEAN, nullable=False)
    verified: Mapped[bool] = mapped_column(BOOLEAN, nullable=False)

    blocked: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, default=False, server_default=false()
    )

    def __repr__(self) -> str:
        return f"<Seller id={self.id} key={self.key!r} name={self.name!r}>"
