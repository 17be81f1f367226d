"""
TCG Watch — Card Model

One row per distinct card name. A card owns one or more printings and is
removed only when its last printing is deleted.
"""

from __future__ import annotations

from sqlalchemy import INTEGER, String
from sqlalchemy.orm import Mapped, mapped_column

from tcgwatch.models.base import Base


class Card(Base):
    """
    Card identity, keyed on the product title text before the first " (".

    Names are matched exactly: a case or whitespace variant creates a new row.
    """

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(
        String, nullable=False, unique=True, comment="Base card name"
    )

    def __repr__(self) -> str:
        return f"<Card id={self.id} name={self.name!r}>"
