"""
SQLAlchemy 2.0 async DeclarativeBase for TCG Watch.

All models inherit from this Base.
"""

from __future__ import annotations

from enum import Enum

from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all TCG Watch database models."""
    pass


def enum_type(enum_cls: type[Enum], name: str) -> SAEnum:
    """Column type that persists the enum's values ("NEAR MINT"), not member names."""
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
