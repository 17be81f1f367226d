"""
Models package — export all SQLAlchemy models.
"""

from tcgwatch.models.base import Base
from tcgwatch.models.card import Card
from tcgwatch.models.listing import Listing
from tcgwatch.models.printing import Printing
from tcgwatch.models.sale_record import SaleRecord
from tcgwatch.models.seller import Seller

__all__ = ["Base", "Card", "Listing", "Printing", "SaleRecord", "Seller"]
