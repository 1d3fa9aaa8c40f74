"""
Lot model - one purchase that still holds unsold quantity.
"""

from decimal import Decimal
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from models.timestamps import TIMESTAMP


class Lot(SQLModel, table=True):
    """
    An open purchase lot with its own cost basis.
    Created by a buy, reduced or deleted by sells, never merged.
    A lot whose quantity reaches zero is deleted.
    """
    id: Optional[int] = Field(default=None, primary_key=True)  # insertion order, FIFO tie-break
    instrument_id: int = Field(foreign_key="instrument.id", index=True)
    quantity: int
    unit_cost: Decimal = Field(max_digits=18, decimal_places=4)  # Price paid per unit
    opened_at: datetime = Field(sa_type=TIMESTAMP, index=True)  # FIFO ordering key
