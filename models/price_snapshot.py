"""
PriceSnapshot model - one daily price observation for an instrument.
"""

from decimal import Decimal
from typing import Optional
from datetime import date, datetime
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from models.timestamps import TIMESTAMP, utc_now


class PriceSnapshot(SQLModel, table=True):
    """
    Daily price data for an instrument.
    At most one row per instrument per day; recording the same day again
    overwrites it.
    """
    __table_args__ = (UniqueConstraint("instrument_id", "price_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    instrument_id: int = Field(foreign_key="instrument.id", index=True)
    price_date: date = Field(index=True)

    price: Decimal = Field(max_digits=18, decimal_places=4)  # Latest traded price
    open_price: Optional[Decimal] = Field(default=None, max_digits=18, decimal_places=4)
    high_price: Optional[Decimal] = Field(default=None, max_digits=18, decimal_places=4)
    low_price: Optional[Decimal] = Field(default=None, max_digits=18, decimal_places=4)
    close_price: Optional[Decimal] = Field(default=None, max_digits=18, decimal_places=4)
    volume: Optional[int] = Field(default=None)

    created_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
