"""
Price oracle backed by stored daily price snapshots.
Answers "what is the latest known price of this instrument" and keeps at most
one snapshot per instrument per day.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.engine import Engine

from db_engine import read_session, unit_of_work
from errors import InvalidArgument
from models import PriceSnapshot
from repositories import PriceRepository
from services.common import optional_decimal, require_positive_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceQuote:
    """Detached price snapshot returned to callers."""
    price: Decimal
    open_price: Optional[Decimal]
    high_price: Optional[Decimal]
    low_price: Optional[Decimal]
    volume: Optional[int]
    as_of_date: date

    @property
    def day_change(self) -> Decimal:
        """Price move since the open (0 when the open is unknown)."""
        if self.open_price is None:
            return Decimal("0")
        return self.price - self.open_price

    @classmethod
    def from_snapshot(cls, snapshot: PriceSnapshot) -> "PriceQuote":
        return cls(
            price=snapshot.price,
            open_price=snapshot.open_price,
            high_price=snapshot.high_price,
            low_price=snapshot.low_price,
            volume=snapshot.volume,
            as_of_date=snapshot.price_date,
        )


class PriceOracle:
    """Service for recording and reading instrument price snapshots."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get_latest_price(self, instrument_id: int) -> Optional[PriceQuote]:
        """
        Get the most recent price snapshot of an instrument.

        Args:
            instrument_id: Instrument ID

        Returns:
            PriceQuote for the latest date, or None if no price is available
        """
        with read_session(self.engine) as session:
            snapshot = PriceRepository.get_latest(session, instrument_id)
            return PriceQuote.from_snapshot(snapshot) if snapshot else None

    def record_price(
        self,
        instrument_id: int,
        as_of_date: date,
        price,
        open_price=None,
        high_price=None,
        low_price=None,
        close_price=None,
        volume: Optional[int] = None,
    ) -> PriceQuote:
        """
        Record the price of an instrument for a day.
        A second snapshot for the same day replaces the first.

        Returns:
            The stored quote
        """
        if volume is not None and volume < 0:
            raise InvalidArgument(f"volume cannot be negative, got {volume}")
        snapshot = PriceSnapshot(
            instrument_id=instrument_id,
            price_date=as_of_date,
            price=require_positive_amount(price, "price"),
            open_price=optional_decimal(open_price, "open_price"),
            high_price=optional_decimal(high_price, "high_price"),
            low_price=optional_decimal(low_price, "low_price"),
            close_price=optional_decimal(close_price, "close_price"),
            volume=volume,
        )
        with unit_of_work(self.engine) as session:
            stored = PriceRepository.save(session, snapshot)
            quote = PriceQuote.from_snapshot(stored)

        logger.debug(f"Recorded price {quote.price} for instrument {instrument_id} on {as_of_date}")
        return quote

    def get_price_history(
        self,
        instrument_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[PriceQuote]:
        """Get the stored snapshots of an instrument, oldest first."""
        with read_session(self.engine) as session:
            snapshots = PriceRepository.get_date_range(session, instrument_id, start, end)
            return [PriceQuote.from_snapshot(s) for s in snapshots]
