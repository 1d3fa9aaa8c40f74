"""
Instrument model - a tradeable stock, ETF, fund or bond known to the ledger.
"""

from enum import Enum
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from models.timestamps import TIMESTAMP, utc_now


class InstrumentKind(str, Enum):
    """Asset class of an instrument."""
    EQUITY = "EQUITY"
    ETF = "ETF"
    FUND = "FUND"
    BOND = "BOND"
    OTHER = "OTHER"


class Instrument(SQLModel, table=True):
    """Represents a tradeable asset. Only name, kind and sector may change."""
    id: Optional[int] = Field(default=None, primary_key=True)
    ticker: str = Field(index=True, unique=True)  # e.g., "AAPL", "0700.HK"
    name: str
    kind: InstrumentKind = Field(default=InstrumentKind.EQUITY)
    sector: Optional[str] = Field(default=None)
    currency: str = Field(default="USD")
    created_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP)
