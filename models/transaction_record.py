"""
TransactionRecord model - immutable journal entry for an accepted operation.
"""

from enum import Enum
from decimal import Decimal
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from models.timestamps import TIMESTAMP, utc_now


class TransactionKind(str, Enum):
    """Kind of journaled operation."""
    BUY = "BUY"
    SELL = "SELL"
    DIVIDEND = "DIVIDEND"


class TransactionRecord(SQLModel, table=True):
    """
    Append-only record of a buy, sell or dividend.
    BUY/SELL carry quantity and unit_price; DIVIDEND carries quantity 0 and
    the cash amount in `amount`.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    instrument_id: int = Field(foreign_key="instrument.id", index=True)
    kind: TransactionKind
    quantity: int = Field(default=0)
    unit_price: Optional[Decimal] = Field(default=None, max_digits=18, decimal_places=4)
    amount: Optional[Decimal] = Field(default=None, max_digits=18, decimal_places=4)
    occurred_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP, index=True)
