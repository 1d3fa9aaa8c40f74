"""
Database models for LotLedger.
All SQLModel table definitions are centralized here.
"""

from models.instrument import Instrument, InstrumentKind
from models.lot import Lot
from models.transaction_record import TransactionRecord, TransactionKind
from models.price_snapshot import PriceSnapshot

__all__ = [
    'Instrument',
    'InstrumentKind',
    'Lot',
    'TransactionRecord',
    'TransactionKind',
    'PriceSnapshot',
]
