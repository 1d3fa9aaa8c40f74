"""
Repositories package for LotLedger.
Provides data access layer for all database operations.
"""

from repositories.instrument_repository import InstrumentRepository
from repositories.lot_repository import LotRepository
from repositories.journal_repository import JournalRepository
from repositories.price_repository import PriceRepository

__all__ = [
    'InstrumentRepository',
    'LotRepository',
    'JournalRepository',
    'PriceRepository',
]
