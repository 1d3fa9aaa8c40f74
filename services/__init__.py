"""
Services package for LotLedger.
Provides core business logic separated from presentation and data layers.
"""

from services.common import (
    normalize_ticker,
    infer_currency,
    to_decimal,
    to_money,
    require_positive_amount,
    require_positive_quantity,
)
from services.locks import InstrumentLocks
from services.position import Position, PositionAggregator, aggregate_lots
from services.asset_directory import AssetDirectory, InstrumentProfile
from services.price_oracle import PriceOracle, PriceQuote
from services.transaction_engine import TransactionEngine, TradeResult
from services.reconciliation import LedgerReconciler, ReconciliationReport, replay_journal
from services.portfolio import PortfolioService
from services.transaction_api import TransactionAPI

__all__ = [
    # Common utilities
    'normalize_ticker',
    'infer_currency',
    'to_decimal',
    'to_money',
    'require_positive_amount',
    'require_positive_quantity',
    # Ledger core
    'InstrumentLocks',
    'Position',
    'PositionAggregator',
    'aggregate_lots',
    'TransactionEngine',
    'TradeResult',
    # Collaborators
    'AssetDirectory',
    'InstrumentProfile',
    'PriceOracle',
    'PriceQuote',
    'PortfolioService',
    # Consistency
    'LedgerReconciler',
    'ReconciliationReport',
    'replay_journal',
    # Request layer
    'TransactionAPI',
]
