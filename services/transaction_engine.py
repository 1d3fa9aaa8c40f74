"""
Transaction engine for buy, sell and dividend operations.

Each operation is one atomic unit of work against the Lot Store and the
Transaction Journal: either every lot mutation and the journal entry commit
together, or nothing does. Sells deplete lots oldest first (FIFO).
Operations on the same instrument are serialized in-process, and the unit of
work holds the store's write lock (SQLite) or row locks (FOR UPDATE) on the
lots it reads.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import get_settings
from db_engine import unit_of_work
from errors import ConcurrentModification, InsufficientHoldings, InstrumentNotFound, LedgerError
from models import TransactionKind, TransactionRecord
from models.timestamps import utc_now
from repositories import JournalRepository, LotRepository
from services.asset_directory import AssetDirectory, InstrumentProfile
from services.common import normalize_ticker, require_positive_amount, require_positive_quantity
from services.locks import InstrumentLocks
from services.position import Position, PositionAggregator, aggregate_lots

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class TradeResult:
    """Outcome of an accepted operation."""
    transaction_id: int
    kind: TransactionKind
    instrument: InstrumentProfile
    quantity: int
    price: Optional[Decimal]  # Unit price for BUY/SELL
    amount: Optional[Decimal]  # Cash amount for DIVIDEND
    occurred_at: datetime
    position: Position  # Position after the operation
    cost_basis_sold: Optional[Decimal] = None  # SELL only
    realized_gain: Optional[Decimal] = None  # SELL only, not stored

    @property
    def ticker(self) -> str:
        return self.instrument.ticker


class TransactionEngine:
    """
    Applies buy/sell/dividend requests to the ledger.

    The engine owns all writes to lots and journal records. It receives its
    store handle explicitly, so several isolated engines can share a process.
    """

    def __init__(
        self,
        engine: Engine,
        directory: Optional[AssetDirectory] = None,
        locks: Optional[InstrumentLocks] = None,
        clock: Optional[Callable[[], datetime]] = None,
        lot_repository=LotRepository,
        journal_repository=JournalRepository,
        retry_attempts: Optional[int] = None,
    ):
        self.engine = engine
        self.directory = directory or AssetDirectory(engine)
        self.locks = locks or InstrumentLocks()
        self.clock = clock or utc_now
        self.lots = lot_repository
        self.journal = journal_repository
        self.retry_attempts = retry_attempts or get_settings().engine_retry_attempts
        self.positions = PositionAggregator(engine, lot_repository)

    # ==================== Operations ====================

    def buy(self, ticker: str, quantity: int, price) -> TradeResult:
        """
        Buy units of an instrument, opening a new lot.

        Args:
            ticker: Ticker symbol of the instrument
            quantity: Whole number of units (> 0)
            price: Price per unit (> 0)

        Returns:
            TradeResult with the recomputed position

        Raises:
            InstrumentNotFound: If the ticker is unknown
            InvalidArgument: If quantity or price is not positive
            StoreUnavailable: If the store failed; nothing was written
        """
        instrument = self._resolve(ticker)
        quantity = require_positive_quantity(quantity)
        price = require_positive_amount(price, "price")
        return self._execute(instrument, TransactionKind.BUY, self._apply_buy, quantity, price)

    def sell(self, ticker: str, quantity: int, price) -> TradeResult:
        """
        Sell units of an instrument, depleting its lots oldest first.

        Args:
            ticker: Ticker symbol of the instrument
            quantity: Whole number of units (> 0)
            price: Sale price per unit (> 0)

        Returns:
            TradeResult with the remaining position and the realized gain

        Raises:
            InstrumentNotFound: If the ticker is unknown
            InvalidArgument: If quantity or price is not positive
            InsufficientHoldings: If fewer units are held than requested;
                nothing was written
            StoreUnavailable: If the store failed; nothing was written
        """
        instrument = self._resolve(ticker)
        quantity = require_positive_quantity(quantity)
        price = require_positive_amount(price, "price")
        return self._execute(instrument, TransactionKind.SELL, self._apply_sell, quantity, price)

    def dividend(self, ticker: str, amount) -> TradeResult:
        """
        Record a cash dividend for a held instrument. Lots are not touched.

        Args:
            ticker: Ticker symbol of the instrument
            amount: Cash amount received (> 0)

        Raises:
            InstrumentNotFound: If the ticker is unknown
            InvalidArgument: If amount is not positive
            InsufficientHoldings: If the instrument has no open lots
        """
        instrument = self._resolve(ticker)
        amount = require_positive_amount(amount, "amount")
        return self._execute(instrument, TransactionKind.DIVIDEND, self._apply_dividend, amount)

    def get_position(self, ticker: str) -> Position:
        """Current position of an instrument, recomputed from its lots."""
        instrument = self._resolve(ticker)
        return self.positions.get_position(instrument.id)

    # ==================== Internals ====================

    def _resolve(self, ticker: str) -> InstrumentProfile:
        profile = self.directory.get_profile_by_ticker(ticker)
        if profile is None:
            symbol = normalize_ticker(ticker)
            logger.warning(f"Rejected operation on unknown instrument {symbol}")
            raise InstrumentNotFound(symbol)
        return profile

    def _execute(self, instrument: InstrumentProfile, kind: TransactionKind, apply, *args) -> TradeResult:
        """Run apply(session, instrument, *args) in a unit of work, retrying lost races."""
        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=0.05, max=1),
            retry=retry_if_exception_type(ConcurrentModification),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            with self.locks.hold(instrument.id):
                for attempt in retrying:
                    with attempt:
                        with unit_of_work(self.engine) as session:
                            result = apply(session, instrument, *args)
        except LedgerError as e:
            logger.warning(f"{kind.value} {instrument.ticker} rejected: {e.message}")
            raise

        logger.info(
            f"{kind.value} {instrument.ticker} qty={result.quantity} "
            f"price={result.price if result.price is not None else result.amount} -> "
            f"position {result.position.total_quantity} @ {result.position.average_cost:.4f}"
        )
        return result

    def _apply_buy(self, session: Session, instrument: InstrumentProfile, quantity: int, price: Decimal) -> TradeResult:
        now = self.clock()
        self.lots.create(session, instrument.id, quantity, price, now)
        record = self.journal.append(session, TransactionRecord(
            instrument_id=instrument.id,
            kind=TransactionKind.BUY,
            quantity=quantity,
            unit_price=price,
            occurred_at=now,
        ))
        position = aggregate_lots(instrument.id, self.lots.list_open(session, instrument.id))
        return TradeResult(
            transaction_id=record.id,
            kind=TransactionKind.BUY,
            instrument=instrument,
            quantity=quantity,
            price=price,
            amount=None,
            occurred_at=now,
            position=position,
        )

    def _apply_sell(self, session: Session, instrument: InstrumentProfile, quantity: int, price: Decimal) -> TradeResult:
        lots = self.lots.list_open(session, instrument.id, for_update=True)
        available = sum(lot.quantity for lot in lots)
        if available < quantity:
            raise InsufficientHoldings(instrument.ticker, quantity, available)

        # Walk lots oldest first until the requested quantity is allocated
        remaining = quantity
        cost_basis_sold = ZERO
        for lot in lots:
            if remaining == 0:
                break
            consumed = min(remaining, lot.quantity)
            cost_basis_sold += consumed * lot.unit_cost
            self.lots.reduce_or_delete(session, lot.id, lot.quantity - consumed)
            remaining -= consumed

        now = self.clock()
        record = self.journal.append(session, TransactionRecord(
            instrument_id=instrument.id,
            kind=TransactionKind.SELL,
            quantity=quantity,
            unit_price=price,
            occurred_at=now,
        ))
        position = aggregate_lots(instrument.id, self.lots.list_open(session, instrument.id))
        return TradeResult(
            transaction_id=record.id,
            kind=TransactionKind.SELL,
            instrument=instrument,
            quantity=quantity,
            price=price,
            amount=None,
            occurred_at=now,
            position=position,
            cost_basis_sold=cost_basis_sold,
            realized_gain=quantity * price - cost_basis_sold,
        )

    def _apply_dividend(self, session: Session, instrument: InstrumentProfile, amount: Decimal) -> TradeResult:
        lots = self.lots.list_open(session, instrument.id, for_update=True)
        if not lots:
            raise InsufficientHoldings(instrument.ticker, None, 0)

        now = self.clock()
        record = self.journal.append(session, TransactionRecord(
            instrument_id=instrument.id,
            kind=TransactionKind.DIVIDEND,
            quantity=0,
            amount=amount,
            occurred_at=now,
        ))
        return TradeResult(
            transaction_id=record.id,
            kind=TransactionKind.DIVIDEND,
            instrument=instrument,
            quantity=0,
            price=None,
            amount=amount,
            occurred_at=now,
            position=aggregate_lots(instrument.id, lots),
        )
