"""
Request layer for the transaction engine.
Validates raw payloads with pydantic, calls the engine and turns the outcome
into an (http_status, body) pair. Every error kind has its own status code.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config import get_settings
from db_engine import read_session
from errors import InstrumentNotFound, InvalidArgument, LedgerError
from repositories import JournalRepository
from services.transaction_engine import TradeResult, TransactionEngine

logger = logging.getLogger(__name__)

Response = Tuple[int, Any]


# ==================== Request models ====================

class TradeRequest(BaseModel):
    """Body of a buy or sell request."""
    model_config = ConfigDict(extra='forbid')

    ticker: str = Field(min_length=1)
    quantity: int
    price: Decimal


class DividendRequest(BaseModel):
    """Body of a dividend request."""
    model_config = ConfigDict(extra='forbid')

    ticker: str = Field(min_length=1)
    amount: Decimal


# ==================== Response models ====================

class PositionBody(BaseModel):
    totalQuantity: int
    averageCost: Decimal


class TradeResponse(BaseModel):
    transactionId: int
    instrument: str
    quantity: int
    price: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    resultingPosition: PositionBody
    realizedGain: Optional[Decimal] = None

    @classmethod
    def from_result(cls, result: TradeResult) -> "TradeResponse":
        return cls(
            transactionId=result.transaction_id,
            instrument=result.ticker,
            quantity=result.quantity,
            price=result.price,
            amount=result.amount,
            resultingPosition=PositionBody(
                totalQuantity=result.position.total_quantity,
                averageCost=result.position.average_cost,
            ),
            realizedGain=result.realized_gain,
        )


class ErrorResponse(BaseModel):
    error: str
    code: int
    category: str
    retryable: bool

    @classmethod
    def from_error(cls, error: LedgerError) -> "ErrorResponse":
        return cls(error=error.message, code=error.code, category=error.category, retryable=error.retryable)


class JournalEntryBody(BaseModel):
    transactionId: int
    ticker: str
    kind: str
    quantity: int
    price: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    occurredAt: datetime


# ==================== API ====================

class TransactionAPI:
    """Entry points used by HTTP handlers, scripts and tests."""

    def __init__(self, engine: TransactionEngine):
        self.engine = engine
        self.settings = get_settings()

    def buy(self, payload: Dict) -> Response:
        """Handle a buy request: {ticker, quantity, price}."""
        return self._handle("buy", TradeRequest, payload,
                            lambda req: self.engine.buy(req.ticker, req.quantity, req.price))

    def sell(self, payload: Dict) -> Response:
        """Handle a sell request: {ticker, quantity, price}."""
        return self._handle("sell", TradeRequest, payload,
                            lambda req: self.engine.sell(req.ticker, req.quantity, req.price))

    def dividend(self, payload: Dict) -> Response:
        """Handle a dividend request: {ticker, amount}."""
        return self._handle("dividend", DividendRequest, payload,
                            lambda req: self.engine.dividend(req.ticker, req.amount))

    def history(self, ticker: str, limit: Optional[int] = None) -> Response:
        """Journal entries of one instrument, newest first."""
        limit = limit or self.settings.journal_instrument_limit
        try:
            profile = self.engine.directory.get_profile_by_ticker(ticker)
            if profile is None:
                raise InstrumentNotFound(ticker)
            with read_session(self.engine.engine) as session:
                records = JournalRepository.list_by_instrument(session, profile.id, limit)
        except LedgerError as e:
            return e.http_status, ErrorResponse.from_error(e).model_dump(mode='json')
        return 200, self._journal_body(records, {profile.id: profile.ticker})

    def recent(self, limit: Optional[int] = None) -> Response:
        """Newest journal entries across all instruments."""
        limit = limit or self.settings.journal_recent_limit
        try:
            tickers = {p.id: p.ticker for p in self.engine.directory.list_instruments()}
            with read_session(self.engine.engine) as session:
                records = JournalRepository.list_recent(session, limit)
        except LedgerError as e:
            return e.http_status, ErrorResponse.from_error(e).model_dump(mode='json')
        return 200, self._journal_body(records, tickers)

    @staticmethod
    def _journal_body(records, tickers: Dict[int, str]) -> List[Dict]:
        return [
            JournalEntryBody(
                transactionId=r.id,
                ticker=tickers.get(r.instrument_id, str(r.instrument_id)),
                kind=r.kind.value,
                quantity=r.quantity,
                price=r.unit_price,
                amount=r.amount,
                occurredAt=r.occurred_at,
            ).model_dump(mode='json')
            for r in records
        ]

    def _handle(self, operation: str, request_model, payload: Dict, call) -> Response:
        try:
            try:
                request = request_model.model_validate(payload)
            except ValidationError as e:
                details = "; ".join(
                    f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in e.errors()
                )
                raise InvalidArgument(f"Invalid {operation} request: {details}") from e
            result = call(request)
        except LedgerError as e:
            return e.http_status, ErrorResponse.from_error(e).model_dump(mode='json')
        except Exception:
            logger.exception(f"Error processing {operation} transaction")
            return 500, {
                'error': f"Failed to process {operation} transaction",
                'code': 9001,
                'category': 'internal_error',
                'retryable': False,
            }
        return 200, TradeResponse.from_result(result).model_dump(mode='json', exclude_none=True)
