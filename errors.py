"""
Error taxonomy for LotLedger.

Every error carries a stable code, the HTTP status the request layer maps it
to, and whether a caller may safely retry the operation.

Code ranges:
  1xxx: Instrument directory
  2xxx: Request validation
  3xxx: Holdings
  4xxx: Concurrency
  5xxx: Storage
"""

from typing import Optional


class LedgerError(Exception):
    """Base error for all ledger failures."""

    category = "ledger_error"

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        retryable: bool = False,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.retryable = retryable
        super().__init__(message)


# --- 1xxx: Instrument directory ---

class InstrumentNotFound(LedgerError):
    category = "instrument_not_found"

    def __init__(self, ticker: str) -> None:
        self.ticker = ticker
        super().__init__(1001, f"Instrument not found: {ticker}", 404)


class DuplicateInstrument(LedgerError):
    category = "duplicate_instrument"

    def __init__(self, ticker: str) -> None:
        self.ticker = ticker
        super().__init__(1002, f"Instrument already exists: {ticker}", 409)


# --- 2xxx: Validation ---

class InvalidArgument(LedgerError):
    category = "invalid_argument"

    def __init__(self, message: str) -> None:
        super().__init__(2001, message, 400)


# --- 3xxx: Holdings ---

class InsufficientHoldings(LedgerError):
    category = "insufficient_holdings"

    def __init__(self, ticker: str, requested: Optional[int], available: int) -> None:
        self.ticker = ticker
        self.requested = requested
        self.available = available
        if requested is None:
            message = f"No holdings for {ticker}"
        else:
            message = f"Insufficient holdings for {ticker}: requested {requested}, available {available}"
        super().__init__(3001, message, 422)


# --- 4xxx: Concurrency ---

class ConcurrentModification(LedgerError):
    category = "concurrent_modification"

    def __init__(self, message: str = "Ledger was modified concurrently", code: int = 4001) -> None:
        super().__init__(code, message, 409, retryable=True)


class LotNotFound(ConcurrentModification):
    category = "lot_not_found"

    def __init__(self, lot_id: int) -> None:
        self.lot_id = lot_id
        super().__init__(f"Lot {lot_id} no longer exists", code=4002)


# --- 5xxx: Storage ---

class StoreUnavailable(LedgerError):
    category = "store_unavailable"

    def __init__(self, message: str = "Ledger store is unavailable") -> None:
        super().__init__(5001, message, 503, retryable=True)
