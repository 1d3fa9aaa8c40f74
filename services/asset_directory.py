"""
Asset directory: maps ticker symbols to stable instrument IDs and
descriptive metadata.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from config import get_settings
from db_engine import read_session, unit_of_work
from errors import DuplicateInstrument, InstrumentNotFound, InvalidArgument
from models import Instrument, InstrumentKind
from repositories import InstrumentRepository
from services.common import infer_currency, normalize_ticker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstrumentProfile:
    """Detached, read-only view of an Instrument row."""
    id: int
    ticker: str
    name: str
    kind: InstrumentKind
    sector: Optional[str]
    currency: str

    @classmethod
    def from_instrument(cls, instrument: Instrument) -> "InstrumentProfile":
        return cls(
            id=instrument.id,
            ticker=instrument.ticker,
            name=instrument.name,
            kind=instrument.kind,
            sector=instrument.sector,
            currency=instrument.currency,
        )


def _coerce_kind(kind) -> InstrumentKind:
    if isinstance(kind, InstrumentKind):
        return kind
    try:
        return InstrumentKind(str(kind).upper())
    except ValueError:
        raise InvalidArgument(f"Unknown instrument kind: {kind!r}") from None


class AssetDirectory:
    """
    Service owning the instrument catalogue.
    The transaction engine only reads from it to resolve tickers.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def resolve_ticker(self, ticker: str) -> Optional[int]:
        """
        Resolve a ticker to its instrument ID.

        Args:
            ticker: Ticker symbol (case-insensitive)

        Returns:
            Instrument ID or None if the ticker is unknown
        """
        profile = self.get_profile_by_ticker(ticker)
        return profile.id if profile else None

    def get_profile_by_ticker(self, ticker: str) -> Optional[InstrumentProfile]:
        """Look up an instrument's profile by ticker (case-insensitive)."""
        symbol = normalize_ticker(ticker)
        with read_session(self.engine) as session:
            instrument = InstrumentRepository.get_by_ticker(session, symbol)
            return InstrumentProfile.from_instrument(instrument) if instrument else None

    def describe(self, instrument_id: int) -> Optional[InstrumentProfile]:
        """Return name, kind, sector and currency of an instrument, or None."""
        with read_session(self.engine) as session:
            instrument = InstrumentRepository.get_by_id(session, instrument_id)
            return InstrumentProfile.from_instrument(instrument) if instrument else None

    def list_instruments(self) -> List[InstrumentProfile]:
        """List every known instrument ordered by ticker."""
        with read_session(self.engine) as session:
            return [InstrumentProfile.from_instrument(i) for i in InstrumentRepository.get_all(session)]

    def register(
        self,
        ticker: str,
        name: str,
        kind=InstrumentKind.EQUITY,
        sector: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> InstrumentProfile:
        """
        Add an instrument to the directory.

        Args:
            ticker: Ticker symbol, stored upper-case
            name: Display name
            kind: InstrumentKind or its name (e.g., "ETF")
            sector: Optional sector
            currency: Trading currency (default: inferred from ticker suffix)

        Returns:
            Profile of the created instrument

        Raises:
            DuplicateInstrument: If the ticker is already registered
        """
        symbol = normalize_ticker(ticker)
        if not name or not name.strip():
            raise InvalidArgument("Instrument name is required")
        kind = _coerce_kind(kind)
        currency = (currency or infer_currency(symbol, get_settings().default_currency)).upper()

        with unit_of_work(self.engine) as session:
            if InstrumentRepository.get_by_ticker(session, symbol) is not None:
                raise DuplicateInstrument(symbol)
            try:
                instrument = InstrumentRepository.add(
                    session,
                    ticker=symbol,
                    name=name.strip(),
                    kind=kind,
                    currency=currency,
                    sector=sector,
                )
            except IntegrityError:
                raise DuplicateInstrument(symbol) from None
            profile = InstrumentProfile.from_instrument(instrument)

        logger.info(f"Registered instrument {symbol} ({kind.value}, {currency})")
        return profile

    def update_details(
        self,
        instrument_id: int,
        name: Optional[str] = None,
        kind=None,
        sector: Optional[str] = None,
    ) -> InstrumentProfile:
        """
        Update descriptive fields of an instrument. Ticker and currency are fixed.

        Raises:
            InstrumentNotFound: If no instrument has this ID
        """
        kind = _coerce_kind(kind) if kind is not None else None
        with unit_of_work(self.engine) as session:
            instrument = InstrumentRepository.update_details(
                session, instrument_id, name=name, kind=kind, sector=sector
            )
            if instrument is None:
                raise InstrumentNotFound(str(instrument_id))
            return InstrumentProfile.from_instrument(instrument)
