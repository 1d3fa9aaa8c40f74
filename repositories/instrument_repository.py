"""
Instrument Repository - data access layer for Instrument model.
Tickers are stored upper-case; callers normalize before lookup.
"""

from typing import Optional, List
from sqlmodel import Session, select

from models import Instrument, InstrumentKind


class InstrumentRepository:
    """Repository for Instrument CRUD operations."""

    @staticmethod
    def add(
        session: Session,
        ticker: str,
        name: str,
        kind: InstrumentKind,
        currency: str,
        sector: Optional[str] = None,
    ) -> Instrument:
        """
        Add a new instrument to the database.

        Args:
            session: Session to write with
            ticker: Normalized ticker symbol
            name: Display name
            kind: Asset class
            currency: Trading currency
            sector: Optional sector

        Returns:
            Created Instrument object
        """
        instrument = Instrument(
            ticker=ticker,
            name=name,
            kind=kind,
            sector=sector,
            currency=currency
        )
        session.add(instrument)
        session.flush()
        return instrument

    @staticmethod
    def get_all(session: Session) -> List[Instrument]:
        """Retrieve all instruments ordered by ticker."""
        statement = select(Instrument).order_by(Instrument.ticker)
        return list(session.exec(statement).all())

    @staticmethod
    def get_by_id(session: Session, instrument_id: int) -> Optional[Instrument]:
        """Retrieve an instrument by its ID."""
        return session.get(Instrument, instrument_id)

    @staticmethod
    def get_by_ticker(session: Session, ticker: str) -> Optional[Instrument]:
        """
        Retrieve an instrument by its normalized ticker.

        Args:
            session: Session to read with
            ticker: Normalized ticker symbol

        Returns:
            Instrument object or None if not found
        """
        statement = select(Instrument).where(Instrument.ticker == ticker)
        return session.exec(statement).first()

    @staticmethod
    def update_details(
        session: Session,
        instrument_id: int,
        name: Optional[str] = None,
        kind: Optional[InstrumentKind] = None,
        sector: Optional[str] = None,
    ) -> Optional[Instrument]:
        """
        Update the descriptive fields of an instrument.
        Only updates fields that are provided (not None); ticker and currency
        never change.

        Returns:
            Updated Instrument object or None if not found
        """
        instrument = session.get(Instrument, instrument_id)
        if instrument is None:
            return None
        if name is not None:
            instrument.name = name
        if kind is not None:
            instrument.kind = kind
        if sector is not None:
            instrument.sector = sector
        session.add(instrument)
        session.flush()
        return instrument
