"""
Price Repository - data access layer for PriceSnapshot model.
"""

from typing import Optional, List
from datetime import date
from sqlmodel import Session, select

from models import PriceSnapshot


class PriceRepository:
    """Repository for PriceSnapshot operations."""

    @staticmethod
    def save(session: Session, snapshot: PriceSnapshot) -> PriceSnapshot:
        """
        Save or update a daily price snapshot.
        Uses upsert logic: if exists for instrument_id + date, update; otherwise insert.
        """
        statement = select(PriceSnapshot).where(
            PriceSnapshot.instrument_id == snapshot.instrument_id,
            PriceSnapshot.price_date == snapshot.price_date
        )
        existing = session.exec(statement).first()

        if existing:
            existing.price = snapshot.price
            existing.open_price = snapshot.open_price
            existing.high_price = snapshot.high_price
            existing.low_price = snapshot.low_price
            existing.close_price = snapshot.close_price
            existing.volume = snapshot.volume
            session.add(existing)
            session.flush()
            return existing

        session.add(snapshot)
        session.flush()
        return snapshot

    @staticmethod
    def get_latest(session: Session, instrument_id: int) -> Optional[PriceSnapshot]:
        """Get the most recent snapshot for an instrument (ties by insertion order)."""
        statement = select(PriceSnapshot).where(
            PriceSnapshot.instrument_id == instrument_id
        ).order_by(PriceSnapshot.price_date.desc(), PriceSnapshot.id.desc()).limit(1)
        return session.exec(statement).first()

    @staticmethod
    def get_date_range(
        session: Session,
        instrument_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[PriceSnapshot]:
        """Get snapshots for a date range, oldest first. Open ends are unbounded."""
        statement = select(PriceSnapshot).where(PriceSnapshot.instrument_id == instrument_id)
        if start_date is not None:
            statement = statement.where(PriceSnapshot.price_date >= start_date)
        if end_date is not None:
            statement = statement.where(PriceSnapshot.price_date <= end_date)
        statement = statement.order_by(PriceSnapshot.price_date.asc(), PriceSnapshot.id.asc())
        return list(session.exec(statement).all())
