"""
Journal Repository - append-only access to TransactionRecord rows.
Records are never updated or deleted.
"""

from typing import List

from sqlmodel import Session, select

from errors import InvalidArgument
from models import TransactionRecord


class JournalRepository:
    """Repository for the transaction journal."""

    @staticmethod
    def append(session: Session, record: TransactionRecord) -> TransactionRecord:
        """
        Append a record to the journal.

        Args:
            session: Session of the current unit of work
            record: New TransactionRecord (id is assigned on flush)

        Returns:
            The persisted record
        """
        if record.id is not None:
            raise InvalidArgument("Journal records can only be appended once")
        session.add(record)
        session.flush()
        return record

    @staticmethod
    def list_by_instrument(session: Session, instrument_id: int, limit: int = 50) -> List[TransactionRecord]:
        """
        Retrieve the newest records of an instrument.

        Args:
            session: Session to read with
            instrument_id: Instrument ID to look up
            limit: Maximum number of records

        Returns:
            Records ordered newest first (occurred_at, then id)
        """
        statement = (
            select(TransactionRecord)
            .where(TransactionRecord.instrument_id == instrument_id)
            .order_by(TransactionRecord.occurred_at.desc(), TransactionRecord.id.desc())
            .limit(limit)
        )
        return list(session.exec(statement).all())

    @staticmethod
    def list_recent(session: Session, limit: int = 20) -> List[TransactionRecord]:
        """Retrieve the newest records across all instruments."""
        statement = (
            select(TransactionRecord)
            .order_by(TransactionRecord.occurred_at.desc(), TransactionRecord.id.desc())
            .limit(limit)
        )
        return list(session.exec(statement).all())

    @staticmethod
    def list_for_replay(session: Session, instrument_id: int) -> List[TransactionRecord]:
        """Retrieve every record of an instrument in the order it was applied."""
        statement = (
            select(TransactionRecord)
            .where(TransactionRecord.instrument_id == instrument_id)
            .order_by(TransactionRecord.occurred_at.asc(), TransactionRecord.id.asc())
        )
        return list(session.exec(statement).all())
