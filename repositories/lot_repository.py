"""
Lot Repository - data access layer for open purchase lots.
All methods take the caller's session so that lot writes share one unit of
work with the matching journal append.
"""

from decimal import Decimal
from datetime import datetime
from typing import List

from sqlmodel import Session, select

from errors import InvalidArgument, LotNotFound
from models import Lot


class LotRepository:
    """Repository for Lot create/reduce/delete operations."""

    @staticmethod
    def list_open(session: Session, instrument_id: int, for_update: bool = False) -> List[Lot]:
        """
        Retrieve the open lots of an instrument, oldest first.

        Args:
            session: Session of the current unit of work
            instrument_id: Instrument ID to look up
            for_update: Lock the returned rows until the transaction ends

        Returns:
            Lots ordered by opened_at, then by id
        """
        statement = (
            select(Lot)
            .where(Lot.instrument_id == instrument_id)
            .order_by(Lot.opened_at.asc(), Lot.id.asc())
        )
        if for_update:
            statement = statement.with_for_update()
        return list(session.exec(statement).all())

    @staticmethod
    def create(
        session: Session,
        instrument_id: int,
        quantity: int,
        unit_cost: Decimal,
        opened_at: datetime,
    ) -> Lot:
        """
        Open a new lot.

        Args:
            session: Session of the current unit of work
            instrument_id: Instrument the lot belongs to
            quantity: Number of units bought (> 0)
            unit_cost: Price paid per unit
            opened_at: Purchase time, the FIFO ordering key

        Returns:
            Created Lot with its id assigned
        """
        if quantity <= 0:
            raise InvalidArgument(f"Lot quantity must be positive, got {quantity}")
        lot = Lot(
            instrument_id=instrument_id,
            quantity=quantity,
            unit_cost=unit_cost,
            opened_at=opened_at,
        )
        session.add(lot)
        session.flush()
        return lot

    @staticmethod
    def reduce_or_delete(session: Session, lot_id: int, new_quantity: int) -> None:
        """
        Set a lot's remaining quantity, deleting the lot when it reaches zero.

        The row is re-read from the database, so a lot removed by another
        transaction is detected rather than served from the session cache.

        Args:
            session: Session of the current unit of work
            lot_id: Lot ID to update
            new_quantity: Remaining quantity (0 deletes the lot)

        Raises:
            LotNotFound: If the lot no longer exists
            InvalidArgument: If new_quantity is negative
        """
        if new_quantity < 0:
            raise InvalidArgument(f"Lot quantity cannot be negative, got {new_quantity}")

        lot = session.get(Lot, lot_id, populate_existing=True, with_for_update=True)
        if lot is None:
            raise LotNotFound(lot_id)

        if new_quantity == 0:
            session.delete(lot)
        else:
            lot.quantity = new_quantity
            session.add(lot)
        session.flush()

    @staticmethod
    def list_instrument_ids(session: Session) -> List[int]:
        """Retrieve the IDs of all instruments that have open lots."""
        statement = select(Lot.instrument_id).distinct().order_by(Lot.instrument_id)
        return list(session.exec(statement).all())

    @staticmethod
    def list_all(session: Session) -> List[Lot]:
        """Retrieve every open lot, grouped by instrument and oldest first."""
        statement = select(Lot).order_by(Lot.instrument_id, Lot.opened_at, Lot.id)
        return list(session.exec(statement).all())
