"""
Position aggregation over open lots.
A position is never stored: it is recomputed from the Lot Store every time,
so it cannot drift from the lots it summarizes.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List

from sqlalchemy.engine import Engine

from db_engine import read_session
from repositories import LotRepository

ZERO = Decimal("0")


@dataclass(frozen=True)
class Position:
    """Aggregate holding of one instrument."""
    instrument_id: int
    total_quantity: int
    average_cost: Decimal  # 0 when total_quantity is 0
    total_cost: Decimal
    lot_count: int

    @property
    def is_empty(self) -> bool:
        return self.total_quantity == 0


def aggregate_lots(instrument_id: int, lots: Iterable) -> Position:
    """
    Compute the aggregate position of an instrument from its open lots.

    Args:
        instrument_id: Instrument the lots belong to
        lots: Open lots (anything with quantity and unit_cost)

    Returns:
        Position with total quantity and quantity-weighted average cost
    """
    total_quantity = 0
    total_cost = ZERO
    lot_count = 0
    for lot in lots:
        total_quantity += lot.quantity
        total_cost += lot.quantity * lot.unit_cost
        lot_count += 1

    average_cost = total_cost / total_quantity if total_quantity > 0 else ZERO
    return Position(
        instrument_id=instrument_id,
        total_quantity=total_quantity,
        average_cost=average_cost,
        total_cost=total_cost,
        lot_count=lot_count,
    )


class PositionAggregator:
    """Read-only view of positions for reporting collaborators."""

    def __init__(self, engine: Engine, lot_repository=LotRepository):
        self.engine = engine
        self.lots = lot_repository

    def get_position(self, instrument_id: int) -> Position:
        """Recompute the position of one instrument from its open lots."""
        with read_session(self.engine) as session:
            return aggregate_lots(instrument_id, self.lots.list_open(session, instrument_id))

    def list_positions(self) -> List[Position]:
        """Recompute the positions of every instrument that has open lots."""
        with read_session(self.engine) as session:
            by_instrument: Dict[int, list] = {}
            for lot in self.lots.list_all(session):
                by_instrument.setdefault(lot.instrument_id, []).append(lot)
        return [aggregate_lots(instrument_id, lots) for instrument_id, lots in by_instrument.items()]
