"""
Ledger reconciliation.
Replays the transaction journal of an instrument through a FIFO queue and
checks that the result matches the open lots. A mismatch means lots and
journal were written without each other.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from sqlalchemy.engine import Engine

from db_engine import read_session
from models import TransactionKind
from repositories import InstrumentRepository, JournalRepository, LotRepository
from services.position import aggregate_lots

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class ReconciliationReport:
    """Comparison of journal replay against the Lot Store for one instrument."""
    instrument_id: int
    ticker: str
    replayed_quantity: int
    replayed_cost: Decimal
    lot_quantity: int
    lot_cost: Decimal
    dividends_received: Decimal = ZERO
    issues: List[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.issues


def replay_journal(records) -> tuple:
    """
    Replay journal records FIFO.

    Args:
        records: TransactionRecords in the order they were applied

    Returns:
        Tuple of (remaining quantity, remaining cost, dividends, issues)
    """
    buy_queue = deque()  # (quantity, unit_price)
    total_quantity = 0
    total_cost = ZERO
    dividends = ZERO
    issues = []

    for tx in records:
        if tx.kind == TransactionKind.BUY:
            buy_queue.append((tx.quantity, tx.unit_price))
            total_quantity += tx.quantity
            total_cost += tx.quantity * tx.unit_price
        elif tx.kind == TransactionKind.SELL:
            remaining_to_sell = tx.quantity
            while remaining_to_sell > 0 and buy_queue:
                qty, price = buy_queue[0]
                if qty <= remaining_to_sell:
                    buy_queue.popleft()
                    total_cost -= qty * price
                    remaining_to_sell -= qty
                else:
                    buy_queue[0] = (qty - remaining_to_sell, price)
                    total_cost -= remaining_to_sell * price
                    remaining_to_sell = 0
            if remaining_to_sell > 0:
                issues.append(f"Transaction {tx.id} sells {remaining_to_sell} more units than were held")
            total_quantity -= tx.quantity - remaining_to_sell
        elif tx.kind == TransactionKind.DIVIDEND:
            dividends += tx.amount or ZERO

    return total_quantity, total_cost, dividends, issues


class LedgerReconciler:
    """Checks that the Lot Store can be rebuilt from the journal."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def reconcile(self, instrument_id: int) -> ReconciliationReport:
        """Replay one instrument's journal and compare it with its open lots."""
        with read_session(self.engine) as session:
            instrument = InstrumentRepository.get_by_id(session, instrument_id)
            records = JournalRepository.list_for_replay(session, instrument_id)
            lots = LotRepository.list_open(session, instrument_id)

        quantity, cost, dividends, issues = replay_journal(records)
        position = aggregate_lots(instrument_id, lots)

        if quantity != position.total_quantity:
            issues.append(f"Journal replays to {quantity} units but lots hold {position.total_quantity}")
        if cost != position.total_cost:
            issues.append(f"Journal replays to cost {cost} but lots carry {position.total_cost}")

        report = ReconciliationReport(
            instrument_id=instrument_id,
            ticker=instrument.ticker if instrument else str(instrument_id),
            replayed_quantity=quantity,
            replayed_cost=cost,
            lot_quantity=position.total_quantity,
            lot_cost=position.total_cost,
            dividends_received=dividends,
            issues=issues,
        )
        if not report.is_consistent:
            logger.error(f"Ledger mismatch for {report.ticker}: {'; '.join(issues)}")
        return report

    def reconcile_all(self) -> List[ReconciliationReport]:
        """Reconcile every registered instrument."""
        with read_session(self.engine) as session:
            instrument_ids = [i.id for i in InstrumentRepository.get_all(session)]
        return [self.reconcile(instrument_id) for instrument_id in instrument_ids]
