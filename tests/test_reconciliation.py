"""Tests for journal replay and lot reconciliation."""

from decimal import Decimal

from db_engine import read_session, unit_of_work
from models import TransactionKind, TransactionRecord
from repositories import LotRepository
from services.reconciliation import LedgerReconciler, replay_journal


def _make_record(kind, quantity=0, unit_price=None, amount=None, record_id=None):
    return TransactionRecord(
        id=record_id, instrument_id=1, kind=kind, quantity=quantity,
        unit_price=None if unit_price is None else Decimal(unit_price),
        amount=None if amount is None else Decimal(amount),
    )


class TestReplayJournal:
    def test_fifo_replay(self) -> None:
        records = [
            _make_record(TransactionKind.BUY, 10, "175.50"),
            _make_record(TransactionKind.BUY, 5, "180.00"),
            _make_record(TransactionKind.SELL, 12, "190.00"),
            _make_record(TransactionKind.DIVIDEND, amount="4.20"),
        ]
        quantity, cost, dividends, issues = replay_journal(records)
        assert quantity == 3
        assert cost == Decimal("540.00")
        assert dividends == Decimal("4.20")
        assert issues == []

    def test_oversell_is_reported(self) -> None:
        records = [
            _make_record(TransactionKind.BUY, 2, "10"),
            _make_record(TransactionKind.SELL, 5, "10", record_id=7),
        ]
        quantity, _, _, issues = replay_journal(records)
        assert quantity == 0
        assert issues == ["Transaction 7 sells 3 more units than were held"]


class TestLedgerReconciler:
    def test_consistent_after_operations(self, engine, ledger, aapl) -> None:
        ledger.buy("AAPL", 10, "175.50")
        ledger.buy("AAPL", 5, "180.00")
        ledger.sell("AAPL", 12, "190.00")
        ledger.dividend("AAPL", "1.50")

        report = LedgerReconciler(engine).reconcile(aapl.id)

        assert report.is_consistent
        assert report.ticker == "AAPL"
        assert report.lot_quantity == report.replayed_quantity == 3
        assert report.lot_cost == report.replayed_cost
        assert report.dividends_received == Decimal("1.50")

    def test_tampered_lot_is_detected(self, engine, ledger, aapl) -> None:
        ledger.buy("AAPL", 10, 100)
        with read_session(engine) as session:
            lot_id = LotRepository.list_open(session, aapl.id)[0].id
        with unit_of_work(engine) as session:
            LotRepository.reduce_or_delete(session, lot_id, 3)

        report = LedgerReconciler(engine).reconcile(aapl.id)

        assert not report.is_consistent
        assert (report.replayed_quantity, report.lot_quantity) == (10, 3)
        assert len(report.issues) == 2

    def test_reconcile_all(self, engine, ledger, directory, aapl) -> None:
        directory.register("MSFT", "Microsoft Corporation")
        ledger.buy("AAPL", 1, 100)

        reports = LedgerReconciler(engine).reconcile_all()

        assert [r.ticker for r in reports] == ["AAPL", "MSFT"]
        assert all(r.is_consistent for r in reports)
