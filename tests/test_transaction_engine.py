"""Tests for TransactionEngine buy/sell/dividend against an in-memory store."""

import random
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from db_engine import read_session
from errors import InsufficientHoldings, InstrumentNotFound, InvalidArgument
from models import TransactionKind
from repositories import JournalRepository, LotRepository
from services.transaction_engine import TransactionEngine


def _lots(engine, instrument_id):
    with read_session(engine) as session:
        return [(lot.id, lot.quantity, lot.unit_cost) for lot in LotRepository.list_open(session, instrument_id)]


def _journal(engine, instrument_id):
    with read_session(engine) as session:
        return [
            (r.kind, r.quantity, r.unit_price, r.amount)
            for r in JournalRepository.list_for_replay(session, instrument_id)
        ]


class TestBuy:
    def test_buy_opens_lot_and_journals(self, engine, ledger, aapl) -> None:
        result = ledger.buy("AAPL", 10, Decimal("175.50"))

        assert result.kind == TransactionKind.BUY
        assert result.ticker == "AAPL"
        assert result.position.total_quantity == 10
        assert result.position.average_cost == Decimal("175.50")
        assert [(q, c) for _, q, c in _lots(engine, aapl.id)] == [(10, Decimal("175.50"))]
        assert _journal(engine, aapl.id) == [(TransactionKind.BUY, 10, Decimal("175.50"), None)]

    def test_each_buy_creates_separate_lot(self, engine, ledger, aapl) -> None:
        ledger.buy("AAPL", 10, "175.50")
        result = ledger.buy("AAPL", 5, "180.00")

        lots = _lots(engine, aapl.id)
        assert [(q, c) for _, q, c in lots] == [(10, Decimal("175.5")), (5, Decimal("180"))]
        assert result.position.total_quantity == 15
        assert result.position.average_cost == Decimal("177")
        assert result.position.lot_count == 2

    def test_ticker_is_case_insensitive(self, ledger, aapl) -> None:
        result = ledger.buy(" aapl ", 1, 100)
        assert result.instrument.id == aapl.id

    def test_float_price_is_converted_exactly(self, ledger, aapl) -> None:
        result = ledger.buy("AAPL", 3, 0.1)
        assert result.price == Decimal("0.1")

    def test_unknown_ticker(self, engine, ledger, aapl) -> None:
        with pytest.raises(InstrumentNotFound):
            ledger.buy("MSFT", 1, 100)
        assert _lots(engine, aapl.id) == []

    def test_resolution_happens_before_validation(self, ledger) -> None:
        with pytest.raises(InstrumentNotFound):
            ledger.buy("ZZZZ", 0, 0)

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "10", True, None])
    def test_rejects_bad_quantity(self, engine, ledger, aapl, quantity) -> None:
        with pytest.raises(InvalidArgument):
            ledger.buy("AAPL", quantity, 100)
        assert _lots(engine, aapl.id) == []
        assert _journal(engine, aapl.id) == []

    @pytest.mark.parametrize("price", [
        0, -5, "abc", float("nan"), float("inf"), None, "0.00001", 1e-05, "12.34567", "1e14",
    ])
    def test_rejects_bad_price(self, engine, ledger, aapl, price) -> None:
        with pytest.raises(InvalidArgument):
            ledger.buy("AAPL", 1, price)
        assert _journal(engine, aapl.id) == []

    def test_price_below_store_scale_never_becomes_zero_cost(self, engine, ledger, aapl) -> None:
        with pytest.raises(InvalidArgument, match="at most 4 decimal places"):
            ledger.buy("AAPL", 3, "0.00001")

        result = ledger.buy("AAPL", 3, "0.0001")

        assert result.price == Decimal("0.0001")
        assert ledger.get_position("AAPL").average_cost > 0
        assert [c for _, _, c in _lots(engine, aapl.id)] == [Decimal("0.0001")]

    def test_integral_decimal_quantity_accepted(self, ledger, aapl) -> None:
        result = ledger.buy("AAPL", Decimal("4"), 10)
        assert result.quantity == 4

    def test_default_clock_is_utc(self, engine, directory, aapl) -> None:
        result = TransactionEngine(engine, directory=directory).buy("AAPL", 1, 100)

        assert result.occurred_at.tzinfo is timezone.utc
        assert [q for _, q, _ in _lots(engine, aapl.id)] == [1]

    def test_blank_ticker(self, ledger) -> None:
        with pytest.raises(InvalidArgument, match="Ticker is required"):
            ledger.buy("  ", 1, 1)


class TestSell:
    def test_fifo_depletion(self, engine, ledger, aapl) -> None:
        ledger.buy("AAPL", 10, 100)
        ledger.buy("AAPL", 5, 110)
        first_id, second_id = [lot_id for lot_id, _, _ in _lots(engine, aapl.id)]

        ledger.sell("AAPL", 12, 120)

        assert _lots(engine, aapl.id) == [(second_id, 3, Decimal("110"))]
        assert first_id != second_id

    def test_partial_sell_reduces_oldest_lot_only(self, engine, ledger, aapl) -> None:
        ledger.buy("AAPL", 10, 100)
        ledger.buy("AAPL", 5, 110)

        ledger.sell("AAPL", 4, 120)

        assert [(q, c) for _, q, c in _lots(engine, aapl.id)] == [(6, Decimal("100")), (5, Decimal("110"))]

    def test_same_timestamp_breaks_ties_by_lot_id(self, engine, directory, aapl) -> None:
        fixed = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        ledger = TransactionEngine(engine, directory=directory, clock=lambda: fixed)
        ledger.buy("AAPL", 4, 50)
        ledger.buy("AAPL", 4, 60)
        older_id, newer_id = [lot_id for lot_id, _, _ in _lots(engine, aapl.id)]
        assert older_id < newer_id

        ledger.sell("AAPL", 5, 70)

        assert _lots(engine, aapl.id) == [(newer_id, 3, Decimal("60"))]

    def test_sell_exactly_available_empties_lots(self, engine, ledger, aapl) -> None:
        ledger.buy("AAPL", 10, 100)
        ledger.buy("AAPL", 5, 110)

        result = ledger.sell("AAPL", 15, 120)

        assert result.position.total_quantity == 0
        assert result.position.average_cost == Decimal("0")
        assert result.position.is_empty
        assert _lots(engine, aapl.id) == []

    def test_sell_one_more_than_available_fails_untouched(self, engine, ledger, aapl) -> None:
        ledger.buy("AAPL", 10, 100)
        ledger.buy("AAPL", 5, 110)
        lots_before = _lots(engine, aapl.id)
        journal_before = _journal(engine, aapl.id)

        with pytest.raises(InsufficientHoldings) as exc_info:
            ledger.sell("AAPL", 16, 120)

        assert exc_info.value.available == 15
        assert exc_info.value.requested == 16
        assert _lots(engine, aapl.id) == lots_before
        assert _journal(engine, aapl.id) == journal_before

    def test_sell_with_no_holdings(self, ledger, aapl) -> None:
        with pytest.raises(InsufficientHoldings) as exc_info:
            ledger.sell("AAPL", 1, 100)
        assert exc_info.value.available == 0

    def test_realized_gain(self, ledger, aapl) -> None:
        ledger.buy("AAPL", 10, "175.50")
        ledger.buy("AAPL", 5, "180.00")

        result = ledger.sell("AAPL", 12, "190.00")

        # 10 x 175.50 + 2 x 180.00
        assert result.cost_basis_sold == Decimal("2115.00")
        assert result.realized_gain == Decimal("12") * Decimal("190.00") - Decimal("2115.00")

    def test_journal_records_sale_price_not_cost(self, engine, ledger, aapl) -> None:
        ledger.buy("AAPL", 2, 100)
        ledger.sell("AAPL", 1, 150)
        assert _journal(engine, aapl.id)[-1] == (TransactionKind.SELL, 1, Decimal("150"), None)

    @pytest.mark.parametrize("quantity,price", [(0, 100), (-3, 100), (1, 0), (1, -1)])
    def test_rejects_bad_arguments(self, engine, ledger, aapl, quantity, price) -> None:
        ledger.buy("AAPL", 5, 100)
        with pytest.raises(InvalidArgument):
            ledger.sell("AAPL", quantity, price)
        assert [(q, c) for _, q, c in _lots(engine, aapl.id)] == [(5, Decimal("100"))]


class TestDividend:
    def test_dividend_journals_amount_without_touching_lots(self, engine, ledger, aapl) -> None:
        ledger.buy("AAPL", 10, 100)
        lots_before = _lots(engine, aapl.id)

        result = ledger.dividend("AAPL", "12.34")

        assert result.kind == TransactionKind.DIVIDEND
        assert result.quantity == 0
        assert result.amount == Decimal("12.34")
        assert result.price is None
        assert result.position.total_quantity == 10
        assert _lots(engine, aapl.id) == lots_before
        assert _journal(engine, aapl.id)[-1] == (TransactionKind.DIVIDEND, 0, None, Decimal("12.34"))

    def test_dividend_without_holdings(self, engine, ledger, aapl) -> None:
        with pytest.raises(InsufficientHoldings, match="No holdings for AAPL"):
            ledger.dividend("AAPL", 5)
        assert _journal(engine, aapl.id) == []

    def test_dividend_after_position_closed(self, ledger, aapl) -> None:
        ledger.buy("AAPL", 1, 10)
        ledger.sell("AAPL", 1, 12)
        with pytest.raises(InsufficientHoldings):
            ledger.dividend("AAPL", 5)

    @pytest.mark.parametrize("amount", [0, -1, "x", "0.00004", "1.00001"])
    def test_rejects_bad_amount(self, ledger, aapl, amount) -> None:
        ledger.buy("AAPL", 1, 10)
        with pytest.raises(InvalidArgument):
            ledger.dividend("AAPL", amount)

    def test_unknown_ticker(self, ledger) -> None:
        with pytest.raises(InstrumentNotFound):
            ledger.dividend("NOPE", 5)


class TestScenarios:
    def test_buy_buy_sell(self, engine, ledger, aapl) -> None:
        first = ledger.buy("AAPL", 10, "175.50")
        assert (first.position.total_quantity, first.position.average_cost) == (10, Decimal("175.50"))

        second = ledger.buy("AAPL", 5, "180.00")
        assert len(_lots(engine, aapl.id)) == 2
        assert (second.position.total_quantity, second.position.average_cost) == (15, Decimal("177.00"))

        third = ledger.sell("AAPL", 12, "190.00")
        assert [(q, c) for _, q, c in _lots(engine, aapl.id)] == [(3, Decimal("180.00"))]
        assert (third.position.total_quantity, third.position.average_cost) == (3, Decimal("180.00"))
        assert [kind for kind, _, _, _ in _journal(engine, aapl.id)] == [
            TransactionKind.BUY, TransactionKind.BUY, TransactionKind.SELL,
        ]

        lots_before = _lots(engine, aapl.id)
        journal_before = _journal(engine, aapl.id)
        with pytest.raises(InsufficientHoldings):
            ledger.sell("AAPL", 100, "190.00")
        assert _lots(engine, aapl.id) == lots_before
        assert _journal(engine, aapl.id) == journal_before

    def test_quantity_is_conserved(self, engine, ledger, aapl) -> None:
        rng = random.Random(42)
        expected = 0
        for _ in range(60):
            if rng.random() < 0.55:
                qty = rng.randint(1, 20)
                ledger.buy("AAPL", qty, rng.randint(50, 150))
                expected += qty
            else:
                qty = rng.randint(1, 25)
                try:
                    ledger.sell("AAPL", qty, rng.randint(50, 150))
                    expected -= qty
                except InsufficientHoldings:
                    assert qty > expected
            lots = _lots(engine, aapl.id)
            assert sum(q for _, q, _ in lots) == expected
            assert all(q > 0 for _, q, _ in lots)
        assert expected >= 0

    def test_instruments_are_independent(self, engine, ledger, directory, aapl) -> None:
        msft = directory.register("MSFT", "Microsoft Corporation")
        ledger.buy("AAPL", 5, 100)
        ledger.buy("MSFT", 7, 300)

        ledger.sell("MSFT", 7, 310)

        assert [q for _, q, _ in _lots(engine, aapl.id)] == [5]
        assert _lots(engine, msft.id) == []

    def test_get_position(self, ledger, aapl) -> None:
        ledger.buy("AAPL", 2, 10)
        ledger.buy("AAPL", 2, 20)
        position = ledger.get_position("aapl")
        assert position.total_quantity == 4
        assert position.average_cost == Decimal("15")
