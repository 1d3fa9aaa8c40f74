"""
Portfolio service for valuing holdings against the latest prices.
Read-only: combines positions from open lots with price oracle snapshots.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy.engine import Engine

from errors import InvalidArgument
from services.asset_directory import AssetDirectory
from services.position import Position, PositionAggregator
from services.price_oracle import PriceOracle

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

ALLOCATION_KEYS = ("kind", "sector")
UNCLASSIFIED = "Unclassified"


class PortfolioService:
    """
    Service for holdings valuation and portfolio totals.
    Instruments without a price are valued at zero, as the ledger has no
    better estimate.
    """

    def __init__(
        self,
        engine: Engine,
        oracle: Optional[PriceOracle] = None,
        directory: Optional[AssetDirectory] = None,
    ):
        self.engine = engine
        self.oracle = oracle or PriceOracle(engine)
        self.directory = directory or AssetDirectory(engine)
        self.positions = PositionAggregator(engine)

    def _value_position(self, position: Position) -> Optional[Dict]:
        instrument = self.directory.describe(position.instrument_id)
        if instrument is None:
            logger.warning(f"Lots reference unknown instrument {position.instrument_id}")
            return None

        quote = self.oracle.get_latest_price(position.instrument_id)
        current_price = quote.price if quote else ZERO
        day_change = quote.day_change if quote else ZERO

        market_value = position.total_quantity * current_price
        unrealized_pnl = market_value - position.total_cost
        pnl_pct = (unrealized_pnl / position.total_cost * HUNDRED) if position.total_cost > 0 else ZERO

        return {
            'instrument_id': instrument.id,
            'ticker': instrument.ticker,
            'name': instrument.name,
            'kind': instrument.kind.value,
            'sector': instrument.sector,
            'currency': instrument.currency,
            'quantity': position.total_quantity,
            'lot_count': position.lot_count,
            'avg_cost': position.average_cost,
            'total_cost': position.total_cost,
            'current_price': current_price,
            'price_date': quote.as_of_date if quote else None,
            'market_value': market_value,
            'unrealized_pnl': unrealized_pnl,
            'pnl_pct': pnl_pct,
            'day_change': day_change * position.total_quantity,
        }

    def get_holding(self, instrument_id: int) -> Optional[Dict]:
        """
        Value the current holding of one instrument.

        Args:
            instrument_id: Instrument ID

        Returns:
            Dictionary with holding details, or None if nothing is held
        """
        position = self.positions.get_position(instrument_id)
        if position.is_empty:
            return None
        return self._value_position(position)

    def list_holdings(self) -> List[Dict]:
        """Value every held instrument, largest market value first."""
        holdings = []
        for position in self.positions.list_positions():
            holding = self._value_position(position)
            if holding is not None:
                holdings.append(holding)
        holdings.sort(key=lambda h: h['market_value'], reverse=True)
        return holdings

    def summary(self) -> Dict:
        """
        Calculate portfolio totals.

        Returns:
            Dictionary with total value, invested amount, gain/loss and the
            day's change, plus percentages
        """
        holdings = self.list_holdings()
        total_value = sum((h['market_value'] for h in holdings), ZERO)
        total_invested = sum((h['total_cost'] for h in holdings), ZERO)
        day_gain_loss = sum((h['day_change'] for h in holdings), ZERO)
        total_gain_loss = total_value - total_invested

        return {
            'total_value': total_value,
            'total_invested': total_invested,
            'total_gain_loss': total_gain_loss,
            'total_gain_loss_pct': (total_gain_loss / total_invested * HUNDRED) if total_invested > 0 else ZERO,
            'day_gain_loss': day_gain_loss,
            'day_gain_loss_pct': (day_gain_loss / total_value * HUNDRED) if total_value > 0 else ZERO,
            'holdings_count': len(holdings),
        }

    def allocation(self, by: str = 'kind') -> List[Dict]:
        """
        Group held instruments and report each group's share of the portfolio.

        Args:
            by: 'kind' (asset class) or 'sector'

        Returns:
            List of dicts with the group key, total_value, num_assets and
            pct, highest value first
        """
        if by not in ALLOCATION_KEYS:
            raise InvalidArgument(f"Cannot allocate by {by!r}, expected one of {', '.join(ALLOCATION_KEYS)}")

        groups: Dict[str, Dict] = {}
        for holding in self.list_holdings():
            key = holding[by] or UNCLASSIFIED
            group = groups.setdefault(key, {by: key, 'total_value': ZERO, 'num_assets': 0})
            group['total_value'] += holding['market_value']
            group['num_assets'] += 1

        grand_total = sum((g['total_value'] for g in groups.values()), ZERO)
        for group in groups.values():
            group['pct'] = (group['total_value'] / grand_total * HUNDRED) if grand_total > 0 else ZERO

        return sorted(groups.values(), key=lambda g: (-g['total_value'], g[by]))

    def holdings_frame(self) -> pd.DataFrame:
        """
        Holdings as a DataFrame for display, with money columns rounded to cents.
        """
        columns = [
            'ticker', 'name', 'kind', 'quantity', 'avg_cost', 'current_price',
            'market_value', 'unrealized_pnl', 'pnl_pct', 'day_change',
        ]
        holdings = self.list_holdings()
        if not holdings:
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame(holdings)[columns]
        money = ['avg_cost', 'current_price', 'market_value', 'unrealized_pnl', 'pnl_pct', 'day_change']
        df[money] = df[money].astype(float).round(2)
        return df
