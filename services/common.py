"""
Common utilities and shared functions.
Ticker normalization, currency inference, and argument coercion for money
and share quantities.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from errors import InvalidArgument

logger = logging.getLogger(__name__)


# Currency by exchange suffix
SUFFIX_CURRENCY_MAP = {
    ".HK": "HKD",
    ".SS": "CNY",
    ".SZ": "CNY",
    ".L": "GBP",
    ".T": "JPY",
}

# Money columns are Numeric(18, 4)
MONEY_PLACES = 4
MONEY_QUANTUM = Decimal("0.0001")
MONEY_LIMIT = Decimal(10) ** 14


def normalize_ticker(ticker: Any) -> str:
    """
    Normalize a ticker symbol for storage and lookup.

    Args:
        ticker: Raw ticker as entered by the caller

    Returns:
        Stripped, upper-case ticker

    Raises:
        InvalidArgument: If the ticker is missing or blank

    Examples:
        >>> normalize_ticker(" aapl ")
        'AAPL'
        >>> normalize_ticker("0700.hk")
        '0700.HK'
    """
    if not isinstance(ticker, str) or not ticker.strip():
        raise InvalidArgument("Ticker is required")
    return ticker.strip().upper()


def infer_currency(ticker: str, default: str = "USD") -> str:
    """
    Infer the trading currency from the ticker's exchange suffix.

    Args:
        ticker: Normalized ticker symbol
        default: Currency for tickers without a known suffix

    Returns:
        ISO currency code

    Examples:
        >>> infer_currency("0700.HK")
        'HKD'
        >>> infer_currency("AAPL")
        'USD'
    """
    for suffix, currency in SUFFIX_CURRENCY_MAP.items():
        if ticker.endswith(suffix):
            return currency
    return default


def to_decimal(value: Any, field: str) -> Decimal:
    """
    Convert a caller-supplied amount to Decimal.
    Floats go through str() so 175.5 becomes Decimal('175.5'), not its binary expansion.

    Raises:
        InvalidArgument: If the value is not a finite number
    """
    if isinstance(value, bool) or value is None:
        raise InvalidArgument(f"{field} must be a number")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidArgument(f"{field} must be a number, got {value!r}") from None
    if not result.is_finite():
        raise InvalidArgument(f"{field} must be finite, got {value!r}")
    return result


def to_money(value: Any, field: str) -> Decimal:
    """
    Convert an amount to the store's money scale of MONEY_PLACES decimals.

    Raises:
        InvalidArgument: If the value has more decimal places than the store
            keeps, or more integer digits than the column holds
    """
    amount = to_decimal(value, field)
    if amount.normalize().as_tuple().exponent < -MONEY_PLACES:
        raise InvalidArgument(f"{field} allows at most {MONEY_PLACES} decimal places, got {value!r}")
    if abs(amount) >= MONEY_LIMIT:
        raise InvalidArgument(f"{field} is out of range, got {value!r}")
    return amount.quantize(MONEY_QUANTUM)


def require_positive_amount(value: Any, field: str) -> Decimal:
    """Coerce a price or cash amount to the money scale and require it to be > 0."""
    amount = to_money(value, field)
    if amount <= 0:
        raise InvalidArgument(f"{field} must be positive, got {value!r}")
    return amount


def require_positive_quantity(value: Any, field: str = "quantity") -> int:
    """
    Require a whole, positive number of units.
    Integral Decimals are accepted; floats, strings and bools are not.
    """
    if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
        raise InvalidArgument(f"{field} must be an integer, got {value!r}")
    if isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            raise InvalidArgument(f"{field} must be an integer, got {value!r}")
        value = int(value)
    if value <= 0:
        raise InvalidArgument(f"{field} must be positive, got {value!r}")
    return value


def optional_decimal(value: Any, field: str) -> Optional[Decimal]:
    """Like to_money, but passes None through."""
    if value is None:
        return None
    return to_money(value, field)
