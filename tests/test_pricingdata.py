"""Tests for current-price providers and parallel price lookups."""

from decimal import Decimal
from unittest.mock import patch

import pytest

from diary.cache import ExpiringCache
from diary.pricingdata import (
    FixedPricingDataManager,
    PriceUnavailableError,
    PricingDataManager,
    YFinancePricingDataManager,
    fetch_current_prices,
    yahoo_symbols,
)


class CountingPricingDataManager(PricingDataManager):
    """Pricing manager that serves fixed prices and counts lookups.

    Args:
        prices: Price per asset id; assets not listed are unavailable.
    """

    def __init__(self, prices: dict[str, Decimal]):
        self.prices = prices
        self.calls: list[tuple[str, str]] = []

    def get_current_price(self, asset_id: str, market: str = "") -> Decimal:
        self.calls.append((asset_id, market))
        if asset_id not in self.prices:
            raise PriceUnavailableError(asset_id)
        return self.prices[asset_id]


class FakeTicker:
    """Stand-in for yfinance.Ticker with a canned lastPrice per symbol."""

    last_prices: dict[str, float | None] = {}

    def __init__(self, symbol: str):
        self.symbol = symbol

    @property
    def fast_info(self):
        return {"lastPrice": self.last_prices.get(self.symbol)}


def test_fixed_pricing_data_manager():
    manager = FixedPricingDataManager({"005930": 71000, "AAPL": "195.5"})
    assert manager.get_current_price("005930") == Decimal("71000")
    assert manager.get_current_price("AAPL", "US") == Decimal("195.5")

    manager.set_price("TSLA", 250)
    assert manager.get_current_price("TSLA") == Decimal("250")

    with pytest.raises(PriceUnavailableError):
        manager.get_current_price("NVDA")


@pytest.mark.parametrize("asset_id, market, expected", [
    ("005930", "KR", ["005930.KS", "005930.KQ"]),
    ("035720", "", ["035720.KS", "035720.KQ"]),
    ("AAPL", "US", ["AAPL"]),
    ("BRK-B", "", ["BRK-B"]),
    ("005930.KS", "KR", ["005930.KS"]),
])
def test_yahoo_symbols(asset_id, market, expected):
    """Korean codes are tried on KOSPI then KOSDAQ; other tickers are used as-is."""
    assert yahoo_symbols(asset_id, market) == expected


def test_yfinance_manager_falls_back_to_kosdaq_and_caches():
    """A KOSDAQ code is found on the second suffix and then served from cache."""
    FakeTicker.last_prices = {"247540.KS": None, "247540.KQ": 182300.0}
    manager = YFinancePricingDataManager(cache=ExpiringCache(ttl_seconds=60))

    with patch("diary.pricingdata.yf.Ticker", side_effect=FakeTicker) as ticker:
        assert manager.get_current_price("247540", "KR") == Decimal("182300.0")
        assert manager.get_current_price("247540", "KR") == Decimal("182300.0")

    assert ticker.call_count == 2


def test_yfinance_manager_without_quote_raises():
    FakeTicker.last_prices = {}
    manager = YFinancePricingDataManager()

    with patch("diary.pricingdata.yf.Ticker", side_effect=FakeTicker):
        with pytest.raises(PriceUnavailableError, match="ZZZZ"):
            manager.get_current_price("ZZZZ", "US")


def test_yfinance_manager_treats_errors_as_missing(capsys):
    """Exceptions from yfinance are reported on stderr and become PriceUnavailableError."""
    manager = YFinancePricingDataManager()

    with patch("diary.pricingdata.yf.Ticker", side_effect=RuntimeError("rate limited")):
        with pytest.raises(PriceUnavailableError):
            manager.get_current_price("AAPL", "US")

    assert "rate limited" in capsys.readouterr().err


def test_fetch_current_prices_collects_failures():
    """Prices come back by asset id; failed lookups are listed in request order."""
    manager = CountingPricingDataManager({"A": Decimal("10"), "C": Decimal("30")})

    prices, failed = fetch_current_prices(
        [("A", "KR"), ("B", "KR"), ("C", "US"), ("D", "US"), ("A", "KR")],
        manager,
        max_workers=3,
    )

    assert prices == {"A": Decimal("10"), "C": Decimal("30")}
    assert failed == ["B", "D"]
    # Duplicate asset ids are looked up once
    assert sorted(manager.calls) == [("A", "KR"), ("B", "KR"), ("C", "US"), ("D", "US")]


def test_fetch_current_prices_with_no_assets():
    prices, failed = fetch_current_prices([], CountingPricingDataManager({}))
    assert prices == {}
    assert failed == []
