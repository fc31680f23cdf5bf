from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Union
import concurrent.futures
import re
import sys

import yfinance as yf  # type: ignore[import-untyped]

from .cache import ExpiringCache

# Six-digit Korea Exchange codes, e.g. "005930"
_KRX_CODE = re.compile(r"^\d{6}$")


class PriceUnavailableError(ValueError):
    """Raised when no current price can be found for an asset."""


class PricingDataManager(ABC):
    """Abstract base class for current-price providers.

    Prices are per unit and in the asset's native currency.
    """

    @abstractmethod
    def get_current_price(self, asset_id: str, market: str = "") -> Decimal:
        raise NotImplementedError("This method should be overridden by subclasses.")


class FixedPricingDataManager(PricingDataManager):
    """Pricing manager serving manually entered prices."""

    def __init__(self, prices: dict[str, Union[Decimal, int, float, str]] | None = None):
        """Initialize with known prices.

        Args:
            prices: Price per unit by asset id.
        """
        self.prices: dict[str, Decimal] = {
            asset_id: Decimal(str(price)) for asset_id, price in (prices or {}).items()
        }

    def set_price(self, asset_id: str, price: Union[Decimal, int, float, str]):
        self.prices[asset_id] = Decimal(str(price))

    def get_current_price(self, asset_id: str, market: str = "") -> Decimal:
        """Return the stored price.

        Raises:
            PriceUnavailableError: If no price was entered for the asset.
        """
        if asset_id not in self.prices:
            raise PriceUnavailableError(f"No price entered for {asset_id}")
        return self.prices[asset_id]


def yahoo_symbols(asset_id: str, market: str = "") -> list[str]:
    """Yahoo Finance tickers to try for a ledger asset id, in order.

    Korean six-digit codes are listed on KOSPI (.KS) or KOSDAQ (.KQ); anything
    else is used as a ticker directly.
    """
    asset_id = asset_id.strip()
    if market.upper() == "KR" or (not market and _KRX_CODE.match(asset_id)):
        if "." in asset_id:
            return [asset_id]
        return [f"{asset_id}.KS", f"{asset_id}.KQ"]
    return [asset_id]


class YFinancePricingDataManager(PricingDataManager):
    """Live prices from Yahoo Finance through yfinance.

    Quotes are memoised in the given ``ExpiringCache`` so that repeated
    valuations within the cache lifetime reuse the same price.
    """

    def __init__(self, cache: ExpiringCache | None = None):
        """Initialize the manager.

        Args:
            cache: Quote cache. Defaults to a 5 minute cache owned by this
                manager.
        """
        self.cache = cache if cache is not None else ExpiringCache(ttl_seconds=300)

    @staticmethod
    def _last_price(symbol: str) -> Decimal | None:
        try:
            # fast_info['lastPrice'] includes the running session
            last_price = yf.Ticker(symbol).fast_info.get("lastPrice")
        except Exception as e:
            # yfinance raises a wide range of errors for unknown symbols and
            # rate limiting; treat them all as "no quote"
            print(f"Warning: yfinance request failed for {symbol}: {e}", file=sys.stderr)
            return None
        if last_price is None or last_price != last_price or last_price <= 0:
            return None
        return Decimal(str(last_price))

    def get_current_price(self, asset_id: str, market: str = "") -> Decimal:
        """Get the latest traded price of an asset.

        Raises:
            PriceUnavailableError: If none of the candidate tickers has a quote.
        """
        cache_key = f"{market}:{asset_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        for symbol in yahoo_symbols(asset_id, market):
            price = self._last_price(symbol)
            if price is not None:
                self.cache.set(cache_key, price)
                return price

        raise PriceUnavailableError(f"No price data available for {asset_id}")


def fetch_current_prices(
    assets: list[tuple[str, str]],
    pricing_manager: PricingDataManager,
    max_workers: int = 8,
) -> tuple[dict[str, Decimal], list[str]]:
    """
    Look up current prices for several assets in parallel.

    Args:
        assets: ``(asset_id, market)`` pairs. Duplicates are fetched once.
        pricing_manager: Provider used for each lookup.
        max_workers: Size of the thread pool.

    Returns:
        A tuple of (prices by asset id, asset ids whose lookup failed). The
        failed list keeps the order of ``assets``.
    """
    unique: dict[str, str] = {}
    for asset_id, market in assets:
        unique.setdefault(asset_id, market)

    prices: dict[str, Decimal] = {}
    failed: set[str] = set()
    if not unique:
        return prices, []

    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            pool.submit(pricing_manager.get_current_price, asset_id, market): asset_id
            for asset_id, market in unique.items()
        }
        for future in concurrent.futures.as_completed(futures):
            asset_id = futures[future]
            try:
                prices[asset_id] = future.result()
            except PriceUnavailableError:
                failed.add(asset_id)

    return prices, [asset_id for asset_id in unique if asset_id in failed]
