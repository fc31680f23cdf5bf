from enum import Enum
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Union

import requests

from .cache import ExpiringCache

class Currency(Enum):
    """Currencies a ledger entry can be denominated in."""

    KRW = "KRW"
    USD = "USD"

# Aggregate totals are always expressed in this currency.
REPORTING_CURRENCY = Currency.KRW

DEFAULT_EXCHANGE_RATE = Decimal("1300")

FRANKFURTER_URL = "https://api.frankfurter.app/latest"


class ExchangeRateUnavailableError(ValueError):
    """Raised when an exchange rate provider cannot produce a rate."""


def to_reporting_currency(
    amount: Decimal,
    native_currency: Currency,
    exchange_rate: Union[Decimal, int, float],
    reporting_currency: Currency = REPORTING_CURRENCY,
) -> Decimal:
    """Convert an amount from its native currency into the reporting currency.

    No rounding is applied. A non-positive exchange rate is not rejected; it
    simply yields a degenerate converted value.

    Args:
        amount: The amount in ``native_currency``.
        native_currency: Currency the amount is denominated in.
        exchange_rate: Units of reporting currency per one unit of the
            native currency.
        reporting_currency: The currency to convert into.

    Returns:
        The amount expressed in the reporting currency.
    """
    if native_currency == reporting_currency:
        return amount
    return amount * Decimal(str(exchange_rate))


class ExchangeRateManager(ABC):
    """Abstract base class for currency exchange rate providers."""

    @abstractmethod
    def get_exchange_rate(self, from_currency: Currency, to_currency: Currency) -> Decimal:
        """Get the current exchange rate between two currencies.

        Args:
            from_currency: The source currency.
            to_currency: The target currency.

        Returns:
            Units of ``to_currency`` per one unit of ``from_currency``.
        """
        raise NotImplementedError("This method should be overridden by subclasses.")

    def get_reporting_rate(self, foreign_currency: Currency = Currency.USD) -> Decimal:
        """Rate used by the portfolio aggregator (reporting units per foreign unit)."""
        return self.get_exchange_rate(foreign_currency, REPORTING_CURRENCY)


class FixedExchangeRateManager(ExchangeRateManager):
    """Exchange rate manager backed by a manually entered USD->KRW rate.

    Useful for tests, offline use, or when the user types the rate in by hand.
    """

    def __init__(self, usd_krw_rate: Union[Decimal, int, float, str] = DEFAULT_EXCHANGE_RATE):
        """Initialize with a fixed rate.

        Args:
            usd_krw_rate: KRW per one USD.
        """
        self.usd_krw_rate: Decimal = Decimal(str(usd_krw_rate))

    def set_exchange_rate(self, rate: Union[Decimal, int, float, str]):
        """Override the USD->KRW rate.

        Args:
            rate: KRW per one USD.
        """
        self.usd_krw_rate = Decimal(str(rate))

    def get_exchange_rate(self, from_currency: Currency, to_currency: Currency) -> Decimal:
        """Return the fixed rate, inverting it for KRW->USD.

        Raises:
            ExchangeRateUnavailableError: If the inverse is requested for a
                zero rate.
        """
        if from_currency == to_currency:
            return Decimal("1")

        if (from_currency, to_currency) == (Currency.USD, Currency.KRW):
            return self.usd_krw_rate

        if self.usd_krw_rate == 0:
            raise ExchangeRateUnavailableError("Cannot invert a zero USD->KRW rate.")
        return Decimal("1") / self.usd_krw_rate


class FrankfurterExchangeRateManager(ExchangeRateManager):
    """Exchange rate manager that fetches the latest rate from the Frankfurter API.

    Fetched rates are kept in an ``ExpiringCache`` so repeated valuations
    within the cache lifetime do not hit the network again.
    """

    def __init__(
        self,
        cache: ExpiringCache | None = None,
        session: requests.Session | None = None,
        timeout: float = 10,
        base_url: str = FRANKFURTER_URL,
    ):
        """Initialize the manager.

        Args:
            cache: Cache for fetched rates. Defaults to a 10 minute cache.
            session: HTTP session to use. Defaults to a new ``requests.Session``.
            timeout: Request timeout in seconds.
            base_url: Frankfurter ``latest`` endpoint.
        """
        self.cache = cache if cache is not None else ExpiringCache(ttl_seconds=600)
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.base_url = base_url

    def _fetch_rate(self, from_currency: Currency, to_currency: Currency) -> Decimal:
        try:
            response = self.session.get(
                self.base_url,
                params={"from": from_currency.value, "to": to_currency.value},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ExchangeRateUnavailableError(
                f"Exchange rate request {from_currency.value}->{to_currency.value} failed: {e}"
            ) from e

        rate = (data.get("rates") or {}).get(to_currency.value)
        if not rate:
            raise ExchangeRateUnavailableError(
                f"No {to_currency.value} rate in response for base {from_currency.value}."
            )
        return Decimal(str(rate))

    def get_exchange_rate(self, from_currency: Currency, to_currency: Currency) -> Decimal:
        """Get the latest rate, served from cache while it is fresh.

        Raises:
            ExchangeRateUnavailableError: If the API call fails or the
                response has no rate for the pair.
        """
        if from_currency == to_currency:
            return Decimal("1")

        key = f"{from_currency.value}->{to_currency.value}"
        rate = self.cache.get(key)
        if rate is None:
            rate = self._fetch_rate(from_currency, to_currency)
            self.cache.set(key, rate)
        return rate
