from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Union

from .cash import CashLedger
from .currency import Currency, DEFAULT_EXCHANGE_RATE, REPORTING_CURRENCY, to_reporting_currency
from .ledger import Transaction, TransactionType
from .positions import AssetPositionState, PositionTracker, sort_by_date

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class AssetHolding:
    """A currently held asset valued at its current price.

    Prices and ``current_value_native`` are in the asset's own currency;
    ``current_value``, ``invested`` and ``unrealized_profit`` are in the
    reporting currency. ``invested`` is the cost basis of the units still held.
    """

    asset_id: str
    asset_name: str
    currency: Currency
    market: str
    quantity: Decimal
    average_price: Decimal
    min_buy_price: Decimal
    max_buy_price: Decimal
    current_price: Decimal
    current_value_native: Decimal
    current_value: Decimal
    invested: Decimal
    unrealized_profit: Decimal
    profit_rate: Decimal


@dataclass(frozen=True)
class CurrencyExposure:
    """Share of the holdings value denominated in one currency."""

    amount: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class PortfolioSummary:
    """Portfolio-wide totals in the reporting currency.

    ``total_invested`` is every purchase ever made (never reduced by sales)
    and is the denominator of ``total_profit_rate``. ``currency_exposure``
    covers holdings only; cash is left out.
    """

    total_value: Decimal
    total_cash: Decimal
    cash_foreign: Decimal
    total_portfolio_value: Decimal
    total_invested: Decimal
    realized_profit: Decimal
    unrealized_profit: Decimal
    total_profit: Decimal
    total_profit_rate: Decimal
    currency_exposure: dict[Currency, CurrencyExposure]
    holdings: list[AssetHolding] = field(default_factory=list)
    exchange_rate: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation; Decimals become strings so no precision is lost."""
        def holding_to_dict(h: AssetHolding) -> dict[str, Any]:
            return {
                "asset_id": h.asset_id,
                "asset_name": h.asset_name,
                "currency": h.currency.value,
                "market": h.market,
                "quantity": str(h.quantity),
                "average_price": str(h.average_price),
                "min_buy_price": str(h.min_buy_price),
                "max_buy_price": str(h.max_buy_price),
                "current_price": str(h.current_price),
                "current_value_native": str(h.current_value_native),
                "current_value": str(h.current_value),
                "invested": str(h.invested),
                "unrealized_profit": str(h.unrealized_profit),
                "profit_rate": str(h.profit_rate),
            }

        return {
            "total_value": str(self.total_value),
            "total_cash": str(self.total_cash),
            "cash_foreign": str(self.cash_foreign),
            "total_portfolio_value": str(self.total_portfolio_value),
            "total_invested": str(self.total_invested),
            "realized_profit": str(self.realized_profit),
            "unrealized_profit": str(self.unrealized_profit),
            "total_profit": str(self.total_profit),
            "total_profit_rate": str(self.total_profit_rate),
            "currency_exposure": {
                currency.value: {"amount": str(e.amount), "percentage": str(e.percentage)}
                for currency, e in self.currency_exposure.items()
            },
            "holdings": [holding_to_dict(h) for h in self.holdings],
            "exchange_rate": str(self.exchange_rate),
        }


def _percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator * 100, or 0 when the denominator is not positive."""
    if denominator > 0:
        return numerator / denominator * HUNDRED
    return ZERO


def track_positions(transactions: Iterable[Transaction]) -> dict[str, AssetPositionState]:
    """
    Run average-cost tracking for every asset in a ledger.

    BUY/SELL transactions are grouped by asset id (entries without an asset
    id are ignored) and each group is applied in date order.

    Args:
        transactions: The full ledger in any order.

    Returns:
        Final position state per asset id, in order of each asset's first
        appearance in the ledger.
    """
    groups: dict[str, list[Transaction]] = {}
    for txn in transactions:
        if txn.is_cash_move or not txn.asset_id:
            continue
        groups.setdefault(txn.asset_id, []).append(txn)

    states: dict[str, AssetPositionState] = {}
    for asset_id, group in groups.items():
        ordered = sort_by_date(group)
        tracker = PositionTracker.for_transaction(ordered[0])
        states[asset_id] = tracker.apply_all(ordered)
    return states


def _build_holding(
    state: AssetPositionState,
    current_price: Decimal,
    exchange_rate: Decimal,
    reporting_currency: Currency,
) -> AssetHolding:
    current_value_native = current_price * state.held_quantity
    current_value = to_reporting_currency(current_value_native, state.currency, exchange_rate, reporting_currency)
    invested = to_reporting_currency(state.held_cost_basis, state.currency, exchange_rate, reporting_currency)
    unrealized_profit = current_value - invested

    return AssetHolding(
        asset_id=state.asset_id,
        asset_name=state.asset_name,
        currency=state.currency,
        market=state.market,
        quantity=state.held_quantity,
        average_price=state.average_price,
        min_buy_price=state.min_buy_price,
        max_buy_price=state.max_buy_price,
        current_price=current_price,
        current_value_native=current_value_native,
        current_value=current_value,
        invested=invested,
        unrealized_profit=unrealized_profit,
        profit_rate=_percent(unrealized_profit, invested),
    )


def calculate_portfolio(
    transactions: Iterable[Transaction],
    current_prices: Mapping[str, Union[Decimal, int, float]],
    exchange_rate: Union[Decimal, int, float],
    reporting_currency: Currency = REPORTING_CURRENCY,
) -> PortfolioSummary:
    """
    Value a portfolio from its raw transaction ledger.

    Holdings are tracked with average-cost-basis accounting per asset,
    cash per currency, and everything is reported in ``reporting_currency``.
    The function is pure: identical inputs always give an identical summary,
    and degenerate inputs (missing prices, a zero rate, overselling, an empty
    ledger) produce zero-valued figures instead of errors.

    Args:
        transactions: The full ledger, in any order.
        current_prices: Price per unit by asset id, in the asset's native
            currency. Missing assets are valued at 0.
        exchange_rate: Reporting currency per unit of the foreign currency.
        reporting_currency: Currency of the aggregate figures.

    Returns:
        The PortfolioSummary.
    """
    transactions = list(transactions)
    rate = Decimal(str(exchange_rate))

    # BUY/SELL rows without an asset id move no cash either
    cash = CashLedger(reporting_currency).apply_all(
        t for t in transactions if t.is_cash_move or t.asset_id
    )
    states = track_positions(transactions)

    holdings: list[AssetHolding] = []
    for asset_id, state in states.items():
        if not state.is_held:
            continue
        price = Decimal(str(current_prices.get(asset_id, 0) or 0))
        holdings.append(_build_holding(state, price, rate, reporting_currency))

    # Python's sort is stable, so equal values keep first-appearance order
    holdings.sort(key=lambda h: h.current_value, reverse=True)

    total_value = sum((h.current_value for h in holdings), ZERO)
    unrealized_profit = sum((h.unrealized_profit for h in holdings), ZERO)

    # Each purchase is converted with its own currency, not the asset's
    total_invested = sum(
        (
            to_reporting_currency(t.amount, t.currency, rate, reporting_currency)
            for t in transactions
            if t.transaction_type == TransactionType.BUY and t.asset_id
        ),
        ZERO,
    )
    realized_profit = sum(
        (to_reporting_currency(s.realized_profit, s.currency, rate, reporting_currency) for s in states.values()),
        ZERO,
    )

    total_profit = realized_profit + unrealized_profit
    total_cash = cash.total_in_reporting_currency(rate)

    exposure_amounts: dict[Currency, Decimal] = {currency: ZERO for currency in Currency}
    for h in holdings:
        exposure_amounts[h.currency] += h.current_value
    currency_exposure = {
        currency: CurrencyExposure(amount=amount, percentage=_percent(amount, total_value))
        for currency, amount in exposure_amounts.items()
    }

    return PortfolioSummary(
        total_value=total_value,
        total_cash=total_cash,
        cash_foreign=cash.foreign_balance,
        total_portfolio_value=total_value + total_cash,
        total_invested=total_invested,
        realized_profit=realized_profit,
        unrealized_profit=unrealized_profit,
        total_profit=total_profit,
        total_profit_rate=_percent(total_profit, total_invested),
        currency_exposure=currency_exposure,
        holdings=holdings,
        exchange_rate=rate,
    )


def summarize_by_label(
    transactions: Iterable[Transaction],
    key: Callable[[Transaction], str],
    exchange_rate: Union[Decimal, int, float] = DEFAULT_EXCHANGE_RATE,
    transaction_types: Iterable[TransactionType] | None = None,
    reporting_currency: Currency = REPORTING_CURRENCY,
) -> dict[str, Decimal]:
    """
    Sum transaction amounts per free-text label.

    Used by account/category style views that group entries by a string
    such as the market tag or a memo prefix.

    Args:
        transactions: Ledger entries.
        key: Function returning the label of a transaction.
        exchange_rate: Rate used to convert foreign amounts into the
            reporting currency. Defaults to the fallback USD/KRW rate.
        transaction_types: If given, only these types are summed.
        reporting_currency: Currency of the totals.

    Returns:
        Total amount per label in the reporting currency, in first-seen order.
    """
    allowed = set(transaction_types) if transaction_types is not None else None
    totals: defaultdict[str, Decimal] = defaultdict(Decimal)
    for txn in transactions:
        if allowed is not None and txn.transaction_type not in allowed:
            continue
        totals[key(txn)] += to_reporting_currency(txn.amount, txn.currency, exchange_rate, reporting_currency)
    return dict(totals)
