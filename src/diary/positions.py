"""Average-cost-basis position tracking for a single asset."""

from collections.abc import Iterable
from decimal import Decimal

from .currency import Currency
from .ledger import Transaction, TransactionType

ZERO = Decimal("0")


def sort_by_date(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Sort transactions by date; same-day entries keep their ledger order."""
    return sorted(transactions, key=lambda t: t.date)


class AssetPositionState():
    """Running average-cost state of one asset.

    ``held_quantity`` and ``held_cost_basis`` are in the asset's native
    currency and never go below zero. ``realized_profit`` is signed.
    """

    def __init__(self, asset_id: str, asset_name: str = "", currency: Currency = Currency.KRW, market: str = ""):
        """Initialize an empty position.

        Args:
            asset_id: Identifier of the asset (ticker or exchange code).
            asset_name: Display label, advisory only.
            currency: Native currency of the asset.
            market: Advisory venue tag (e.g. "KR", "US").
        """
        self.asset_id: str = asset_id
        self.asset_name: str = asset_name
        self.currency: Currency = currency
        self.market: str = market
        self.held_quantity: Decimal = ZERO
        self.held_cost_basis: Decimal = ZERO
        self.realized_profit: Decimal = ZERO
        self.observed_buy_prices: list[Decimal] = []

    @property
    def is_held(self) -> bool:
        return self.held_quantity > 0

    @property
    def average_price(self) -> Decimal:
        """Cost basis per held unit, 0 when nothing is held."""
        if self.held_quantity > 0:
            return self.held_cost_basis / self.held_quantity
        return ZERO

    @property
    def min_buy_price(self) -> Decimal:
        return min(self.observed_buy_prices) if self.observed_buy_prices else ZERO

    @property
    def max_buy_price(self) -> Decimal:
        return max(self.observed_buy_prices) if self.observed_buy_prices else ZERO

    def __repr__(self):
        return (
            f"AssetPositionState(asset_id={self.asset_id}, quantity={self.held_quantity}, "
            f"cost_basis={self.held_cost_basis}, realized_profit={self.realized_profit})"
        )


class PositionTracker():
    """Applies BUY and SELL transactions of one asset to its position state.

    Transactions must be applied in date order. Selling more than is held is
    allowed: quantity and cost basis floor at zero, and whatever part of the
    sale amount is not covered by the cost basis counts as realized profit.
    """

    def __init__(self, state: AssetPositionState):
        self.state = state

    @classmethod
    def for_transaction(cls, txn: Transaction) -> "PositionTracker":
        """Create a tracker whose asset takes its name, currency and market from ``txn``."""
        return cls(AssetPositionState(
            asset_id=txn.asset_id,
            asset_name=txn.asset_name,
            currency=txn.currency,
            market=txn.market,
        ))

    def apply(self, txn: Transaction) -> None:
        state = self.state

        if txn.transaction_type == TransactionType.BUY:
            state.held_cost_basis += txn.amount
            state.held_quantity += txn.quantity
            if txn.quantity > 0:
                state.observed_buy_prices.append(txn.amount / txn.quantity)

        elif txn.transaction_type == TransactionType.SELL:
            # Average cost at the moment of sale, 0 if nothing is held
            average_cost = state.held_cost_basis / state.held_quantity if state.held_quantity > 0 else ZERO
            cost_basis_removed = average_cost * txn.quantity
            state.realized_profit += txn.amount - cost_basis_removed
            state.held_cost_basis = max(ZERO, state.held_cost_basis - cost_basis_removed)
            state.held_quantity = max(ZERO, state.held_quantity - txn.quantity)

    def apply_all(self, transactions: Iterable[Transaction]) -> AssetPositionState:
        for txn in transactions:
            self.apply(txn)
        return self.state


def track_position(transactions: Iterable[Transaction]) -> AssetPositionState | None:
    """
    Compute the final position of a single asset from its transaction history.

    The history is sorted by date first (stable, so same-day transactions
    are applied in ledger order). The asset's currency is taken from its
    earliest transaction.

    Args:
        transactions: All BUY/SELL transactions of one asset, in any order.

    Returns:
        The final AssetPositionState, or None if there are no transactions.
    """
    ordered = [t for t in sort_by_date(transactions) if not t.is_cash_move]
    if not ordered:
        return None

    tracker = PositionTracker.for_transaction(ordered[0])
    return tracker.apply_all(ordered)
