"""Tests for the per-asset average-cost position tracker."""

from decimal import Decimal

from diary.currency import Currency
from diary.ledger import TransactionType, make_transaction
from diary.positions import AssetPositionState, PositionTracker, track_position


def test_buy_accumulates_quantity_and_cost():
    """Each BUY adds its quantity and amount and records the unit price."""
    tracker = PositionTracker(AssetPositionState("A"))
    tracker.apply(make_transaction("A", "2024-01-01", TransactionType.BUY, 10, 100000))
    tracker.apply(make_transaction("A", "2024-01-02", TransactionType.BUY, 5, 65000))

    state = tracker.state
    assert state.held_quantity == Decimal("15")
    assert state.held_cost_basis == Decimal("165000")
    assert state.observed_buy_prices == [Decimal("10000"), Decimal("13000")]
    assert state.average_price == Decimal("11000")


def test_zero_quantity_buy_adds_cost_without_price_observation():
    """A BUY with quantity 0 (e.g. a fee row) adds cost but no buy price."""
    state = track_position([
        make_transaction("A", "2024-01-01", TransactionType.BUY, 2, 200),
        make_transaction("A", "2024-01-02", TransactionType.BUY, 0, 10),
    ])

    assert state is not None
    assert state.held_cost_basis == Decimal("210")
    assert state.observed_buy_prices == [Decimal("100")]
    assert state.average_price == Decimal("105")


def test_sell_removes_average_cost():
    """SELL realizes amount minus average cost of the units sold."""
    state = track_position([
        make_transaction("A", "2024-01-01", TransactionType.BUY, 4, 400),
        make_transaction("A", "2024-01-02", TransactionType.SELL, 1, 90),
    ])

    assert state is not None
    assert state.held_quantity == Decimal("3")
    assert state.held_cost_basis == Decimal("300")
    assert state.realized_profit == Decimal("-10")


def test_oversell_floors_quantity_and_cost_at_zero():
    """Selling more than held never leaves negative quantity or cost basis."""
    state = track_position([
        make_transaction("A", "2024-01-01", TransactionType.BUY, 2, 200),
        make_transaction("A", "2024-01-02", TransactionType.SELL, 5, 600),
    ])

    assert state is not None
    assert state.held_quantity == Decimal("0")
    assert state.held_cost_basis == Decimal("0")
    # Cost removed is avg 100 * 5 = 500, even though only 200 was held
    assert state.realized_profit == Decimal("100")
    assert state.average_price == Decimal("0")
    assert not state.is_held


def test_quantity_and_cost_stay_non_negative_for_mixed_history():
    """Arbitrary interleavings of buys and oversells keep the position non-negative."""
    history = []
    for i in range(1, 10):
        kind = TransactionType.SELL if i % 3 == 0 else TransactionType.BUY
        history.append(make_transaction("A", f"2024-02-0{i}", kind, i, i * 137))

    tracker = PositionTracker(AssetPositionState("A"))
    for txn in history:
        tracker.apply(txn)
        assert tracker.state.held_quantity >= 0
        assert tracker.state.held_cost_basis >= 0


def test_cash_moves_are_ignored():
    """DEPOSIT and WITHDRAW leave the position untouched."""
    tracker = PositionTracker(AssetPositionState("A"))
    tracker.apply(make_transaction("A", "2024-01-01", TransactionType.DEPOSIT, 0, 1000))
    tracker.apply(make_transaction("A", "2024-01-01", TransactionType.WITHDRAW, 0, 500))

    assert tracker.state.held_quantity == 0
    assert tracker.state.held_cost_basis == 0
    assert tracker.state.realized_profit == 0


def test_track_position_takes_currency_from_earliest_transaction():
    """The asset's currency comes from its first transaction by date."""
    state = track_position([
        make_transaction("AAPL", "2024-03-01", TransactionType.SELL, 1, 200, Currency.KRW),
        make_transaction("AAPL", "2024-01-01", TransactionType.BUY, 2, 300, Currency.USD, market="US"),
    ])

    assert state is not None
    assert state.currency == Currency.USD
    assert state.market == "US"


def test_track_position_of_empty_history():
    """No transactions means no position."""
    assert track_position([]) is None


def test_min_and_max_buy_price_without_buys():
    """Without any buys the reported min/max prices are zero."""
    state = AssetPositionState("A")
    assert state.min_buy_price == 0
    assert state.max_buy_price == 0
