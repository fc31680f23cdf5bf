from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal
from typing import Union

from .currency import Currency, REPORTING_CURRENCY, to_reporting_currency
from .ledger import Transaction, TransactionType


class CashLedger():
    """Running cash balance per currency.

    Deposits and sale proceeds add to the balance of the transaction's
    currency; withdrawals and purchases subtract from it. Balances are not
    clamped, so a negative balance stands for money that came from outside
    the ledger.
    """

    def __init__(self, reporting_currency: Currency = REPORTING_CURRENCY):
        self.reporting_currency = reporting_currency
        self._balances: defaultdict[Currency, Decimal] = defaultdict(Decimal)

    def apply(self, txn: Transaction) -> None:
        currency = txn.currency

        if txn.transaction_type == TransactionType.DEPOSIT:
            self._balances[currency] += txn.amount

        elif txn.transaction_type == TransactionType.WITHDRAW:
            self._balances[currency] -= txn.amount

        elif txn.transaction_type == TransactionType.BUY:
            self._balances[currency] -= txn.amount

        elif txn.transaction_type == TransactionType.SELL:
            self._balances[currency] += txn.amount

    def apply_all(self, transactions: Iterable[Transaction]) -> "CashLedger":
        for txn in transactions:
            self.apply(txn)
        return self

    def balance(self, currency: Currency) -> Decimal:
        return self._balances.get(currency, Decimal("0"))

    def balances(self) -> dict[Currency, Decimal]:
        """Balances by currency, leaving out currencies that net to zero."""
        return {curr: bal for curr, bal in self._balances.items() if bal != Decimal("0")}

    @property
    def foreign_balance(self) -> Decimal:
        """Raw balance of the non-reporting currency (USD), for display."""
        return sum(
            (bal for curr, bal in self._balances.items() if curr != self.reporting_currency),
            Decimal("0"),
        )

    def total_in_reporting_currency(self, exchange_rate: Union[Decimal, int, float]) -> Decimal:
        """Sum of every balance converted into the reporting currency.

        Args:
            exchange_rate: Reporting currency per unit of foreign currency.
        """
        total = Decimal("0")
        for currency, balance in self._balances.items():
            total += to_reporting_currency(balance, currency, exchange_rate, self.reporting_currency)
        return total
