from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Union

import json
import os
import warnings
from zipfile import BadZipFile

import pandas as pd
from openpyxl import Workbook
from openpyxl.utils.exceptions import InvalidFileException

from .currency import Currency

# Column order used by spreadsheet exports; matches the store's record keys.
RECORD_COLUMNS = [
    "id", "date", "assetId", "assetName", "type", "quantity",
    "amount", "currency", "memo", "createdAt", "market",
]


class TransactionType(Enum):
    """Kinds of investment ledger entries."""

    BUY = "BUY"
    SELL = "SELL"
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"

    @classmethod
    def parse(cls, label: str) -> "TransactionType":
        """Parse an English name or the Korean label used by the spreadsheet.

        Args:
            label: e.g. ``"BUY"``, ``"buy"`` or ``"매수"``.

        Raises:
            ValueError: If the label is not recognised.
        """
        text = str(label).strip()
        if text in KOREAN_LABELS:
            return KOREAN_LABELS[text]
        try:
            return cls(text.upper())
        except ValueError:
            raise ValueError(f"Unknown transaction type: {label!r}") from None

    @property
    def korean_label(self) -> str:
        return {v: k for k, v in KOREAN_LABELS.items()}[self]


KOREAN_LABELS = {
    "매수": TransactionType.BUY,
    "매도": TransactionType.SELL,
    "입금": TransactionType.DEPOSIT,
    "출금": TransactionType.WITHDRAW,
}

CASH_TYPES = frozenset({TransactionType.DEPOSIT, TransactionType.WITHDRAW})


class LedgerRecordError(ValueError):
    """Raised when a raw ledger row cannot be turned into a Transaction."""

    def __init__(self, message: str, record: dict[str, Any] | None = None):
        super().__init__(message)
        self.record = record


@dataclass(frozen=True)
class Transaction:
    """A single investment ledger entry.

    ``quantity`` and ``amount`` are magnitudes; whether money or units flow
    in or out is decided by ``transaction_type`` alone.
    """

    asset_id: str
    asset_name: str
    date: date
    transaction_type: TransactionType
    quantity: Decimal
    amount: Decimal
    currency: Currency = Currency.KRW
    market: str = ""
    record_id: str = ""
    memo: str = ""
    created_at: str = ""

    def __post_init__(self):
        if self.quantity < 0:
            raise ValueError(f"quantity must be non-negative, got {self.quantity}")
        if self.amount < 0:
            raise ValueError(f"amount must be non-negative, got {self.amount}")

    @property
    def is_cash_move(self) -> bool:
        return self.transaction_type in CASH_TYPES

    @property
    def unit_price(self) -> Decimal:
        """Amount paid or received per unit, 0 for cash moves."""
        if self.quantity == 0:
            return Decimal("0")
        return self.amount / self.quantity


def _parse_decimal(value: Any, field: str, record: dict[str, Any]) -> Decimal:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return Decimal("0")
    text = str(value).strip().replace(",", "")
    if text == "":
        return Decimal("0")
    try:
        number = Decimal(text)
    except InvalidOperation:
        raise LedgerRecordError(f"{field} is not numeric: {value!r}", record) from None
    if not number.is_finite():
        raise LedgerRecordError(f"{field} is not finite: {value!r}", record)
    return number


def _parse_date(value: Any, record: dict[str, Any]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    try:
        # Accept "YYYY-MM-DD" as well as full ISO timestamps.
        return date.fromisoformat(text[:10])
    except ValueError:
        raise LedgerRecordError(f"date is not ISO formatted: {value!r}", record) from None


def _text(value: Any) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def transaction_from_record(record: dict[str, Any]) -> Transaction:
    """Build a Transaction from a raw store row.

    Args:
        record: Row keyed by the store's column names (``assetId``,
            ``amount``, ...). Numbers may be strings with thousands separators.

    Returns:
        The parsed Transaction.

    Raises:
        LedgerRecordError: If the date, type, currency or a numeric field
            cannot be parsed, or a numeric field is negative.
    """
    try:
        transaction_type = TransactionType.parse(_text(record.get("type")))
    except ValueError as e:
        raise LedgerRecordError(str(e), record) from None

    currency_text = _text(record.get("currency")).upper() or Currency.KRW.value
    try:
        currency = Currency(currency_text)
    except ValueError:
        raise LedgerRecordError(f"Unknown currency: {currency_text!r}", record) from None

    try:
        return Transaction(
            asset_id=_text(record.get("assetId")),
            asset_name=_text(record.get("assetName")),
            date=_parse_date(record.get("date"), record),
            transaction_type=transaction_type,
            quantity=_parse_decimal(record.get("quantity"), "quantity", record),
            amount=_parse_decimal(record.get("amount"), "amount", record),
            currency=currency,
            market=_text(record.get("market")),
            record_id=_text(record.get("id")),
            memo=_text(record.get("memo")),
            created_at=_text(record.get("createdAt")),
        )
    except LedgerRecordError:
        raise
    except ValueError as e:
        raise LedgerRecordError(str(e), record) from None


def transactions_from_records(
    records: list[dict[str, Any]],
    skip_invalid: bool = False,
    source: str = "ledger",
) -> list[Transaction]:
    """Convert raw store rows into Transactions, preserving ledger order.

    Args:
        records: Raw rows as returned by the store.
        skip_invalid: If True, drop malformed rows and warn once instead of
            raising on the first one.
        source: Name used in the warning message.

    Raises:
        LedgerRecordError: On the first malformed row when ``skip_invalid``
            is False.
    """
    transactions: list[Transaction] = []
    skipped = 0
    for record in records:
        try:
            transactions.append(transaction_from_record(record))
        except LedgerRecordError:
            if not skip_invalid:
                raise
            skipped += 1

    if skipped:
        warnings.warn(
            f"Skipped {skipped} malformed row(s) in '{source}'.",
            UserWarning
        )

    return transactions


def _format_number(value: Decimal) -> str:
    return format(value.normalize(), "f") if value != 0 else "0"


def transaction_to_record(txn: Transaction) -> dict[str, str]:
    """Inverse of ``transaction_from_record``; the type is written as its Korean label."""
    return {
        "id": txn.record_id,
        "date": txn.date.isoformat(),
        "assetId": txn.asset_id,
        "assetName": txn.asset_name,
        "type": txn.transaction_type.korean_label,
        "quantity": _format_number(txn.quantity),
        "amount": _format_number(txn.amount),
        "currency": txn.currency.value,
        "memo": txn.memo,
        "createdAt": txn.created_at,
        "market": txn.market,
    }


def _create_empty_ledger_excel(file_path: str) -> None:
    """Create an Excel file holding only the header row.

    Args:
        file_path: Path where the Excel file will be created.
    """
    wb = Workbook()
    ws = wb.active
    assert ws is not None
    for col, header in enumerate(RECORD_COLUMNS, start=1):
        ws.cell(row=1, column=col, value=header)
    wb.save(file_path)


def load_transactions_from_excel(
    file_path: str,
    create_if_missing: bool = False,
    skip_invalid: bool = False,
) -> list[Transaction]:
    """
    Load ledger transactions from an Excel export of the investments sheet.

    Args:
        file_path: Path to the Excel file.
        create_if_missing: If True and the file doesn't exist, create an empty
            file with headers and return no transactions.
        skip_invalid: If True, skip malformed rows with a warning.

    Returns:
        Transactions in sheet row order.

    Required columns: date, type, amount. Other columns from
    ``RECORD_COLUMNS`` are optional.

    Raises:
        FileNotFoundError: If the file is missing and not created.
        ValueError: If the file is not a readable workbook or lacks a
            required column.
    """
    if not os.path.exists(file_path):
        if create_if_missing:
            _create_empty_ledger_excel(file_path)
            return []
        raise FileNotFoundError(f"Ledger file not found: {file_path}")

    # Read everything as text so asset codes like "005930" keep their zeros.
    try:
        df = pd.read_excel(file_path, dtype=str)
    except (BadZipFile, InvalidFileException) as e:
        raise ValueError(f"Not a readable Excel workbook: {file_path} ({e})") from e

    if df.empty:
        return []

    required_columns = {"date", "type", "amount"}
    missing_columns = required_columns - set(df.columns)
    if missing_columns:
        raise ValueError(f"Missing required columns: {missing_columns}")

    records: list[dict[str, Any]] = df.to_dict(orient="records")  # type: ignore[assignment]
    return transactions_from_records(records, skip_invalid=skip_invalid, source=file_path)


def save_transactions_to_excel(transactions: list[Transaction], file_path: str) -> None:
    """
    Save transactions to an Excel file with one row per transaction.

    Args:
        transactions: Transactions to write, in ledger order.
        file_path: Path to the Excel file to write.
    """
    wb = Workbook()
    ws = wb.active
    assert ws is not None

    for col, header in enumerate(RECORD_COLUMNS, start=1):
        ws.cell(row=1, column=col, value=header)

    for row, txn in enumerate(transactions, start=2):
        record = transaction_to_record(txn)
        for col, header in enumerate(RECORD_COLUMNS, start=1):
            ws.cell(row=row, column=col, value=record[header])

    wb.save(file_path)


def load_transactions_from_json(
    file_path: str,
    skip_invalid: bool = False,
) -> list[Transaction]:
    """
    Load ledger transactions from a JSON file.

    Expected JSON structure (the store's list payload, or its ``data`` array):
        [
            {
                "date": "2024-01-15",
                "assetId": "005930",
                "assetName": "삼성전자",
                "type": "매수",
                "quantity": "10",
                "amount": "700000",
                "currency": "KRW",
                "market": "KR"
            },
            ...
        ]
    """
    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict) and "data" in data:
        data = data["data"]

    if not isinstance(data, list):
        raise ValueError("JSON file must contain a list of transactions")

    return transactions_from_records(data, skip_invalid=skip_invalid, source=file_path)


def save_transactions_to_json(transactions: list[Transaction], file_path: str) -> None:
    data = [transaction_to_record(txn) for txn in transactions]
    with open(file_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def make_transaction(
    asset_id: str,
    transaction_date: Union[date, str],
    transaction_type: TransactionType,
    quantity: Union[Decimal, int, float, str],
    amount: Union[Decimal, int, float, str],
    currency: Currency = Currency.KRW,
    asset_name: str | None = None,
    market: str = "",
) -> Transaction:
    """Convenience constructor that accepts plain numbers and ISO date strings."""
    if isinstance(transaction_date, str):
        transaction_date = date.fromisoformat(transaction_date)
    return Transaction(
        asset_id=asset_id,
        asset_name=asset_name if asset_name is not None else asset_id,
        date=transaction_date,
        transaction_type=transaction_type,
        quantity=Decimal(str(quantity)),
        amount=Decimal(str(amount)),
        currency=currency,
        market=market,
    )
