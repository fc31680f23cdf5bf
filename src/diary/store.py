"""Client for the spreadsheet-backed record store.

The store exposes each sheet as a logical table behind a small JSON API:
``GET ?sheet=<table>&action=list`` returns the rows, and ``POST`` with a body
of ``{"sheet", "action", ...record}`` creates, updates or deletes one. Every
response is an envelope ``{"success": bool, "data": ..., "error": str|None}``.
"""

from abc import ABC, abstractmethod
from typing import Any

import requests

from .ledger import Transaction, transactions_from_records

INVESTMENT_TABLE = "investments_transactions"


class LedgerStoreError(RuntimeError):
    """Raised when the record store rejects a request or cannot be reached."""


class LedgerStore(ABC):
    """Abstract list/create/update/delete access to logical tables."""

    @abstractmethod
    def list(self, table: str) -> list[dict[str, Any]]:
        raise NotImplementedError("This method should be overridden by subclasses.")

    @abstractmethod
    def create(self, table: str, record: dict[str, Any]) -> None:
        raise NotImplementedError("This method should be overridden by subclasses.")

    @abstractmethod
    def update(self, table: str, record: dict[str, Any]) -> None:
        raise NotImplementedError("This method should be overridden by subclasses.")

    @abstractmethod
    def delete(self, table: str, record_id: str) -> None:
        raise NotImplementedError("This method should be overridden by subclasses.")


class SheetsApiLedgerStore(LedgerStore):
    """LedgerStore talking to the sheets JSON API over HTTP."""

    def __init__(self, api_url: str, session: requests.Session | None = None, timeout: float = 10):
        """Initialize the client.

        Args:
            api_url: Endpoint of the sheets API (e.g. ``https://host/api/sheets``).
            session: HTTP session to use. Defaults to a new ``requests.Session``.
            timeout: Request timeout in seconds.
        """
        if not api_url:
            raise ValueError("api_url must not be empty")
        self.api_url = api_url
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def _unwrap(self, response: requests.Response) -> Any:
        try:
            payload = response.json()
        except ValueError:
            response.raise_for_status()
            raise LedgerStoreError(f"Store returned a non-JSON response (HTTP {response.status_code})")

        if not isinstance(payload, dict) or not payload.get("success"):
            error = payload.get("error") if isinstance(payload, dict) else None
            raise LedgerStoreError(f"Store request failed (HTTP {response.status_code}): {error or 'unknown error'}")
        return payload.get("data")

    def _post(self, body: dict[str, Any]) -> None:
        try:
            response = self.session.post(self.api_url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise LedgerStoreError(f"Store request failed: {e}") from e
        self._unwrap(response)

    def list(self, table: str) -> list[dict[str, Any]]:
        """Fetch every row of a table.

        Raises:
            LedgerStoreError: On network errors or an unsuccessful response.
        """
        try:
            response = self.session.get(
                self.api_url,
                params={"sheet": table, "action": "list"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise LedgerStoreError(f"Store request failed: {e}") from e

        data = self._unwrap(response)
        if data is None:
            return []
        if not isinstance(data, list):
            raise LedgerStoreError(f"Expected a list of rows for '{table}', got {type(data).__name__}")
        return data

    def create(self, table: str, record: dict[str, Any]) -> None:
        self._post({**record, "sheet": table, "action": "create"})

    def update(self, table: str, record: dict[str, Any]) -> None:
        if not record.get("id"):
            raise ValueError("update requires a record with an id")
        self._post({**record, "sheet": table, "action": "update"})

    def delete(self, table: str, record_id: str) -> None:
        self._post({"sheet": table, "action": "delete", "id": record_id})


def load_investment_transactions(store: LedgerStore, skip_invalid: bool = True) -> list[Transaction]:
    """
    Read the investment ledger from a store.

    Args:
        store: The record store.
        skip_invalid: If True (default), malformed rows are skipped with a
            warning rather than aborting the whole load.

    Returns:
        Transactions in sheet row order.
    """
    records = store.list(INVESTMENT_TABLE)
    return transactions_from_records(records, skip_invalid=skip_invalid, source=INVESTMENT_TABLE)
