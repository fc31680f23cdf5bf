"""Tests for the report subcommand."""

import argparse
import json
from decimal import Decimal
from pathlib import Path

import pytest

from diary.cli import report
from diary.currency import Currency
from diary.ledger import TransactionType, make_transaction, save_transactions_to_json


def _args(**overrides) -> argparse.Namespace:
    defaults = {
        "filename": None,
        "sheets": False,
        "exchange_rate": None,
        "price": None,
        "offline": True,
        "skip_invalid": False,
        "json": False,
    }
    defaults.update(overrides)
    return argparse.Namespace(**defaults)


@pytest.fixture
def ledger_file(tmp_path: Path) -> str:
    path = tmp_path / "ledger.json"
    save_transactions_to_json([
        make_transaction("", "2024-01-01", TransactionType.DEPOSIT, 0, 500000),
        make_transaction("005930", "2024-01-02", TransactionType.BUY, 3, 210000, market="KR"),
        make_transaction("AAPL", "2024-01-03", TransactionType.BUY, 1, 180, Currency.USD, market="US"),
    ], str(path))
    return str(path)


def test_parse_price_overrides():
    assert report.parse_price_overrides(["005930=71,000", "AAPL = 195.5"]) == {
        "005930": Decimal("71000"),
        "AAPL": Decimal("195.5"),
    }
    assert report.parse_price_overrides(None) == {}


@pytest.mark.parametrize("entry", ["005930", "=100", "AAPL=abc"])
def test_parse_price_overrides_rejects_bad_entries(entry):
    with pytest.raises(ValueError):
        report.parse_price_overrides([entry])


def test_report_json_output(ledger_file, capsys):
    """Offline report with manual prices and rate prints the summary as JSON."""
    args = _args(
        filename=ledger_file,
        exchange_rate="1,300",
        price=["005930=75000", "AAPL=200"],
        json=True,
    )

    assert report.run(args) == 0

    data = json.loads(capsys.readouterr().out)
    assert Decimal(data["total_value"]) == 3 * 75000 + 200 * 1300
    assert Decimal(data["total_cash"]) == 500000 - 210000 - 180 * 1300
    assert data["exchange_rate"] == "1300"
    assert data["missing_prices"] == []
    assert [h["asset_id"] for h in data["holdings"]] == ["AAPL", "005930"]


def test_report_lists_assets_without_prices(ledger_file, capsys):
    """Held assets with no override are reported as missing when offline."""
    args = _args(filename=ledger_file, exchange_rate="1300", price=["AAPL=200"], json=True)

    assert report.run(args) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["missing_prices"] == ["005930"]


def test_report_table_output(ledger_file, capsys):
    """The rich report renders holdings and the summary panel."""
    args = _args(filename=ledger_file, exchange_rate="1300", price=["005930=75000", "AAPL=200"])

    assert report.run(args) == 0
    out = capsys.readouterr().out
    assert "Holdings" in out
    assert "Total portfolio" in out


def test_report_offline_without_rate_uses_default(ledger_file, capsys):
    args = _args(filename=ledger_file, json=True)

    with pytest.warns(UserWarning, match="default rate"):
        assert report.run(args) == 0
    assert Decimal(json.loads(capsys.readouterr().out)["exchange_rate"]) == 1300


def test_report_missing_file_returns_error(tmp_path, capsys):
    args = _args(filename=str(tmp_path / "nope.xlsx"), exchange_rate="1300")
    assert report.run(args) == 1
    assert "Error" in capsys.readouterr().out


def test_report_requires_a_source(capsys):
    assert report.run(_args(exchange_rate="1300")) == 1
    assert "--sheets" in capsys.readouterr().out


def test_report_sheets_requires_api_url(monkeypatch, capsys):
    monkeypatch.delenv("DIARY_API_URL", raising=False)
    assert report.run(_args(sheets=True, exchange_rate="1300")) == 1
    assert "DIARY_API_URL" in capsys.readouterr().out


def test_report_bad_exchange_rate(ledger_file, capsys):
    assert report.run(_args(filename=ledger_file, exchange_rate="abc")) == 1
    assert "Exchange rate is not a number" in capsys.readouterr().out


def test_report_corrupt_workbook_returns_error(tmp_path, capsys):
    """A file that looks like a zip but is not a workbook is reported, not raised."""
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"PK\x03\x04 this is not a workbook")

    assert report.run(_args(filename=str(path), exchange_rate="1300")) == 1
    assert "Not a readable Excel workbook" in capsys.readouterr().out
