#!/usr/bin/env python3
"""Report subcommand - Display portfolio holdings and valuation summary."""

import json
import os
import warnings
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

load_dotenv()

from ..currency import (
    Currency,
    FixedExchangeRateManager,
    FrankfurterExchangeRateManager,
)
from ..ledger import Transaction, load_transactions_from_excel, load_transactions_from_json
from ..portfolio import PortfolioSummary, calculate_portfolio, track_positions
from ..pricingdata import YFinancePricingDataManager, fetch_current_prices
from ..store import LedgerStoreError, SheetsApiLedgerStore, load_investment_transactions
from rich.console import Console
from rich.table import Table
from rich.panel import Panel


def format_currency(value: Decimal | float | None, currency: Currency = Currency.KRW) -> str:
    """Format a monetary amount; KRW without decimals, USD with two.

    Args:
        value: Monetary amount to format.
        currency: Currency of the amount.

    Returns:
        Formatted string, or "N/A" if value is None.
    """
    if value is None:
        return "N/A"
    if currency == Currency.KRW:
        return f"₩{float(value):,.0f}"
    return f"${float(value):,.2f}"


def format_rate(value: Decimal) -> str:
    """Format a percentage with sign and rich colour."""
    if value >= 0:
        return f"[green]+{value:.2f}%[/green]"
    return f"[red]{value:.2f}%[/red]"


def parse_price_overrides(entries: list[str] | None) -> dict[str, Decimal]:
    """Parse ``ASSET=PRICE`` command line entries.

    Raises:
        ValueError: If an entry is not of the form ``ASSET=PRICE``.
    """
    prices: dict[str, Decimal] = {}
    for entry in entries or []:
        asset_id, sep, raw_price = entry.partition("=")
        if not sep or not asset_id.strip():
            raise ValueError(f"Price override must look like ASSET=PRICE, got '{entry}'")
        try:
            prices[asset_id.strip()] = Decimal(raw_price.strip().replace(",", ""))
        except InvalidOperation:
            raise ValueError(f"Price override for '{asset_id}' is not a number: '{raw_price}'") from None
    return prices


def register_subcommand(subparsers):
    """Register the report subcommand with the argument parser.

    Args:
        subparsers: The argparse subparsers action to add the command to.
    """
    parser = subparsers.add_parser(
        "report",
        help="Display portfolio holdings report",
        description="Value the investment ledger and display holdings, cash and profit.",
    )
    parser.add_argument("filename", nargs="?", help="Path to an Excel or JSON ledger export")
    parser.add_argument(
        "--sheets",
        action="store_true",
        help="Read the ledger from the sheets API (requires DIARY_API_URL env var)",
    )
    parser.add_argument(
        "--exchange-rate",
        "-x",
        default=os.getenv("DIARY_EXCHANGE_RATE"),
        help="KRW per USD; fetched live when omitted (env: DIARY_EXCHANGE_RATE)",
    )
    parser.add_argument(
        "--price",
        "-p",
        action="append",
        metavar="ASSET=PRICE",
        help="Current price override in the asset's currency (repeatable)",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Do not fetch prices or exchange rates; use overrides only",
    )
    parser.add_argument(
        "--skip-invalid",
        action="store_true",
        help="Skip malformed ledger rows instead of failing",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the summary as JSON",
    )
    parser.set_defaults(func=run)


def load_ledger(args) -> list[Transaction]:
    """Load transactions from the file or store selected on the command line."""
    if args.sheets:
        api_url = os.getenv("DIARY_API_URL")
        if not api_url:
            raise ValueError("DIARY_API_URL environment variable not set")
        return load_investment_transactions(SheetsApiLedgerStore(api_url))

    if not args.filename:
        raise ValueError("Either a ledger file or --sheets is required")

    if args.filename.lower().endswith(".json"):
        return load_transactions_from_json(args.filename, skip_invalid=args.skip_invalid)
    return load_transactions_from_excel(args.filename, skip_invalid=args.skip_invalid)


def resolve_exchange_rate(args) -> Decimal:
    """Manual rate if given, otherwise the live USD/KRW rate (or the default when offline)."""
    if args.exchange_rate:
        try:
            return FixedExchangeRateManager(str(args.exchange_rate).replace(",", "")).get_reporting_rate()
        except InvalidOperation:
            raise ValueError(f"Exchange rate is not a number: '{args.exchange_rate}'") from None
    if args.offline:
        warnings.warn("No exchange rate given in offline mode; using the default rate.", UserWarning)
        return FixedExchangeRateManager().get_reporting_rate()
    return FrankfurterExchangeRateManager().get_reporting_rate()


def resolve_prices(args, transactions: list[Transaction]) -> tuple[dict[str, Decimal], list[str]]:
    """Current prices for every held asset; overrides win over live quotes."""
    overrides = parse_price_overrides(args.price)
    held = [
        (asset_id, state.market)
        for asset_id, state in track_positions(transactions).items()
        if state.is_held and asset_id not in overrides
    ]
    if args.offline:
        return overrides, [asset_id for asset_id, _ in held]

    prices, failed = fetch_current_prices(held, YFinancePricingDataManager())
    prices.update(overrides)
    return prices, failed


def print_summary(console: Console, summary: PortfolioSummary, missing_prices: list[str]):
    holdings_table = Table(title="Holdings")
    holdings_table.add_column("Asset", style="cyan", justify="left")
    holdings_table.add_column("Quantity", style="magenta", justify="right")
    holdings_table.add_column("Avg → Current Price", justify="right")
    holdings_table.add_column("Buy Range", justify="right")
    holdings_table.add_column("Invested (KRW)", style="yellow", justify="right")
    holdings_table.add_column("Value (KRW)", style="green", justify="right")
    holdings_table.add_column("Profit (KRW)", justify="right")
    holdings_table.add_column("Rate", justify="right")

    for h in summary.holdings:
        current = format_currency(h.current_price, h.currency) if h.current_price else "N/A"
        holdings_table.add_row(
            f"{h.asset_name} ({h.asset_id})" if h.asset_name and h.asset_name != h.asset_id else h.asset_id,
            f"{h.quantity:,f}",
            f"[yellow]{format_currency(h.average_price, h.currency)}[/yellow] → {current}",
            f"{format_currency(h.min_buy_price, h.currency)} ~ {format_currency(h.max_buy_price, h.currency)}",
            format_currency(h.invested),
            format_currency(h.current_value),
            format_currency(h.unrealized_profit),
            format_rate(h.profit_rate),
        )

    console.print(holdings_table)

    exposure_table = Table(title="Currency Exposure (holdings only)")
    exposure_table.add_column("Currency", style="cyan")
    exposure_table.add_column("Value (KRW)", style="yellow", justify="right")
    exposure_table.add_column("Share", justify="right")
    for currency, exposure in summary.currency_exposure.items():
        exposure_table.add_row(currency.value, format_currency(exposure.amount), f"{exposure.percentage:.1f}%")
    console.print(exposure_table)

    lines = [
        f"Holdings value: {format_currency(summary.total_value)}",
        f"Cash: {format_currency(summary.total_cash)} (USD {format_currency(summary.cash_foreign, Currency.USD)})",
        f"[bold green]Total portfolio: {format_currency(summary.total_portfolio_value)}[/bold green]",
        f"Total invested: {format_currency(summary.total_invested)}",
        f"Realized profit: {format_currency(summary.realized_profit)}",
        f"Unrealized profit: {format_currency(summary.unrealized_profit)}",
        f"Total profit: {format_currency(summary.total_profit)} ({format_rate(summary.total_profit_rate)})",
        f"Exchange rate: ₩{summary.exchange_rate:,.2f} / USD",
    ]
    if missing_prices:
        lines.append(f"[red]No current price for: {', '.join(missing_prices)}[/red]")
    console.print(Panel("\n".join(lines), title="Summary"))


def run(args):
    """Load the ledger, value it and print the report.

    Args:
        args: Parsed argparse namespace.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    try:
        transactions = load_ledger(args)
        exchange_rate = resolve_exchange_rate(args)
        prices, missing_prices = resolve_prices(args, transactions)
    except (FileNotFoundError, LedgerStoreError, ValueError) as e:
        # LedgerRecordError and ExchangeRateUnavailableError are ValueErrors
        print(f"Error: {e}")
        return 1

    summary = calculate_portfolio(transactions, prices, exchange_rate)

    if args.json:
        data = summary.to_dict()
        data["missing_prices"] = missing_prices
        print(json.dumps(data, indent=2, ensure_ascii=False))
        return 0

    print_summary(Console(), summary, missing_prices)
    return 0
