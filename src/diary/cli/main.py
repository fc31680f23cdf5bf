#!/usr/bin/env python3
"""Main entry point for the finance diary CLI."""

import argparse
import sys


def main():
    """Parse CLI arguments and dispatch to the appropriate subcommand.

    Returns:
        int: Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="diary",
        description="Finance diary - investment portfolio valuation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  diary report ledger.xlsx                     Value the portfolio in an Excel export
  diary report --sheets                        Read the ledger from DIARY_API_URL
  diary report ledger.json -x 1385.5           Use a manual USD/KRW rate
  diary report ledger.xlsx -p 005930=71000     Override the price of one asset
        """,
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        help="Available commands",
    )

    # Import subcommand modules and register them
    from .report import register_subcommand as register_report
    from .version import register_subcommand as register_version

    register_report(subparsers)
    register_version(subparsers)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
