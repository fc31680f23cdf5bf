"""Version subcommand for the finance diary CLI."""

from importlib.metadata import PackageNotFoundError, version


def register_subcommand(subparsers):
    """Register the version subcommand with the argument parser.

    Args:
        subparsers: The argparse subparsers object to register with.
    """
    parser = subparsers.add_parser(
        "version",
        help="Display version information",
        description="Display the installed finance-diary version.",
    )
    parser.set_defaults(func=run)


def run(args):
    """Print the installed version.

    Returns:
        int: Exit code (0 for success).
    """
    try:
        ver = version("finance-diary")
    except PackageNotFoundError:
        ver = "unknown"

    print(f" Version: {ver}")
    return 0
