#!/usr/bin/env python3
"""Command-line interface for njord."""

import argparse
import sys
from pathlib import Path
from typing import Any

import requests

from njord.config import (
    config_exists,
    get_client_credentials,
    get_redirect_url,
    get_selected_institutions,
    get_token,
    load_config,
    save_json_config,
    set_token,
)
from njord.ingest import (
    LinkError,
    RawPair,
    TransactionCollector,
    load_raw_transactions,
    sort_raw_transactions,
)
from njord.interactions import Oracle, SkipOracle, TerminalOracle
from njord.ledger import write_csv
from njord.matcher import TransferMatcher
from njord.nordigen import NordigenClient


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        description="Export bank transactions and collapse transfers between your own accounts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  njord --setup --country se
  njord -o ledger.csv
  njord -o ledger.csv --dry-run -v
  njord dump-1.json dump-2.json -o ledger.csv
  njord dump.json --non-interactive --format tsv -o ledger.tsv
  njord --agreements

Transfers:
  Two transactions on different accounts with opposite amounts in the same
  currency are a transfer. A single same-day pair is merged automatically;
  pairs up to 4 days apart (or several same-day ones) are shown for you to
  pick from.
        """,
    )

    parser.add_argument(
        "inputs",
        nargs="*",
        help="JSON dumps of aggregator accounts to read instead of fetching",
    )
    parser.add_argument(
        "-o",
        "--output",
        default="ledger.csv",
        help="Output CSV file (default: ledger.csv)",
    )
    parser.add_argument(
        "--format",
        choices=["csv", "tsv"],
        default="csv",
        help="Output format (default: csv)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.json file",
    )
    parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Never prompt; ambiguous transfers are left as separate transactions",
    )
    parser.add_argument(
        "--no-sort",
        action="store_true",
        help="Keep source order instead of sorting by date, account and id",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Match and report, but write neither the ledger nor the config",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output",
    )

    # Setup
    parser.add_argument(
        "--setup",
        action="store_true",
        help="Run interactive setup wizard to choose credentials and institutions",
    )
    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Show current configuration",
    )
    parser.add_argument(
        "--country",
        help="Two-letter country code to narrow the institution list during setup",
    )
    parser.add_argument(
        "--agreements",
        action="store_true",
        help="List end-user agreements and delete unaccepted ones",
    )

    return parser


def fetch_transactions(config: dict[str, Any], verbose: bool = False) -> list[RawPair]:
    """Fetch unseen transactions for every selected institution."""
    credentials = get_client_credentials(config)
    assert credentials is not None

    client = NordigenClient(
        credentials,
        token=get_token(config),
        redirect_url=get_redirect_url(config),
    )
    collector = TransactionCollector(client, config)
    pairs = collector.collect()

    for account_id, error in collector.errors:
        print(f"Warning: could not fetch account {account_id}: {error}", file=sys.stderr)
    if verbose:
        print(f"Read {collector.accounts} accounts", file=sys.stderr)

    return pairs


def run_agreements(config: dict[str, Any] | None, config_path: Path | None = None) -> int:
    """Manage end-user agreements; returns the exit code."""
    from njord.setup import manage_agreements

    credentials = get_client_credentials(config)
    if config is None or credentials is None:
        print("Error: No client credentials configured. Run 'njord --setup'.", file=sys.stderr)
        return 1

    client = NordigenClient(
        credentials,
        token=get_token(config),
        redirect_url=get_redirect_url(config),
    )
    try:
        manage_agreements(client)
    except requests.RequestException as e:
        print(f"Error talking to the aggregator: {e}", file=sys.stderr)
        return 1

    set_token(config, client.token)
    save_json_config(config, config_path)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Handle setup first (before loading config)
    if args.setup:
        from njord.setup import run_setup

        run_setup(config_path=args.config, country=args.country)
        return 0

    # JSON dumps are matched without touching the config
    config: dict[str, Any] | None = None
    if args.show_config or args.agreements or not args.inputs:
        try:
            config = load_config(args.config)
        except (OSError, ValueError) as e:
            print(f"Error reading config: {e}", file=sys.stderr)
            return 1

    if args.agreements:
        return run_agreements(config, args.config)

    if args.show_config:
        from njord.setup import show_current_config

        if config:
            show_current_config(config)
        else:
            print("No configuration found.")
            print("Run 'njord --setup' to create one.")
        return 0

    # Collect raw transactions
    if args.inputs:
        try:
            pairs = load_raw_transactions(Path(p) for p in args.inputs)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"Read {len(args.inputs)} files", file=sys.stderr)
    else:
        if not config_exists() and args.config is None:
            print("Welcome to njord!")
            print("\nNo configuration found. To set up, run:")
            print("  njord --setup --country <your country code>")
            print("\nOr match transactions from JSON dumps:")
            print("  njord dump.json -o ledger.csv")
            return 1

        if config is None or get_client_credentials(config) is None:
            print("Error: No client credentials configured. Run 'njord --setup'.",
                  file=sys.stderr)
            return 1
        if not get_selected_institutions(config):
            print("Error: No institutions selected. Run 'njord --setup'.", file=sys.stderr)
            return 1

        try:
            pairs = fetch_transactions(config, verbose=args.verbose)
        except LinkError as e:
            print(f"Error linking accounts: {e}", file=sys.stderr)
            return 1
        except requests.RequestException as e:
            print(f"Error talking to the aggregator: {e}", file=sys.stderr)
            return 1

    if not args.no_sort:
        pairs = sort_raw_transactions(pairs)

    print(f"Found {len(pairs)} new transactions", file=sys.stderr)

    # Match transfers
    oracle: Oracle = SkipOracle() if args.non_interactive else TerminalOracle()
    matcher = TransferMatcher(oracle)
    ledger = matcher.match(pairs)

    print(f"Matched {matcher.transfers} transfers", file=sys.stderr)
    if args.non_interactive:
        if matcher.declined:
            print(f"  Left {matcher.declined} ambiguous transfers unmatched", file=sys.stderr)
    elif matcher.prompted:
        print(f"  Asked about {matcher.prompted}, skipped {matcher.declined}", file=sys.stderr)

    if args.verbose:
        for tx in ledger:
            print(f"  {tx}", file=sys.stderr)

    if args.dry_run:
        print(f"\nDry run - would write {len(ledger)} rows to {args.output}", file=sys.stderr)
        return 0

    # Write output
    output_path = Path(args.output)
    delimiter = "\t" if args.format == "tsv" else ","
    rows = write_csv(ledger, output_path, delimiter)
    print(f"Wrote {rows} rows to {output_path}", file=sys.stderr)

    # Remember what was exported only once the ledger is on disk
    if not args.inputs and config is not None:
        saved = save_json_config(config, args.config)
        if args.verbose:
            print(f"Updated {saved}", file=sys.stderr)

    return 0


if __name__ == "__main__":
    sys.exit(main())
