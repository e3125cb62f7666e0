"""
Command-line runner for the invoice filler.

Usage:
    python run_filler.py --network testnet --dry-run
    python run_filler.py --export outputs/outcomes.csv
"""
from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from invoice_filler.exceptions import ConfigurationError, FeedError
from invoice_filler.factory import build_orchestrator
from invoice_filler.models import CycleReport
from invoice_filler.normalizer import format_units
from invoice_filler.settings import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fill pending cross-chain invoices")
    parser.add_argument("--network", choices=["mainnet", "testnet"], help="Overrides NETWORK_TYPE")
    parser.add_argument("--dry-run", action="store_true", help="Record bridge and fill calls instead of sending them")
    parser.add_argument("--export", type=Path, help="Write cycle outcomes to this CSV file")
    parser.add_argument("--once", dest="once", action="store_true", default=True,
                        help="Run a single cycle and exit (default)")
    parser.add_argument("--loop", dest="once", action="store_false",
                        help="Keep running cycles instead of exiting after one")
    parser.add_argument("--interval", type=float, default=60.0, help="Seconds between cycles when looping")
    return parser.parse_args(argv)


def pretty_print_report(report: CycleReport) -> None:
    """Print a human-friendly summary of one cycle."""
    print("\n" + "=" * 60)
    print(f"CYCLE {report.cycle_id}")
    print("=" * 60)
    for outcome in report.outcomes:
        where = outcome.destination_chain or "-"
        via = f" via {outcome.source_chain}" if outcome.source_chain else ""
        print(f"  {outcome.intent_id}: {outcome.status.value} (chain {where}{via}) {outcome.reason}")
    print("\nSummary:")
    for status, count in report.summary().items():
        print(f"  {status}: {count}")
    print("\nWallet balances:")
    for asset, chains in report.balances.items():
        total = sum(chains.values())
        print(f"  {asset}: {format_units(total)}")
    print(f"\nDuration: {report.duration_sec:.2f}s")


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)

    try:
        settings = Settings.from_env(network=args.network)
    except ConfigurationError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logging.getLogger("run_filler").error(f"Invalid configuration: {e}")
        return 1

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    logger = logging.getLogger("run_filler")

    if args.dry_run:
        settings = replace(settings, dry_run=True)
    if args.export is not None:
        settings = replace(settings, export_csv=args.export)

    logger.info(f"Starting invoice filler on {settings.network} (dry_run={settings.dry_run})")

    try:
        orchestrator = build_orchestrator(settings)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    while True:
        try:
            report = orchestrator.run_cycle()
        except FeedError as e:
            logger.error(f"Cycle aborted: {e}")
            if args.once:
                return 1
        else:
            pretty_print_report(report)

        if args.once:
            return 0
        time.sleep(args.interval)


if __name__ == "__main__":
    sys.exit(main())
