#!/usr/bin/env python3
"""CLI runner for the Alert & Monitoring Engine.

Usage:
    python -m alert_engine_src.runner --once                 # Run one scan cycle
    python -m alert_engine_src.runner --once --as-of 2025-03-01T08:00
    python -m alert_engine_src.runner --continuous           # Scan on an interval
    python -m alert_engine_src.runner --stats                # Show alert counts
    python -m alert_engine_src.runner --list-rules           # Show registered rules
"""

import argparse
import logging
import sys
from datetime import datetime

from .config import config
from .engine import AlertEngine
from .errors import DataIntegrityError
from .notifiers import ConsoleNotifier
from .rules import build_default_catalog

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: If True, use DEBUG level.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


def print_rules() -> None:
    catalog = build_default_catalog(config)
    print("=" * 60)
    print("REGISTERED RULES")
    print("=" * 60)
    for rule in catalog:
        print(f"  {rule.rule_id}")
        print(f"    Alert type: {rule.alert_type}")
        print(f"    Severity:   {rule.severity.value}")
        print(f"    Window:     {rule.window}")
        print(f"    Cooldown:   {rule.cooldown}")
        if rule.description:
            print(f"    Condition:  {rule.description}")
    print("=" * 60)


def print_scan_result(result) -> None:
    print("\n" + "=" * 60)
    print("SCAN SUMMARY")
    print("=" * 60)
    print(f"  As of:              {result.as_of.strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"  Patients scanned:   {result.patients_scanned}")
    print(f"  Alerts created:     {result.created}")
    print(f"  Suppressed:         {result.suppressed}")
    print(f"  Failed patients:    {result.failed}")
    print(f"  Rule failures:      {result.rule_failures}")
    print(f"  Recipient warnings: {result.recipient_warnings}")
    if result.cancelled:
        print(f"  Cancelled, skipped: {result.patients_skipped}")
    if result.error:
        print(f"  Error:              {result.error}")
    for failure in result.failures:
        print(f"    - {failure.patient_id}: {failure.error}")
    print("=" * 60)


def print_stats(engine: AlertEngine) -> None:
    stats = engine.store.get_stats()
    print("=" * 60)
    print("ALERT STATISTICS")
    print("=" * 60)
    for key, value in sorted(stats.items()):
        print(f"  {key:<22} {value}")
    print("=" * 60)


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Alert & Monitoring Engine - evaluate patient data and raise alerts"
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run a single scan cycle")
    mode.add_argument("--continuous", action="store_true", help="Run scan cycles on an interval")
    mode.add_argument("--stats", action="store_true", help="Show alert statistics")
    mode.add_argument("--list-rules", action="store_true", help="List registered rules")

    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help=f"Scan interval in seconds (default: {config.SCAN_INTERVAL_SECONDS})",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help=f"Parallel patient evaluations (default: {config.SCAN_MAX_WORKERS})",
    )
    parser.add_argument(
        "--as-of",
        type=datetime.fromisoformat,
        default=None,
        help="Evaluate as of this ISO timestamp (default: now)",
    )
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="Alert database path (default from config)",
    )
    parser.add_argument(
        "--api-url",
        type=str,
        default=None,
        help=f"Clinical service URL (default: {config.CLINICAL_API_BASE_URL})",
    )
    parser.add_argument("--quiet", action="store_true", help="Do not print each alert")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()
    setup_logging(args.verbose)

    if args.list_rules:
        print_rules()
        return 0

    if args.api_url:
        config.CLINICAL_API_BASE_URL = args.api_url

    try:
        engine = AlertEngine.from_config(
            db_path=args.db_path,
            notifier=ConsoleNotifier(quiet=args.quiet),
            max_workers=args.workers,
        )
    except DataIntegrityError as e:
        logger.critical(f"Rule catalog failed integrity check: {e}")
        return 2

    try:
        if args.stats:
            print_stats(engine)
        elif args.continuous:
            engine.scheduler.run_continuous(interval_seconds=args.interval)
        else:
            result = engine.run_scan_cycle(args.as_of)
            print_scan_result(result)
            return 1 if result.error else 0
    finally:
        engine.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
