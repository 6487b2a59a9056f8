"""
Database Health - CLI.

============================================================
RESPONSIBILITY
============================================================
One-shot load report for a single database.

- Loads configuration from YAML or environment (.env aware)
- Command-line flags override loaded settings
- Exit code reflects the verdict, for scripts and probes

============================================================
USAGE
============================================================
python -m database_health --url postgresql://app@db/app --vcpu-count 16
python -m database_health --config health.yaml --json

Exit codes:
  0  healthy
  1  unhealthy (load above threshold)
  2  configuration or setup error

============================================================
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

from .bindings import DEFAULT_DATABASE_NAME
from .cache import MemoryCache
from .config import ConfigurationStore
from .exceptions import DatabaseHealthError
from .health import DatabaseHealth
from .models import LoadSnapshot


EXIT_HEALTHY = 0
EXIT_UNHEALTHY = 1
EXIT_CONFIG_ERROR = 2


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="database-health",
        description="Report the load percentage of a relational database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  DATABASE_URL            Database URL when --url is omitted
  DB_HEALTH_VCPU_COUNT    vCPU count when --vcpu-count is omitted
  DB_HEALTH_THRESHOLD     Threshold when --threshold is omitted
        """
    )

    parser.add_argument(
        "--url",
        type=str,
        default=None,
        help="SQLAlchemy database URL (default: $DATABASE_URL)",
    )
    parser.add_argument(
        "--name",
        type=str,
        default=DEFAULT_DATABASE_NAME,
        help=f"Database identity used in the cache key (default: {DEFAULT_DATABASE_NAME})",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file",
    )
    parser.add_argument(
        "--vcpu-count",
        type=int,
        default=None,
        help="Provisioned vCPUs of the database server",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Highest healthy load percentage (default: 0.75)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )

    return parser


def build_store(args: argparse.Namespace) -> ConfigurationStore:
    """Load configuration, then apply command-line overrides."""
    if args.config is not None:
        store = ConfigurationStore.from_yaml(args.config)
    else:
        store = ConfigurationStore.from_env()

    overrides = {}
    if args.vcpu_count is not None:
        overrides["vcpu_count"] = args.vcpu_count
    if args.threshold is not None:
        overrides["threshold"] = args.threshold

    store.configure(cache=MemoryCache(maxsize=1), **overrides)
    return store


def print_report(snapshot: LoadSnapshot) -> None:
    """Print a human-readable report."""
    verdict = "HEALTHY" if snapshot.healthy else "UNHEALTHY"
    print("=" * 60)
    print(f"  Database:      {snapshot.database_name}")
    print(f"  Load:          {snapshot.load_pct:.1%}")
    print(f"  Threshold:     {snapshot.threshold:.1%}")
    print(f"  Max sessions:  {snapshot.max_healthy_sessions}")
    print(f"  Status:        {verdict}")
    print("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    load_dotenv()
    url = args.url or os.getenv("DATABASE_URL")
    if not url:
        print("Error: no database URL (use --url or set DATABASE_URL)", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        store = build_store(args)
        store.validate()
    except DatabaseHealthError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        engine = create_engine(url, pool_pre_ping=True)
    except (SQLAlchemyError, ImportError) as e:
        print(f"Error: cannot create engine: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        health = DatabaseHealth(store=store)
        health.bind(engine, args.name)
        snapshot = health.snapshot()
    except DatabaseHealthError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    finally:
        engine.dispose()

    if args.json:
        print(json.dumps(snapshot.to_dict(), indent=2))
    else:
        print_report(snapshot)

    return EXIT_HEALTHY if snapshot.healthy else EXIT_UNHEALTHY
