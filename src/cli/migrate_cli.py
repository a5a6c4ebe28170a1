"""
Command-line interface for legacy record migration.

Usage:
    python -m src.cli.migrate_cli process --type <card|account|transaction|xref> --input <file_path> [options]
"""

import argparse
import json
import os
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from src.batch.pipeline import MigrationPipeline, PipelinePorts
from src.core.models import RecordType
from src.core.settings import MigrationSettings
from src.observability.logger import configure_logging, get_logger
from src.observability.metrics import start_metrics_server
from src.warehouse.audit import JobRunWriter, QuarantineWriter
from src.warehouse.connection import DatabaseConnectionPool
from src.warehouse.inserts import PostgresUnitOfWork
from src.warehouse.lookups import PostgresLookups
from src.warehouse.memory_store import InMemoryWarehouse
from src.warehouse.partitions import PostgresPartitionManager


logger = get_logger(__name__)


def build_postgres_ports(pool: DatabaseConnectionPool) -> PipelinePorts:
    """
    Wire the PostgreSQL adapters into pipeline ports.

    Args:
        pool: Open database connection pool

    Returns:
        PipelinePorts backed by PostgreSQL
    """
    lookups = PostgresLookups(pool)
    return PipelinePorts(
        card_lookup=lookups,
        account_lookup=lookups,
        reference_lookup=lookups,
        xref_lookup=lookups,
        partition_manager=PostgresPartitionManager(pool),
        uow_factory=PostgresUnitOfWork(pool),
        quarantine_sink=QuarantineWriter(pool),
        job_store=JobRunWriter(pool),
    )


def load_settings(args) -> MigrationSettings:
    """Load YAML settings and apply command-line overrides."""
    if args.config and Path(args.config).exists():
        settings = MigrationSettings.from_yaml(args.config)
    else:
        if args.config:
            logger.warning(f"Configuration file not found, using defaults: {args.config}")
        settings = MigrationSettings()

    overrides = {}
    if args.chunk_size is not None:
        overrides["chunk_size"] = args.chunk_size
    if args.workers is not None:
        overrides["max_workers"] = args.workers
    if overrides:
        settings = MigrationSettings.model_validate({**settings.model_dump(), **overrides})
    return settings


def install_signal_handlers(pipeline: MigrationPipeline) -> dict:
    """
    Route SIGINT/SIGTERM to pipeline cancellation.

    Returns:
        The previous handlers, keyed by signal number
    """

    def handle(signum, _frame):
        logger.warning(f"Received signal {signum}, finishing in-flight chunks")
        pipeline.cancel()

    return {sig: signal.signal(sig, handle) for sig in (signal.SIGINT, signal.SIGTERM)}


def print_summary(summary: dict) -> None:
    print("=" * 60)
    print(f"MIGRATION {summary['status'].upper()}")
    print("=" * 60)
    print(f"Job:          {summary['job_id']}")
    print(f"Record type:  {summary['record_type']}")
    print(f"Source file:  {summary['source_file']}")
    print(f"Total seen:   {summary.get('total_seen', 0)}")
    print(f"Succeeded:    {summary.get('succeeded', 0)}")
    print(f"Skipped:      {summary.get('skipped', 0)}")
    print(f"Failed fatal: {summary.get('failed_fatal', 0)}")
    if summary.get("resumed_from"):
        print(f"Resumed from: {summary['resumed_from']}")
        print(f"Already loaded: {summary.get('already_loaded', 0)}")

    skipped_by_kind = summary.get("skipped_by_kind", {})
    if any(skipped_by_kind.values()):
        print("Skipped by kind:")
        for kind, count in skipped_by_kind.items():
            print(f"  {kind}: {count}")

    skip_reasons = summary.get("skip_reasons", {})
    if skip_reasons:
        print("Skip reasons:")
        for reason, count in sorted(skip_reasons.items(), key=lambda item: -item[1]):
            print(f"  {count:>6}  {reason}")

    if "failure_point" in summary:
        print("Failure point:")
        print(f"  {json.dumps(summary['failure_point'])}")
    print("=" * 60)


def process_command(args) -> int:
    """
    Execute migration command.

    Args:
        args: Command-line arguments

    Returns:
        Process exit code
    """
    logger.info(f"Starting {args.type} migration")
    logger.info(f"Input file: {args.input}")

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input file not found: {args.input}")
        return 1

    settings = load_settings(args)

    if args.metrics_port:
        start_metrics_server(args.metrics_port)
        logger.info(f"Metrics server listening on port {args.metrics_port}")

    pool = None
    if args.dry_run:
        logger.info("DRY RUN MODE: No data will be written to database")
        store = InMemoryWarehouse.from_seed_file(args.seed) if args.seed else InMemoryWarehouse()
        ports = PipelinePorts.from_store(store)
    else:
        logger.info("Initializing database connection...")
        pool_size = max(10, settings.max_workers + 2)
        database_url = args.database_url or os.getenv("DATABASE_URL")
        if database_url:
            pool = DatabaseConnectionPool.from_url(database_url, max_size=pool_size)
        else:
            pool = DatabaseConnectionPool(
                host=args.db_host,
                port=args.db_port,
                database=args.db_name,
                user=args.db_user,
                password=args.db_password,
                max_size=pool_size,
            )
        pool.open()
        ports = build_postgres_ports(pool)

    previous_handlers = {}
    try:
        pipeline = MigrationPipeline(
            record_type=args.type,
            ports=ports,
            settings=settings,
            validation_rules_path=args.validation_rules,
        )
        previous_handlers = install_signal_handlers(pipeline)

        job = pipeline.run(input_path, resume_job_id=args.resume)
        print_summary(job.summary())

        if args.dry_run:
            logger.info("DRY RUN: No data was written to the database")

        return 0 if job.succeeded else 1

    except Exception as e:
        logger.error(f"Error during migration: {e}", exc_info=True)
        return 1
    finally:
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)
        if pool is not None:
            pool.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="CardDemo legacy record migration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Migrate accounts, then cards, then card cross-references, then transactions
  python -m src.cli.migrate_cli process --type account --input data/acctdata.txt
  python -m src.cli.migrate_cli process --type card --input data/carddata.txt
  python -m src.cli.migrate_cli process --type xref --input data/cardxref.txt
  python -m src.cli.migrate_cli process --type transaction --input data/dailytran.txt

  # Tune chunking and concurrency
  python -m src.cli.migrate_cli process --type transaction --input data/dailytran.txt \\
      --chunk-size 5000 --workers 8

  # Resume a failed job once the cause is fixed (same file, same --chunk-size)
  python -m src.cli.migrate_cli process --type transaction --input data/dailytran.txt \\
      --resume 5b0f6a8e-1f77-4a8b-9d55-0c1f9f2f8a11

  # Dry run against an in-memory store seeded with reference data
  python -m src.cli.migrate_cli process --type card --input data/carddata.txt \\
      --dry-run --seed config/seed.example.yaml
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    process_parser = subparsers.add_parser("process", help="Migrate a legacy file")
    process_parser.add_argument(
        "--type",
        required=True,
        choices=[t.value for t in RecordType],
        help="Legacy record type of the input file"
    )
    process_parser.add_argument(
        "--input",
        required=True,
        help="Path to fixed-width input file"
    )
    process_parser.add_argument(
        "--config",
        default="config/migration.yaml",
        help="Path to migration settings YAML file"
    )
    process_parser.add_argument(
        "--validation-rules",
        default=None,
        help="Path to validation rules YAML file (built-in rules when omitted)"
    )
    process_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run against an in-memory store without touching the database"
    )
    process_parser.add_argument(
        "--seed",
        default=None,
        help="Seed YAML for --dry-run (reference codes, accounts, cards, xrefs)"
    )
    process_parser.add_argument(
        "--resume",
        default=None,
        metavar="JOB_ID",
        help="Resume a failed or cancelled job, skipping the chunks it committed"
    )
    process_parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Records per atomic chunk (overrides config)"
    )
    process_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Concurrent chunk workers (overrides config)"
    )
    process_parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port"
    )
    process_parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: LOG_LEVEL env var or INFO)"
    )
    process_parser.add_argument(
        "--log-format",
        default="json",
        choices=["json", "text"],
        help="Log output format (default: json)"
    )

    # Database connection arguments (fall back to DB_* env vars)
    process_parser.add_argument("--db-host", default=None, help="Database host")
    process_parser.add_argument("--db-port", type=int, default=None, help="Database port")
    process_parser.add_argument("--db-name", default=None, help="Database name")
    process_parser.add_argument("--db-user", default=None, help="Database user")
    process_parser.add_argument("--db-password", default=None, help="Database password")
    process_parser.add_argument(
        "--database-url",
        default=None,
        help="postgresql:// URL; overrides the --db-* options (env: DATABASE_URL)"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(level=args.log_level, format_type=args.log_format)

    if args.command == "process":
        return process_command(args)
    return 1


if __name__ == "__main__":
    sys.exit(main())
