"""
Command line entry point - copy one table from Postgres into SQLite
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError
from tqdm import tqdm

from .config import DEFAULT_BATCH_SIZE, SourceConfig, TargetConfig, TransferConfig, env_default
from .errors import MigrationCancelled, TransferError, VerificationMismatch
from .logging import configure_logging
from .pipeline import MigrationPipeline

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_VERIFICATION_FAILED = 3


class TqdmProgress:
    """Progress bar sized to the source row estimate"""

    def __init__(self, total: int, table: str):
        self.bar = tqdm(total=total or None, desc=table, unit="rows", file=sys.stderr)

    def increment(self) -> None:
        self.bar.update(1)

    def close(self) -> None:
        self.bar.close()


def ask_yes_no(prompt: str) -> bool:
    while True:
        try:
            answer = input(f"{prompt} (Y/N) ")
        except EOFError:
            return False
        answer = answer.strip().lower()
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="table-transfer",
        description="Migrate a table from PostgreSQL to SQLite",
    )
    parser.add_argument("--pg-url", default=env_default("PG_URL"),
                        help="Postgres connection string (i.e. postgres://localhost:5432/mydb), env PG_URL")
    parser.add_argument("--sqlite-file", default=env_default("SQLITE_FILE"),
                        help="Path to SQLite database file (i.e. mydatabase.db), env SQLITE_FILE")
    parser.add_argument("-t", "--table", default=env_default("TRANSFER_TABLE"),
                        help="Name of table to export, env TRANSFER_TABLE")
    parser.add_argument("--schema", default=None, help="Postgres schema of the table (default: current schema)")
    parser.add_argument("--ignore-columns", default="", help="Comma-separated list of columns to ignore")
    parser.add_argument("--confirm", action="store_true", help="Confirm prompts with Y, useful if used in script")
    parser.add_argument("--drop-table-if-exists", action="store_true",
                        help="DANGER: Drop target table if it already exists")
    parser.add_argument("--strict", action="store_true", help="Create the SQLite table in STRICT mode")
    parser.add_argument("--create-file", action="store_true", help="Create the SQLite file if it doesn't exist")
    parser.add_argument("--no-verify", dest="verify", action="store_false",
                        help="Skip comparing row counts after the transfer")
    parser.add_argument("--with-foreign-keys", action="store_true",
                        help="Show foreign key references in the schema listing")
    parser.add_argument("--batch-size", type=int,
                        default=env_default("TRANSFER_BATCH_SIZE", str(DEFAULT_BATCH_SIZE)),
                        help="Rows buffered between reading and inserting")
    parser.add_argument("--no-progress", dest="progress", action="store_false", help="Hide the progress bar")
    parser.add_argument("--log-level", default="WARNING", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-format", choices=["console", "json"], default="console")
    return parser


def error(message: str) -> None:
    print(f"❌ {message}", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    """Run a table migration, returning the process exit status"""
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_format, color=sys.stderr.isatty())

    missing = [flag for flag, value in (
        ("--pg-url", args.pg_url),
        ("--sqlite-file", args.sqlite_file),
        ("--table", args.table),
    ) if not value]
    if missing:
        error(f"Missing required settings: {', '.join(missing)}")
        return EXIT_FAILURE

    try:
        source_config = SourceConfig(url=args.pg_url, namespace=args.schema)
        target_config = TargetConfig(
            path=args.sqlite_file,
            create_if_missing=args.create_file,
            strict=args.strict,
            drop_table_if_exists=args.drop_table_if_exists,
        )
        transfer_config = TransferConfig(
            table=args.table,
            ignore_columns=args.ignore_columns,
            batch_size=args.batch_size,
            verify=args.verify,
            confirm=args.confirm,
            with_foreign_keys=args.with_foreign_keys,
        )
    except ValidationError as e:
        error(f"Invalid configuration: {e}")
        return EXIT_FAILURE

    progress_factory = None
    if args.progress:
        progress_factory = lambda estimate: TqdmProgress(estimate, transfer_config.table)  # noqa: E731

    try:
        pipeline = MigrationPipeline.connect(
            source_config,
            target_config,
            transfer_config,
            confirm=ask_yes_no,
            progress_factory=progress_factory,
            echo=print,
        )
        with pipeline:
            result = pipeline.run()
    except VerificationMismatch as e:
        error(str(e))
        return EXIT_VERIFICATION_FAILED
    except MigrationCancelled:
        error("Cancelled")
        return EXIT_FAILURE
    except TransferError as e:
        error(str(e))
        return EXIT_FAILURE

    print(f"✅ Transferred {result.rows_transferred:,} rows into {result.table_name} "
          f"in {result.elapsed_seconds:.2f}s")
    if result.verified:
        print(f"✅ Target row count verified: {result.verified_rows:,}")
    return EXIT_OK


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
