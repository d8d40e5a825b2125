#!/usr/bin/env python3
"""
Command-line entry point: import contract/procurement workbooks into the database.

Usage:
    python main.py [--db PATH] [--min-match N] [--strict] FILE...
"""

import argparse
import sys
import time

from loguru import logger

from config.logging_config import setup_logging
from config.settings import DATABASE_PATH, DEFAULT_MIN_MATCH_FIELDS, LOG_LEVEL, PROGRESS_POLL_SECONDS
from models.import_job import ImportSettings, ImportStatus, MatchMode
from services.database import Database
from services.import_coordinator import ImportCoordinator
from services.schema import create_schema
from services.seed_data import seed_defaults


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import contract and procurement spreadsheets")
    parser.add_argument('files', nargs='+', metavar='FILE', help=".xlsx or .xls workbooks to import")
    parser.add_argument('--db', default=DATABASE_PATH, help=f"SQLite database path (default: {DATABASE_PATH})")
    parser.add_argument('--min-match', type=int, default=DEFAULT_MIN_MATCH_FIELDS,
                        help="Minimum matched header fields for a sheet to be imported")
    parser.add_argument('--strict', action='store_true',
                        help="Also require every required field of the record type")
    parser.add_argument('--log-level', default=LOG_LEVEL, help="Log level (default: %(default)s)")
    parser.add_argument('--log-file', default=None, help="Optional log file name")
    return parser


def print_summary(job):
    print()
    print("=" * 60)
    print(f"Import {job.import_id}: {job.status.value}")
    print("=" * 60)
    print(f"Files:  {job.processed_files}/{job.total_files}")
    print(f"Sheets: {job.processed_sheets}/{job.total_sheets}")
    print(f"Rows:   {job.processed_rows} imported, {job.error_rows} with errors, {job.total_rows} total")
    if job.errors:
        print(f"\nIssues ({len(job.errors)}):")
        for issue in job.errors:
            print(f"  [{issue.scope.value}] {issue.message}")


def main(argv=None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return 0 if e.code == 0 else 2

    setup_logging(level=args.log_level, log_file=args.log_file)

    try:
        settings = ImportSettings(
            match_mode=MatchMode.STRICT if args.strict else MatchMode.FUZZY,
            min_match_fields=args.min_match,
        )
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    with Database(args.db) as db:
        create_schema(db)
        seed_defaults(db)

        coordinator = ImportCoordinator(db)
        import_id = coordinator.start_import(args.files, settings)

        last_step = None
        while True:
            job = coordinator.get_progress(import_id)
            if job.current_step != last_step:
                logger.info(f"[{job.progress_percent:3d}%] {job.current_step}")
                last_step = job.current_step
            if job.status.is_terminal:
                break
            time.sleep(PROGRESS_POLL_SECONDS)

        coordinator.join(import_id)
        print_summary(job)

    return 0 if job.status is ImportStatus.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
