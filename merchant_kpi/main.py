"""Command line interface for merchant-kpi."""
from __future__ import annotations

import argparse
import csv
import dataclasses
import logging
from contextlib import closing
from datetime import date
from pathlib import Path
from typing import Iterable, Sequence

from . import database, reporting, settings
from .importer import import_csv_text
from .repository import MerchantDataRepository
from .settings import ImportOptions, MONTH_SEPARATORS

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

REPORT_HEADERS = {
    "monthly": ["date", "tpt", "tpv"],
    "pillars": ["pillar", "tpt", "tpv"],
    "merchants": ["brand_id", "merchant_name", "tpt", "tpv"],
}


def _open_connection(db_path: Path):
    if not db_path.exists():
        database.init_db(db_path)
    conn = database.get_connection(db_path)
    database.run_migrations(conn)
    return conn


def _print_table(headers: Sequence[str], rows: Sequence[Sequence[object]]) -> None:
    if not rows:
        print("(no data)")
        return
    widths = [len(header) for header in headers]
    for row in rows:
        for idx, value in enumerate(row):
            widths[idx] = max(widths[idx], len(f"{value}"))
    header_line = " | ".join(header.ljust(widths[idx]) for idx, header in enumerate(headers))
    separator = "-+-".join("-" * widths[idx] for idx in range(len(headers)))
    print(header_line)
    print(separator)
    for row in rows:
        print(" | ".join(str(value).ljust(widths[idx]) for idx, value in enumerate(row)))


def init_db_command(args: argparse.Namespace) -> None:
    database.init_db(args.db)
    print(f"Database ready at {args.db}")


def import_command(args: argparse.Namespace) -> None:
    options = ImportOptions.from_env()
    overrides = {}
    if args.month_separator:
        overrides["month_separator"] = args.month_separator
    if args.batch_size:
        overrides["batch_size"] = args.batch_size
    if args.unknown_month:
        overrides["unknown_month"] = args.unknown_month
    options = dataclasses.replace(options, **overrides)

    content = args.path.read_text(encoding="utf-8")
    with closing(_open_connection(args.db)) as conn:
        result = import_csv_text(
            MerchantDataRepository(conn),
            content,
            clear_existing=args.clear_existing,
            options=options,
        )
    print(
        f"Imported {result.imported} records "
        f"({result.duplicates_skipped} duplicates, {result.invalid_skipped} invalid months skipped"
        f"{', existing data cleared' if result.cleared else ''})"
    )


def report_command(args: argparse.Namespace) -> None:
    with closing(_open_connection(args.db)) as conn:
        if args.kind == "monthly":
            rows = reporting.monthly_totals(
                conn, pillar=args.pillar, start=args.start, end=args.end
            )
        elif args.kind == "pillars":
            rows = reporting.pillar_breakdown(conn, start=args.start, end=args.end)
        else:
            rows = reporting.top_merchants(
                conn, limit=args.limit, pillar=args.pillar, start=args.start, end=args.end
            )

    headers = REPORT_HEADERS[args.kind]
    if args.output:
        with Path(args.output).open("w", newline="", encoding="utf-8") as fh:
            writer = csv.writer(fh)
            writer.writerow(headers)
            writer.writerows(rows)
        print(f"Report written to {args.output}")
    else:
        _print_table(headers, rows)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Merchant TPT/TPV import and reporting console")
    parser.add_argument(
        "--db",
        type=Path,
        default=Path(settings.database_path()),
        help=f"Location of the SQLite database (defaults to ${settings.DB_PATH_ENV})",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Initialise the database")
    init_parser.set_defaults(func=init_db_command)

    import_parser = subparsers.add_parser("import", help="Import a semicolon-delimited merchant export")
    import_parser.add_argument("path", type=Path, help="Path to the CSV export")
    import_parser.add_argument(
        "--clear-existing",
        action="store_true",
        help="Delete every stored row before importing",
    )
    import_parser.add_argument(
        "--month-separator",
        choices=list(MONTH_SEPARATORS),
        help="Separator used in month tokens such as jan_25 or jan-25",
    )
    import_parser.add_argument("--batch-size", type=int, help="Records per insert batch")
    import_parser.add_argument(
        "--unknown-month",
        choices=list(settings.UNKNOWN_MONTH_POLICIES),
        help="Skip rows with unparseable months or fail the import",
    )
    import_parser.set_defaults(func=import_command)

    report_parser = subparsers.add_parser("report", help="Print an aggregated report")
    report_parser.add_argument("kind", choices=sorted(REPORT_HEADERS), help="Report to generate")
    report_parser.add_argument("--pillar", help="Filter by pillar")
    report_parser.add_argument("--start", type=date.fromisoformat, help="First month (YYYY-MM-DD)")
    report_parser.add_argument("--end", type=date.fromisoformat, help="Last month (YYYY-MM-DD)")
    report_parser.add_argument("--limit", type=int, default=10, help="Rows for the merchants report")
    report_parser.add_argument("--output", help="Optional path to write CSV output")
    report_parser.set_defaults(func=report_command)

    return parser


def main(argv: Iterable[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format=LOG_FORMAT)
    args.func(args)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
