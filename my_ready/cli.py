"""CLI entry point for my-ready."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import datetime

from my_ready import __version__

# Exit codes
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_SYMPTOMS = 2

_FORMAT_EXT = {"json": ".json", "text": ".txt"}

_KNOWN_COMMANDS = {"scan", "trim", "keywords"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="my-ready",
        description="Scan a MySQL schema for values affected by NO PAD collations.",
    )
    parser.add_argument("--version", action="version", version=f"my-ready {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands (default: scan)")

    # -- scan --
    scan_parser = subparsers.add_parser(
        "scan", help="Find string values with trailing spaces in every table of a schema"
    )
    _add_connection_args(scan_parser)
    _add_scan_args(scan_parser)
    _add_output_args(scan_parser)
    scan_parser.add_argument("--verbose", "-v", action="store_true", help="Print progress")

    # -- trim --
    trim_parser = subparsers.add_parser(
        "trim", help="Rescan and print (or with --execute, run) TRIM updates"
    )
    _add_connection_args(trim_parser)
    _add_scan_args(trim_parser)
    trim_parser.add_argument(
        "--execute",
        action="store_true",
        help="Actually run the UPDATE statements (default: print them only)",
    )
    trim_parser.add_argument("--verbose", "-v", action="store_true", help="Print progress")

    # -- keywords --
    kw_parser = subparsers.add_parser(
        "keywords", help="List the deprecation keywords used to classify warnings"
    )
    kw_parser.add_argument("--config", "-c", help="Path to my-ready.yaml")
    kw_parser.add_argument(
        "--all", action="store_true", help="List every built-in keyword set"
    )

    return parser


def _add_connection_args(parser: argparse.ArgumentParser):
    grp = parser.add_argument_group("connection (falls back to DB_HOST, DB_PORT, DB_USER, ...)")
    grp.add_argument("--host", "-H", default=None, help="Database host (default: localhost)")
    grp.add_argument("--port", "-p", type=int, default=None, help="Database port (default: 3306)")
    grp.add_argument("--user", "-U", default=None, help="Database user")
    grp.add_argument("--password", "-W", default=None, help="Database password")
    grp.add_argument("--schema", "-d", default=None, help="Schema to scan (required, or DB_NAME)")


def _add_scan_args(parser: argparse.ArgumentParser):
    grp = parser.add_argument_group("scan")
    grp.add_argument("--config", "-c", help="Path to my-ready.yaml")
    grp.add_argument(
        "--sample-limit",
        type=int,
        default=None,
        help="Offending rows to sample per column (default: 5, 0 disables)",
    )
    grp.add_argument("--exclude-tables", help="Comma-separated list of tables to skip")
    grp.add_argument("--include-tables", help="Comma-separated list of the only tables to scan")


def _add_output_args(parser: argparse.ArgumentParser):
    grp = parser.add_argument_group("output")
    grp.add_argument(
        "--format",
        "-f",
        choices=["text", "json"],
        default="text",
        help="Report format (default: text)",
    )
    grp.add_argument("--output", "-o", help="Write the report to this file instead of stdout")


def _split(value: str | None) -> set[str] | None:
    if value is None:
        return None
    return {v.strip() for v in value.split(",") if v.strip()}


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None):
    parser = build_parser()

    # Default to "scan" when no subcommand is given but arguments are present
    raw_args = argv if argv is not None else sys.argv[1:]
    if raw_args and raw_args[0] not in _KNOWN_COMMANDS and raw_args[0] not in ("--version", "--help", "-h"):
        raw_args = ["scan"] + list(raw_args)
    elif not raw_args:
        raw_args = ["scan"]

    args = parser.parse_args(raw_args)

    if args.command == "keywords":
        sys.exit(_cmd_keywords(args))

    _configure_logging(args.verbose)
    if args.command == "scan":
        sys.exit(_cmd_scan(args))
    elif args.command == "trim":
        sys.exit(_cmd_trim(args))


def _resolve_settings(args):
    """Config file + environment + CLI. Raises ConfigurationError before any connection."""
    from my_ready.config import connection_from_env, load_config, merge_cli_with_config

    config = load_config(args.config)
    return merge_cli_with_config(
        config,
        connection_from_env(),
        host=args.host,
        port=args.port,
        user=args.user,
        password=args.password,
        schema=args.schema,
        sample_limit=args.sample_limit,
        cli_exclude=_split(args.exclude_tables),
        cli_include_only=_split(args.include_tables),
    )


def _open_connection(conn_cfg, autocommit: bool = True):
    """Connect or print a hint and return None."""
    import mysql.connector

    from my_ready.connection import connect

    try:
        return connect(conn_cfg, autocommit=autocommit)
    except mysql.connector.Error as e:
        error_msg = str(e).strip()
        print("Error: Could not connect to database.", file=sys.stderr)
        print(f"       {error_msg}", file=sys.stderr)
        errno = getattr(e, "errno", None)
        if errno == 1045:
            print("\nHint: Check the user and password (--user/--password or DB_USER/DB_PASSWORD).", file=sys.stderr)
        elif errno == 1049:
            print("\nHint: Check that the schema name is correct.", file=sys.stderr)
        elif errno in (2003, 2005) or "can't connect" in error_msg.lower():
            print(f"\nHint: Check that MySQL is running on {conn_cfg.host}:{conn_cfg.port}.", file=sys.stderr)
        return None


def _scan(args, autocommit: bool = True):
    """Shared by scan and trim. Returns (conn, report) or an exit code."""
    from my_ready.config import ConfigurationError
    from my_ready.scanner import IdentifierError, run_scan

    try:
        conn_cfg, scan_cfg = _resolve_settings(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("\nUsage:\n  DB_NAME=mydb DB_USER=user DB_PASSWORD=pass my-ready scan", file=sys.stderr)
        return EXIT_ERROR

    conn = _open_connection(conn_cfg, autocommit=autocommit)
    if conn is None:
        return EXIT_ERROR

    try:
        report = run_scan(
            conn,
            scan_cfg.schema,
            host=conn_cfg.host,
            port=conn_cfg.port,
            config=scan_cfg,
            verbose=args.verbose,
        )
    except IdentifierError as e:
        conn.close()
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except Exception as e:
        conn.close()
        print(f"Error during scan: {type(e).__name__}: {e}", file=sys.stderr)
        return EXIT_ERROR

    return conn, report


def _cmd_scan(args) -> int:
    outcome = _scan(args)
    if isinstance(outcome, int):
        return outcome
    conn, report = outcome
    conn.close()

    output = _render_report(report, args.format)
    _write_output(output, args, dbname=report.schema)
    return EXIT_OK if report.clean else EXIT_SYMPTOMS


def _cmd_trim(args) -> int:
    from my_ready.remediation import apply_trim, trim_statements

    outcome = _scan(args, autocommit=False)
    if isinstance(outcome, int):
        return outcome
    conn, report = outcome

    try:
        if not report.results:
            print("No trailing spaces found; nothing to trim.")
            return EXIT_OK if report.clean else EXIT_SYMPTOMS

        if not args.execute:
            print("-- Dry run. Re-run with --execute to apply:")
            for stmt in trim_statements(report):
                print(stmt)
            return EXIT_SYMPTOMS

        try:
            updated = apply_trim(conn, report.schema, report.results)
        except Exception as e:
            print(f"Error during trim: {type(e).__name__}: {e}", file=sys.stderr)
            return EXIT_ERROR
        for name, count in updated.items():
            print(f"Trimmed {count} rows in {name}")
        return EXIT_OK
    finally:
        conn.close()


def _cmd_keywords(args) -> int:
    from my_ready.config import ConfigurationError, load_config
    from my_ready.monitor.classifier import KEYWORD_SETS

    if args.all:
        for name, words in sorted(KEYWORD_SETS.items()):
            print(f"\n[{name}]")
            for w in words:
                print(f"  {w}")
        return EXIT_OK

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    for w in config.monitor.deprecation_keywords:
        print(w)
    return EXIT_OK


def _write_output(output: str, args, dbname: str = ""):
    """Write report to a timestamped file, or stdout when no --output is given."""
    if not args.output:
        print(output)
        return

    path = _make_output_path(args.output, args.format, dbname)
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w") as f:
        f.write(output)
    print(f"Report written to {path}", file=sys.stderr)


def _make_output_path(user_path: str, fmt: str, dbname: str = "") -> str:
    """Insert a timestamp into the output filename.

    If the user provides a path like ``report.json``, the result is
    ``report_20260127_131504.json``.  If they provide a bare directory,
    the file is placed there with an auto-generated name.
    """
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    ext = _FORMAT_EXT.get(fmt, "")
    name = dbname or "my-ready"

    if os.path.isdir(user_path):
        return os.path.join(user_path, f"{name}_{ts}{ext}")

    base, existing_ext = os.path.splitext(user_path)
    if not existing_ext:
        existing_ext = ext
    return f"{base}_{ts}{existing_ext}"


def _render_report(report, fmt: str) -> str:
    if fmt == "json":
        from my_ready.reporters.json_reporter import render
    elif fmt == "text":
        from my_ready.reporters.text_reporter import render
    else:
        raise ValueError(f"Unknown format: {fmt}")
    return render(report)
