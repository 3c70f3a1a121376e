import argparse
import sys
from pathlib import Path

from . import __version__
from .config import ConfigError, load_settings
from .env import load_env
from .flatten import PayloadError, flatten_records, parse_payload
from .inputs import InputError
from .logger import get_logger, reset_logger
from .pipeline import run
from .writer import HEADER, append_rows, format_row


def _setup_logger(args: argparse.Namespace):
    reset_logger()
    return get_logger(
        level=args.log_level,
        log_dir=Path(args.log_dir),
        enable_file=not args.no_log_file,
    )


def cmd_run(args: argparse.Namespace) -> None:
    logger = _setup_logger(args)
    settings = load_settings(Path(args.config) if args.config else None)
    summary = run(settings, logger=logger)
    logger.log_metrics_summary()
    print(
        f"Fetched {summary.succeeded}/{summary.total} conversations, "
        f"{summary.rows_written} rows written to {settings.output_path}"
    )
    if summary.failed_flushes:
        print(f"[warn] {summary.failed_flushes} batch(es) could not be written; see log")
    print("All done.")


def cmd_check_config(args: argparse.Namespace) -> None:
    settings = load_settings(Path(args.config) if args.config else None)
    for key, value in settings.masked().items():
        print(f"{key}: {value}")
    if not settings.input_path.exists():
        print(f"[warn] input file does not exist yet: {settings.input_path}")


def cmd_flatten(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    raw = input_path.read_text(encoding="utf-8-sig")
    try:
        rows = flatten_records(parse_payload(raw))
    except PayloadError as e:
        raise SystemExit(f"Cannot flatten {input_path}: {e}")

    if args.output:
        written = append_rows(Path(args.output), rows)
        print(f"{written} rows appended to {args.output}")
        return
    print(HEADER)
    for row in rows:
        print(format_row(row))


def main():
    # Load .env if present (CONVOFETCH_BEARER_TOKEN, etc.)
    load_env()
    parser = argparse.ArgumentParser(prog="convofetch", description="Bulk-fetch conversation transcripts into a CSV")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    rn = subparsers.add_parser("run", help="Fetch every conversation in the input CSV and append transcript rows")
    rn.add_argument("--config", help="Path to config JSON (default: config.json)")
    rn.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Console log level")
    rn.add_argument("--log-dir", default="logs", help="Directory for log files (default: logs)")
    rn.add_argument("--no-log-file", action="store_true", help="Log to console only")
    rn.set_defaults(func=cmd_run)

    chk = subparsers.add_parser("check-config", help="Show the resolved settings (token masked)")
    chk.add_argument("--config", help="Path to config JSON (default: config.json)")
    chk.set_defaults(func=cmd_check_config)

    flt = subparsers.add_parser("flatten", help="Flatten a saved recordings response JSON into CSV rows")
    flt.add_argument("--input", required=True, help="Path to a saved API response")
    flt.add_argument("--output", help="Append rows to this CSV instead of printing them")
    flt.set_defaults(func=cmd_flatten)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        args.func(args)
    except (ConfigError, InputError, OSError) as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
