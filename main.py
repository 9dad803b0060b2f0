"""CLI entry point for the workforce intelligence analytics engine."""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

from workforce_intel.analytics.report import build_report, export_json, run_section
from workforce_intel.core.config import Settings
from workforce_intel.core.db import load_records

COMMANDS = ("report", "surges", "competitive", "skills")

_HELP = {
    "report": "Run every analyzer and print the full dashboard report",
    "surges": "Detect hiring surges (and surges affecting --agency)",
    "competitive": "Competitive evolution, positioning matrix and talent war zones",
    "skills": "Skill demand timelines, combinations and emerging skills",
}


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--source",
        help="Job records file (.json export or .db SQLite); overrides source.path",
    )
    parser.add_argument(
        "--now",
        help="Reference date YYYY-MM-DD (default: today)",
    )
    parser.add_argument(
        "--agency",
        help="Your agency (short or long name); overrides analysis.your_agency",
    )
    parser.add_argument(
        "--output",
        help="Write JSON to this file instead of stdout",
    )
    parser.add_argument(
        "--parallel",
        action="store_true",
        help="Run analyzers on a thread pool (report only)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Workforce intelligence - temporal hiring analytics over job postings",
    )
    subparsers = parser.add_subparsers(dest="command")
    for command in COMMANDS:
        # Unset subcommand flags must not clobber values given before the subcommand.
        _add_common_args(
            subparsers.add_parser(command, help=_HELP[command], argument_default=argparse.SUPPRESS)
        )

    # --- top-level flags for the default report command ---
    parser.add_argument("--config", default="config/settings.yaml", help=argparse.SUPPRESS)
    parser.add_argument("--source", help=argparse.SUPPRESS)
    parser.add_argument("--now", help=argparse.SUPPRESS)
    parser.add_argument("--agency", help=argparse.SUPPRESS)
    parser.add_argument("--output", help=argparse.SUPPRESS)
    parser.add_argument("--parallel", action="store_true", help=argparse.SUPPRESS)
    parser.add_argument("--verbose", "-v", action="store_true", help=argparse.SUPPRESS)

    args = parser.parse_args(argv)

    # Default to report when no subcommand given
    if args.command is None:
        args.command = "report"

    return args


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def parse_now(value: str | None) -> date:
    """Parse --now; the wall clock is only read here, never inside the engine."""
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError:
        msg = f"--now must be YYYY-MM-DD, got {value!r}"
        raise ValueError(msg) from None


def load_settings(args: argparse.Namespace) -> Settings:
    """Load YAML settings and apply command-line overrides."""
    settings = Settings.from_yaml(args.config)
    if args.source:
        settings = settings.model_copy(
            update={"source": settings.source.model_copy(update={"path": args.source})}
        )
    if args.agency:
        settings = settings.model_copy(
            update={"analysis": settings.analysis.model_copy(update={"your_agency": args.agency})}
        )
    return settings


def run(args: argparse.Namespace) -> str:
    """Execute the selected command and return its JSON output."""
    settings = load_settings(args)
    now = parse_now(args.now)
    records = load_records(settings.source.path, settings.source.table)
    print(f"Loaded {len(records)} job records from {settings.source.path}", file=sys.stderr)

    if args.command == "report":
        return export_json(build_report(records, now, settings.analysis, parallel=args.parallel))
    return export_json(run_section(args.command, records, now, settings.analysis))


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        output = run(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.output:
        Path(args.output).write_text(output + "\n", encoding="utf-8")
        print(f"Output written to {args.output}", file=sys.stderr)
    else:
        print(output)


if __name__ == "__main__":
    main()
