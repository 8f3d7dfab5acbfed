# File: relcheck/cli.py
"""
RelCheck - Command-Line Interface
==================================

CLI built with the standard-library ``argparse`` module.

Usage examples::

    # Validate a model, stop at the first error
    python -m relcheck --model model.yaml

    # Report one error per table / hierarchy instead of stopping early
    relcheck -m model.json --collect-all

    # Resolve store types for SQL Server and emit JSON
    relcheck -m model.yaml --dialect mssql --format json

    # Show version
    relcheck --version

Exit codes:
    0 — model is valid
    1 — validation failed (or warnings with --fail-on-warnings)
    2 — input error (missing, unparsable or structurally invalid model)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

from relcheck.runner import (
    EXIT_INPUT_ERROR,
    EXIT_OK,
    EXIT_VALIDATION_FAILED,
    CheckReport,
    ModelChecker,
)

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relcheck")

_DIALECT_CHOICES: List[str] = ["postgresql", "mysql", "sqlite", "mssql", "oracle"]


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root relcheck logger based on verbosity level.

    Args:
        verbosity: -1 = ERROR (quiet), 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    elif verbosity >= 0:
        level = logging.WARNING
    else:
        level = logging.ERROR

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    datefmt: str = "%H:%M:%S"
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root_logger: logging.Logger = logging.getLogger("relcheck")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from relcheck import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="relcheck",
        description=(
            "RelCheck — relational mapping validator.\n\n"
            "Checks that the entity types of a model (JSON/YAML) map onto a "
            "consistent relational schema: shared tables, shared columns, "
            "keys, foreign keys, indexes and discriminators."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -m model.yaml\n"
            "  %(prog)s -m model.json --collect-all --format json\n"
            "  %(prog)s -m model.yaml --dialect mssql --fail-on-warnings\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"RelCheck v{__version__}",
    )

    parser.add_argument(
        "-m", "--model",
        type=str,
        required=True,
        metavar="PATH",
        help="Path to the model definition file (JSON or YAML).",
    )

    # --- Config overrides ---
    config_group = parser.add_argument_group("configuration overrides")
    config_group.add_argument(
        "--dialect",
        type=str,
        default=None,
        choices=_DIALECT_CHOICES,
        help="Dialect used to resolve default store types.",
    )
    config_group.add_argument(
        "--default-schema",
        type=str,
        default=None,
        metavar="SCHEMA",
        help="Schema for root entity types that do not set one.",
    )

    # --- Behaviour flags ---
    behaviour_group = parser.add_argument_group("behaviour flags")
    behaviour_group.add_argument(
        "--collect-all",
        action="store_true",
        default=False,
        help=(
            "Keep validating after the first error: report one error per "
            "table, hierarchy and DB function."
        ),
    )
    behaviour_group.add_argument(
        "--fail-on-warnings",
        action="store_true",
        default=False,
        help="Treat advisory warnings as a failed validation.",
    )

    # --- Output ---
    output_group = parser.add_argument_group("output")
    output_group.add_argument(
        "--format",
        dest="output_format",
        type=str,
        default="text",
        choices=["text", "json"],
        help="Report format written to stdout (default: text).",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Only log errors; print the text report only when validation fails.",
    )

    return parser


# ---------------------------------------------------------------------------
# Config override builder
# ---------------------------------------------------------------------------


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Build a config override dictionary from CLI arguments."""
    overrides: Dict[str, Any] = {}

    if args.dialect is not None:
        overrides["dialect"] = args.dialect

    if args.default_schema is not None:
        overrides["default_schema"] = args.default_schema

    if args.collect_all:
        overrides["fail_fast"] = False

    if args.fail_on_warnings:
        overrides["fail_on_warnings"] = True

    return overrides


# ---------------------------------------------------------------------------
# Report output
# ---------------------------------------------------------------------------


def _print_report(report: CheckReport, output_format: str, quiet: bool) -> None:
    if output_format == "json":
        print(json.dumps(report.to_dict(), indent=2, default=str))
        return
    if quiet and report.success:
        return
    print(report.summary())


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    verbosity: int = -1 if args.quiet else args.verbose
    _setup_logging(verbosity)

    model_path: Path = Path(args.model).resolve()
    logger.info("Model:   %s", model_path)

    overrides: Dict[str, Any] = _build_config_overrides(args)
    checker: ModelChecker = ModelChecker(fail_on_warnings=args.fail_on_warnings)
    report: CheckReport = checker.check_file(
        model_path,
        config_overrides=overrides if overrides else None,
    )

    _print_report(report, args.output_format, args.quiet)

    exit_code: int = report.exit_code
    if exit_code == EXIT_OK:
        logger.info("Model is valid.")
    elif exit_code == EXIT_VALIDATION_FAILED:
        logger.error("Validation failed with exit code %d.", exit_code)
    else:
        logger.error("Input error, exit code %d.", exit_code)

    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "EXIT_OK",
    "EXIT_VALIDATION_FAILED",
    "EXIT_INPUT_ERROR",
]

logger.debug("relcheck.cli loaded.")
