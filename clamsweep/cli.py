"""Command-line entry point.

Usage::

    clamsweep -f invoice.pdf -d /srv/uploads --quarantine
    clamsweep -d /home --remove -j 4 --metrics-file /var/lib/node_exporter/clamsweep.prom

Exit codes:

* ``0`` – the run completed (infected files do not change the exit code).
* ``1`` – usage error: no files or directories were given.
* ``2`` – configuration error (invalid environment, unwritable directories).
* ``3`` – no scan engine could be initialised.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from pydantic import ValidationError

from clamsweep import __version__
from clamsweep.config import RunConfig, Settings, get_settings
from clamsweep.core.collector import collect_files
from clamsweep.core.orchestrator import RunSummary, ScanOrchestrator
from clamsweep.core.remediation import RemediationManager
from clamsweep.engines import EngineInitError, build_engine
from clamsweep.logging_config import configure_logging
from clamsweep.metrics import write_metrics

logger = logging.getLogger("clamsweep")

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_CONFIG = 2
EXIT_ENGINE = 3


class UsageError(Exception):
    """Raised when the command line names nothing to scan."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clamsweep",
        usage="%(prog)s -f [files] -d [directories]",
        description="Scan files and directories with ClamAV and quarantine or remove infected files.",
    )
    parser.add_argument(
        "-f", "--files",
        nargs="+",
        action="extend",
        default=[],
        metavar="FILE",
        help="File(s) to scan",
    )
    parser.add_argument(
        "-d", "--directories",
        nargs="+",
        action="extend",
        default=[],
        metavar="DIR",
        help="Directory(ies) to scan recursively",
    )
    parser.add_argument(
        "-q", "--quarantine",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Quarantine infected files (default: $QUARANTINE_INFECTED)",
    )
    parser.add_argument(
        "-r", "--remove",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Remove infected files (default: $REMOVE_INFECTED)",
    )
    parser.add_argument(
        "--quarantine-dir",
        metavar="DIR",
        help="Quarantine directory (default: $QUARANTINE_DIRECTORY or ./quarantine)",
    )
    parser.add_argument(
        "-j", "--concurrency",
        type=_positive_int,
        default=None,
        metavar="N",
        help="Number of files scanned at the same time (default: $SCAN_CONCURRENCY or 1)",
    )
    parser.add_argument(
        "--metrics-file",
        metavar="PATH",
        help="Write Prometheus metrics in textfile-collector format after the run",
    )
    parser.add_argument(
        "--log-level",
        metavar="LEVEL",
        help="Log level (default: $LOG_LEVEL or INFO)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def validate_targets(args: argparse.Namespace) -> None:
    """Raise :class:`UsageError` when neither files nor directories were given."""
    if not args.files and not args.directories:
        raise UsageError("No files or directories specified for scanning.")


async def run_scan(
    settings: Settings,
    run_config: RunConfig,
    work_set: frozenset[str],
) -> RunSummary:
    """Initialise the engine and scan *work_set*.

    Raises:
        EngineInitError: If no engine is usable; nothing is scanned.
    """
    engine = await build_engine(settings)
    orchestrator = ScanOrchestrator(
        engine,
        RemediationManager(run_config),
        concurrency=run_config.concurrency,
    )
    return await orchestrator.run(work_set)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        validate_targets(args)
    except UsageError as exc:
        configure_logging(None)
        logger.error("%s", exc)
        parser.print_help(sys.stderr)
        return EXIT_USAGE

    try:
        settings = get_settings()
    except ValidationError as exc:
        configure_logging(None)
        logger.error("Invalid configuration: %s", exc)
        return EXIT_CONFIG

    try:
        configure_logging(settings.log_directory, args.log_level or settings.log_level)
    except (OSError, ValueError) as exc:
        configure_logging(None)
        logger.error("Cannot set up logging in %s: %s", settings.log_directory, exc)
        return EXIT_CONFIG

    try:
        run_config = RunConfig.from_settings(
            settings,
            quarantine=args.quarantine,
            remove=args.remove,
            quarantine_dir=args.quarantine_dir,
            concurrency=args.concurrency,
        ).prepare()
    except OSError as exc:
        logger.error("Cannot create quarantine directory: %s", exc)
        return EXIT_CONFIG

    work_set = collect_files(args.files, args.directories)
    if not work_set:
        logger.info("No valid files found to scan.")
        logger.info("Scan completed.")
        return EXIT_OK

    try:
        summary = asyncio.run(run_scan(settings, run_config, work_set))
    except EngineInitError as exc:
        logger.error("Error initializing scan engine: %s", exc)
        return EXIT_ENGINE

    if args.metrics_file:
        try:
            write_metrics(args.metrics_file)
        except OSError as exc:
            logger.error("Cannot write metrics to %s: %s", args.metrics_file, exc)

    if summary.scan_errors:
        logger.warning("%d file(s) could not be scanned", summary.scan_errors)
    if summary.remediation_failures:
        logger.warning(
            "%d infected file(s) could not be remediated", summary.remediation_failures
        )
    return EXIT_OK
