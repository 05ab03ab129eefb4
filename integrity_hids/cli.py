"""Command-line entry point.

Usage:
    integrity-hids hash --config /etc/hids/main.conf
    integrity-hids integrity-check
    integrity-hids daemon --interval 15
    integrity-hids hash-and-daemon
    integrity-hids report --incidents /var/lib/hids/incidents.txt

Exit codes:
    0 — success (including a daemon stopped by SIGINT/SIGTERM)
    1 — configuration, file or incident log error
    2 — invalid command line
"""

import argparse
import asyncio
import os
import signal
import sys
from collections.abc import Mapping

from .config import HidsConfig, check_output_file, load_config
from .engine.baseline import build_baseline, load_baseline, save_baseline
from .engine.checker import CheckSummary, IntegrityChecker
from .engine.digest import HashAlgorithm, check_file_path
from .engine.report import write_report
from .errors import HidsError
from .modules.integrity_daemon import IntegrityDaemon
from .utils.logging import get_logger, setup_logging

logger = get_logger("cli")

MODES = ("hash", "integrity-check", "daemon", "hash-and-daemon", "report")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="integrity-hids",
        description="A host intrusion detection system based on file integrity checks.",
        epilog=(
            "modes: 'hash' records the digests of the configured files; "
            "'integrity-check' compares the files once against those digests; "
            "'daemon' repeats the check every interval until interrupted; "
            "'hash-and-daemon' hashes then enters daemon mode; "
            "'report' rebuilds failure ratios and trend from the incidents file."
        ),
    )
    parser.add_argument("mode", nargs="?", choices=MODES, default="hash-and-daemon",
                        help="Execution mode (default: hash-and-daemon)")
    parser.add_argument("--config", default=None, help="INI configuration file")
    parser.add_argument("--hashes", default=None, help="Baseline (hashes) file")
    parser.add_argument("--incidents", default=None, help="Incidents log file")
    parser.add_argument("--indicators", default=None, help="Report (indicators) output file")
    parser.add_argument("--algorithm", default=None,
                        choices=[a.name for a in HashAlgorithm], help="Digest algorithm")
    parser.add_argument("--interval", type=int, default=None,
                        help="Minutes between integrity checks")
    parser.add_argument("--log-dir", default=None, help="Directory for the rotating log file")
    parser.add_argument("--debug", action="store_true", help="Human-readable debug logging")
    return parser


def _canonical(path: str | None) -> str | None:
    return os.path.realpath(path) if path else None


def config_from_args(args: argparse.Namespace) -> HidsConfig:
    config_file = _canonical(args.config)
    if config_file:
        check_file_path(config_file)
    return load_config(
        config_file,
        hashes_file=_canonical(args.hashes),
        incidents_file=_canonical(args.incidents),
        indicators_file=_canonical(args.indicators),
        hash_algorithm=args.algorithm,
        check_period_minutes=args.interval,
        log_dir=args.log_dir,
        debug=args.debug or None,
    )


def validate_working_paths(config: HidsConfig, mode: str) -> None:
    """Check the working files each mode reads or writes."""
    if mode == "hash":
        check_output_file(config.hashes_file)
    elif mode in ("integrity-check", "daemon"):
        check_file_path(config.hashes_file)
        check_output_file(config.incidents_file)
    elif mode == "hash-and-daemon":
        check_output_file(config.hashes_file)
        check_output_file(config.incidents_file)
    elif mode == "report":
        check_file_path(config.incidents_file)
        check_output_file(config.indicators_file)


def print_summary(summary: CheckSummary) -> None:
    print("Integrity check summary:")
    print(f" {summary.total} TOTAL")
    print(f" {summary.ok} OK")
    print(f" {summary.error} ERROR")
    print(f" {summary.unknown} UNKNOWN")


def run_hash(config: HidsConfig) -> dict[str, str]:
    print(f"Selected algorithm: {config.algorithm.name}")
    baseline = build_baseline(config.files, config.algorithm)
    save_baseline(config.hashes_file, baseline)
    for path, digest in baseline.items():
        print(f"{digest} : {path}")
    return baseline


def run_integrity_check(config: HidsConfig) -> CheckSummary:
    baseline = load_baseline(config.hashes_file)
    checker = IntegrityChecker(config.incidents_file, config.algorithm)
    result = checker.check(config.files, baseline)
    print_summary(result.summary)
    return result.summary


async def _serve(daemon: IntegrityDaemon) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, daemon.request_stop)
        except (NotImplementedError, RuntimeError):
            # No loop signal support (Windows); Ctrl+C raises KeyboardInterrupt
            pass
    await daemon.run()


def run_daemon(config: HidsConfig, baseline: Mapping[str, str] | None = None) -> None:
    if baseline is None:
        baseline = load_baseline(config.hashes_file)
    daemon = IntegrityDaemon(
        IntegrityChecker(config.incidents_file, config.algorithm),
        config.files,
        baseline,
        interval_minutes=config.check_period_minutes,
    )
    try:
        asyncio.run(_serve(daemon))
    except KeyboardInterrupt:
        logger.info("integrity_daemon_interrupted")


def run_report(config: HidsConfig) -> None:
    reports = write_report(config.incidents_file, config.indicators_file)
    print(f"The file contains {len(reports)} integrity check logs.")
    for report in reports:
        print(report.render(), end="")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug, log_dir=None)

    try:
        config = config_from_args(args)
        if config.log_dir or config.debug != args.debug:
            setup_logging(debug=config.debug, log_dir=config.log_dir)
        validate_working_paths(config, args.mode)
        logger.info("execution_mode", mode=args.mode, algorithm=config.algorithm.name)

        if args.mode == "hash":
            run_hash(config)
        elif args.mode == "integrity-check":
            run_integrity_check(config)
        elif args.mode == "daemon":
            run_daemon(config)
        elif args.mode == "hash-and-daemon":
            run_daemon(config, run_hash(config))
        elif args.mode == "report":
            run_report(config)
    except (HidsError, OSError) as e:
        logger.error("execution_failed", mode=args.mode, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
