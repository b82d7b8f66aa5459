#!/usr/bin/env python3
"""
Command-line entry point for inspecting and writing a persistent log.

Usage:
    # Store values and print the count after each
    persistlog --path log.dat store "first value" "second value"

    # Print the number of valid records (repairs a damaged tail)
    persistlog --path log.dat count

    # List valid records
    persistlog --path log.dat dump

    # Report damage without repairing it (exit code 1 if the tail is invalid)
    persistlog --path log.dat check

    # Print the effective configuration
    persistlog config
"""

import argparse
import sys

import yaml

from persistlog.core.log.errors import PersistentLogError
from persistlog.core.log.log import PersistentLog
from persistlog.core.log.reader import iter_records
from persistlog.core.log.recovery import scan_file
from persistlog.utils.config import get_config
from persistlog.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

DEMO_VALUES = ["This is some text 123456789", "omegaepsilon"]


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="persistlog",
        description="persistlog - an append-only, self-repairing record log",
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML configuration file",
    )

    parser.add_argument(
        "--path",
        type=str,
        default=None,
        help="Log file path (default: log.path from configuration)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: logging.level from configuration)",
    )

    parser.add_argument(
        "--streaming-recovery",
        action="store_true",
        help="Scan the log frame by frame instead of loading it into memory",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    store_parser = subparsers.add_parser("store", help="Append values to the log")
    store_parser.add_argument("values", nargs="+", help="Values to store (UTF-8)")

    subparsers.add_parser("count", help="Print the number of valid records")
    subparsers.add_parser("dump", help="Print every valid record")
    subparsers.add_parser("demo", help="Store two sample values and print the count")
    subparsers.add_parser("check", help="Validate the log without modifying it")
    subparsers.add_parser("config", help="Print the effective configuration")

    return parser.parse_args(argv)


def run(args, out=None) -> int:
    """
    Execute a parsed command.

    Returns:
        Process exit code
    """
    out = out if out is not None else sys.stdout
    config = get_config(args.config)

    if args.path is not None:
        config.set("log.path", args.path)
    if args.streaming_recovery:
        config.set("recovery.streaming", True)

    if args.command == "config":
        yaml.safe_dump(config.to_dict(), out, default_flow_style=False, sort_keys=True)
        return 0

    if args.command == "check":
        result = scan_file(
            config.get("log.path", "log.dat"),
            streaming=bool(config.get("recovery.streaming", False)),
        )
        print(f"records\t{result.valid_records}", file=out)
        print(f"valid_bytes\t{result.valid_bytes}", file=out)
        print(f"invalid_bytes\t{result.truncated_bytes}", file=out)
        return 1 if result.needs_truncation else 0

    if args.command == "dump":
        with PersistentLog.open(config=config) as log:
            path = log.path
        for index, record in enumerate(iter_records(path), start=1):
            print(f"{index}\t{record.length}\t{record.payload!r}", file=out)
        return 0

    with PersistentLog.open(config=config) as log:
        if args.command == "store":
            for value in args.values:
                print(log.store(value), file=out)
        elif args.command == "demo":
            for value in DEMO_VALUES:
                log.store(value)
            print(f"record count {log.record_count()}", file=out)
        else:
            print(log.record_count(), file=out)

    return 0


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = get_config(args.config)

    try:
        configure_logging(
            log_level=args.log_level or config.get("logging.level", "INFO"),
            log_format=config.get("logging.format", "console"),
        )
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    try:
        return run(args)
    except PersistentLogError as e:
        logger.error("Command failed", command=args.command, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
