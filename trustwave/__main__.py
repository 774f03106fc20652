"""Command-line entry point for the trustwave package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from importlib import metadata
from typing import Optional, Sequence, Type

from .commands import Command, MaybeAwaitable, load_commands
from .errors import TrustWaveError

logger = logging.getLogger("trustwave")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _version() -> str:
    try:
        return metadata.version("trustwave")
    except metadata.PackageNotFoundError:
        return "unknown"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trustwave",
        description="Web-of-Trust playlist aggregation tools",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_version()}")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "--log-level",
        default="INFO",
        type=str.upper,
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging level applied to all commands.",
    )
    verbosity.add_argument(
        "--debug",
        dest="log_level",
        action="store_const",
        const="DEBUG",
        help="Shortcut for --log-level=DEBUG.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")
    for command_cls in load_commands():
        command_cls.attach(subparsers)
    return parser


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name, logging.INFO)
    # Command output goes to stdout; diagnostics stay on stderr.
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    if level > logging.DEBUG:
        logging.getLogger("aiohttp").setLevel(logging.WARNING)


def _settle(result: MaybeAwaitable) -> int:
    if asyncio.iscoroutine(result):
        result = asyncio.run(result)
    return int(result or 0)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    command_cls: Optional[Type[Command]] = getattr(args, "_command_cls", None)
    if command_cls is None:
        parser.print_help()
        return 1

    try:
        return _settle(command_cls.handle(args))
    except TrustWaveError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":  # pragma: no cover - thin wrapper
    sys.exit(main())
