"""Commands used to exercise discovery and parser registration."""
from __future__ import annotations

import argparse

from trustwave.commands import Command, CommandResult, MaybeAwaitable, SourceCommand


class ListenCommand(Command):
    name = "listen"
    help = "Pretend to play a track"
    aliases = ("play",)

    @classmethod
    def configure_parser(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--shuffle", action="store_true")

    @classmethod
    def handle(cls, args: argparse.Namespace) -> MaybeAwaitable:
        return 0


class CountCommand(SourceCommand):
    name = "count"
    help = "Count events in the configured source"

    @classmethod
    async def run(cls, args, settings, store) -> CommandResult:
        return 0


class _UnnamedCommand(Command):
    name = ""


__all__ = ["ListenCommand", "CountCommand"]
