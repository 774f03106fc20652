from __future__ import annotations

import argparse
from pathlib import Path

from ..config import Settings
from ..filtering import MODES, TRUSTED
from ..pipeline import run_snapshot
from ..store import EventStore
from . import CommandResult, SourceCommand


class SnapshotCommand(SourceCommand):
    name = "snapshot"
    help = "Write the viewer's activity feed to a JSON file"

    @classmethod
    def configure_parser(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--viewer", help="Public identifier of the viewing account.")
        parser.add_argument("--mode", choices=MODES, default=TRUSTED, help="Requested filter mode.")
        parser.add_argument("--limit", type=int, default=30, help="Maximum number of feed entries.")
        parser.add_argument(
            "--output",
            type=Path,
            default=Path("data/snapshots"),
            help="Directory that will receive the snapshot JSON.",
        )
        super().configure_parser(parser)

    @classmethod
    async def run(cls, args: argparse.Namespace, settings: Settings, store: EventStore) -> CommandResult:
        path = await run_snapshot(
            store,
            settings,
            args.viewer,
            args.output,
            mode=args.mode,
            limit=args.limit,
            expand_depth1=args.expand_depth1,
        )
        print(path)
        return 0


__all__ = ["SnapshotCommand"]
