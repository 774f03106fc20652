from __future__ import annotations

import argparse
import json

from ..config import Settings
from ..filtering import MODES, TRUSTED
from ..pipeline import build_services, feed_payload
from ..store import EventStore
from . import CommandResult, SourceCommand


class FeedCommand(SourceCommand):
    name = "feed"
    help = "Print the merged activity feed, filtered through the viewer's trust graph"

    @classmethod
    def configure_parser(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--viewer", help="Public identifier of the viewing account.")
        parser.add_argument("--mode", choices=MODES, default=TRUSTED, help="Requested filter mode.")
        parser.add_argument("--limit", type=int, default=30, help="Maximum number of feed entries.")
        super().configure_parser(parser)

    @classmethod
    async def run(cls, args: argparse.Namespace, settings: Settings, store: EventStore) -> CommandResult:
        services = build_services(store, settings, expand_depth1=args.expand_depth1)
        graph = await services.trust.get(args.viewer)
        feed = await services.aggregator.activity_feed(graph, args.mode, args.limit)
        print(json.dumps(feed_payload(graph, feed), indent=2, sort_keys=True))
        return 0


__all__ = ["FeedCommand"]
