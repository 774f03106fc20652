from __future__ import annotations

import argparse
import json

from ..config import Settings
from ..filtering import MODES, TRUSTED, effective_filter
from ..pipeline import build_services
from ..store import EventStore
from . import CommandResult, SourceCommand


class PlaylistCommand(SourceCommand):
    name = "playlist"
    help = "Print one playlist's entries as seen by a viewer"

    @classmethod
    def configure_parser(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("list_id", help="Event id of the playlist.")
        parser.add_argument("--viewer", help="Public identifier of the viewing account.")
        parser.add_argument("--mode", choices=MODES, default=TRUSTED, help="Requested filter mode.")
        super().configure_parser(parser)

    @classmethod
    async def run(cls, args: argparse.Namespace, settings: Settings, store: EventStore) -> CommandResult:
        services = build_services(store, settings, expand_depth1=args.expand_depth1)
        graph = await services.trust.get(args.viewer)
        items = await services.aggregator.fetch_filtered_list_items(args.list_id, graph, args.mode)
        payload = {
            "list_id": args.list_id,
            "mode": effective_filter(graph.viewer, graph, args.mode),
            "entries": [
                {
                    "id": item.id,
                    "author": item.author,
                    "title": item.title,
                    "artist": item.artist,
                    "media_url": item.media_url,
                    "trust_depth": graph.depth_of(item.author),
                }
                for item in items
            ],
        }
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 0


__all__ = ["PlaylistCommand"]
