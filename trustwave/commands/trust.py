from __future__ import annotations

import argparse
import json

from ..config import Settings
from ..pipeline import build_services, graph_payload
from ..store import EventStore
from . import CommandResult, SourceCommand


class TrustCommand(SourceCommand):
    name = "trust"
    help = "Print the Web of Trust computed for a viewer"

    @classmethod
    def configure_parser(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("viewer", help="Public identifier of the viewing account.")
        super().configure_parser(parser)

    @classmethod
    async def run(cls, args: argparse.Namespace, settings: Settings, store: EventStore) -> CommandResult:
        services = build_services(store, settings, expand_depth1=args.expand_depth1)
        graph = await services.trust.get(args.viewer)
        print(json.dumps(graph_payload(graph), indent=2))
        return 0


__all__ = ["TrustCommand"]
