"""High-level orchestration used by the command line tools."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .aggregator import ActivityFeed, ContentAggregator
from .cache import TTLCache
from .config import Settings
from .errors import ConfigError
from .filtering import TRUSTED
from .store import EventStore, HttpEventStore, MemoryEventStore
from .trust import TrustGraph, TrustGraphService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: EventStore
    trust: TrustGraphService
    aggregator: ContentAggregator


def open_store(settings: Settings, gateway: Optional[str] = None, events_path: Optional[Path] = None) -> EventStore:
    """Pick the event store described by the command line or the settings."""

    if events_path is not None:
        raw = json.loads(events_path.read_text())
        if not isinstance(raw, list):
            raise ConfigError(f"{events_path} must contain a JSON array of events")
        return MemoryEventStore(raw)
    url = gateway or settings.gateway_url
    if not url:
        raise ConfigError("No event source configured; pass --gateway, --events or set gateway_url")
    return HttpEventStore(url)


async def close_store(store: EventStore) -> None:
    close = getattr(store, "close", None)
    if close is not None:
        await close()


def build_services(store: EventStore, settings: Settings, expand_depth1: bool = True) -> Services:
    cache: TTLCache = TTLCache(default_ttl=settings.item_ttl)
    return Services(
        store=store,
        trust=TrustGraphService(store, settings, cache=cache, expand_depth1=expand_depth1),
        aggregator=ContentAggregator(store, settings, cache=cache),
    )


def graph_payload(graph: TrustGraph) -> Dict:
    return {
        "viewer": graph.viewer,
        "depth0": sorted(graph.depth0),
        "depth1": sorted(graph.depth1),
        "sizes": {"depth0": len(graph.depth0), "depth1": len(graph.depth1), "all": len(graph.all)},
    }


def feed_payload(graph: TrustGraph, feed: ActivityFeed) -> Dict:
    """Generate the JSON document describing an activity feed."""

    entries: List[Dict] = []
    for entry in feed.entries:
        row: Dict = {
            "id": entry.id,
            "type": entry.kind,
            "author": entry.author,
            "timestamp": entry.timestamp,
            "list_title": entry.list_title,
            "trust_depth": graph.depth_of(entry.author),
        }
        if entry.item is not None:
            row.update(
                {
                    "list_id": entry.item.list_id,
                    "title": entry.item.title,
                    "artist": entry.item.artist,
                    "media_url": entry.item.media_url,
                    "annotation": entry.item.annotation,
                }
            )
        if entry.list is not None:
            row.update({"description": entry.list.description, "tags": list(entry.list.tags)})
        entries.append(row)
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "viewer": graph.viewer,
        "mode": feed.mode,
        "graph": graph_payload(graph)["sizes"],
        "entries": entries,
    }


async def run_snapshot(
    store: EventStore,
    settings: Settings,
    viewer: Optional[str],
    output_dir: Path,
    mode: str = TRUSTED,
    limit: int = 30,
    expand_depth1: bool = True,
) -> Path:
    """Compute the viewer's feed and persist it as a JSON artefact.

    Returns:
        The path to the written snapshot file.
    """

    services = build_services(store, settings, expand_depth1=expand_depth1)
    graph = await services.trust.get(viewer)
    feed = await services.aggregator.activity_feed(graph, mode, limit)
    payload = feed_payload(graph, feed)

    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    snapshot_path = output_dir / f"feed-{timestamp}.json"
    snapshot_path.write_text(json.dumps(payload, indent=2, sort_keys=True))
    logger.info("Wrote %d feed entries to %s", len(feed.entries), snapshot_path)
    return snapshot_path


__all__ = [
    "Services",
    "open_store",
    "close_store",
    "build_services",
    "graph_payload",
    "feed_payload",
    "run_snapshot",
]
