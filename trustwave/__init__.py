"""Web-of-Trust computation and trust-filtered playlist aggregation."""

from .aggregator import ActivityEntry, ActivityFeed, ContentAggregator, ItemScope
from .cache import TTLCache
from .config import Kinds, Settings, StarterPack, load_settings, load_starter_packs
from .errors import ConfigError, MalformedEvent, StoreError, TrustGraphUnavailable, TrustWaveError
from .events import EventDraft, EventRecord, QueryFilter, TagMap, latest_by_author, select_authoritative
from .filtering import FilterState, apply_filter, effective_filter
from .parsing import ContentItem, ContentList, TrackMetadata, parse_item, parse_list
from .publishing import Publisher
from .store import EventStore, HttpEventStore, MemoryEventStore
from .trust import TrustGraph, TrustGraphService, build_trust_graph, fetch_follows

__all__ = [
    "ActivityEntry",
    "ActivityFeed",
    "ContentAggregator",
    "ItemScope",
    "TTLCache",
    "Kinds",
    "Settings",
    "StarterPack",
    "load_settings",
    "load_starter_packs",
    "TrustWaveError",
    "ConfigError",
    "MalformedEvent",
    "StoreError",
    "TrustGraphUnavailable",
    "EventDraft",
    "EventRecord",
    "QueryFilter",
    "TagMap",
    "select_authoritative",
    "latest_by_author",
    "FilterState",
    "apply_filter",
    "effective_filter",
    "ContentItem",
    "ContentList",
    "TrackMetadata",
    "parse_item",
    "parse_list",
    "Publisher",
    "EventStore",
    "HttpEventStore",
    "MemoryEventStore",
    "TrustGraph",
    "TrustGraphService",
    "build_trust_graph",
    "fetch_follows",
]
