import asyncio

import pytest

from trustwave.aggregator import ContentAggregator
from trustwave.cache import TTLCache
from trustwave.config import Settings, StarterPack
from trustwave.parsing import TrackMetadata
from trustwave.publishing import Publisher
from trustwave.store import MemoryEventStore
from trustwave.trust import TrustGraphService

from tests.fakes import follow_event


def make_publisher(events=()):
    store = MemoryEventStore(events, author="viewer")
    cache = TTLCache()
    settings = Settings()
    trust = TrustGraphService(store, settings, cache=cache)
    aggregator = ContentAggregator(store, settings, cache=cache)
    return store, trust, aggregator, Publisher(store, trust, aggregator)


def test_created_list_is_visible_after_publish():
    store, trust, aggregator, publisher = make_publisher()
    assert asyncio.run(aggregator.fetch_recent_lists()) == []

    record = asyncio.run(publisher.create_list("Road Trip", "Windows down", tags=["Rock"]))
    lists = asyncio.run(aggregator.fetch_recent_lists())
    assert [found.id for found in lists] == [record.id]
    assert lists[0].tags == ("rock",)


def test_added_track_invalidates_list_items():
    store, trust, aggregator, publisher = make_publisher()
    assert asyncio.run(aggregator.fetch_by_list("list-1")) == []

    track = TrackMetadata(title="Tide", artist="The Shore", enclosure_url="https://cdn.example.com/tide.mp3")
    asyncio.run(publisher.add_track("list-1", track, annotation="Summer pick"))
    items = asyncio.run(aggregator.fetch_by_list("list-1"))
    assert [(item.title, item.annotation) for item in items] == [("Tide", "Summer pick")]


def test_follow_replaces_cached_trust_graph():
    store, trust, aggregator, publisher = make_publisher([follow_event("viewer", [], created_at=1)])
    assert asyncio.run(trust.get("viewer")).depth0 == frozenset()

    asyncio.run(publisher.follow("viewer", ["alice", "bob"]))
    assert asyncio.run(trust.get("viewer")).depth0 == {"alice", "bob"}


def test_follow_starter_packs_unions_curators():
    store, trust, aggregator, publisher = make_publisher()
    packs = [
        StarterPack("jazz", "Jazz", "", ["alice", "bob"]),
        StarterPack("folk", "Folk", "", ["bob", "carol"]),
        StarterPack("metal", "Metal", "", ["dave"]),
    ]
    record = asyncio.run(publisher.follow_starter_packs("viewer", packs, ["jazz", "folk"]))
    assert record.tags.all("p") == ["alice", "bob", "carol"]

    with pytest.raises(ValueError):
        asyncio.run(publisher.follow_starter_packs("viewer", packs, ["polka"]))
