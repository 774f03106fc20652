import asyncio

from trustwave.aggregator import ContentAggregator, ItemScope
from trustwave.cache import TTLCache
from trustwave.config import Settings
from trustwave.errors import StoreError
from trustwave.store import MemoryEventStore
from trustwave.trust import TrustGraph

from tests.fakes import RecordingStore, item_event, make_event


def authored_items_store(items_by_author, failing=()):
    def handler(query_filter):
        authors = query_filter.authors or []
        if any(author in failing for author in authors):
            raise StoreError("relay unavailable")
        events = [event for author in authors for event in items_by_author.get(author, [])]
        events.sort(key=lambda event: event["created_at"], reverse=True)
        return events[: query_filter.limit]

    return RecordingStore(handler)


def test_empty_trust_set_issues_no_query():
    store = authored_items_store({})
    aggregator = ContentAggregator(store)
    assert asyncio.run(aggregator.fetch_trusted_recent(frozenset(), limit=10)) == []
    assert store.calls == []


def test_large_trust_set_survives_a_timed_out_batch():
    authors = [f"user{i:03d}" for i in range(250)]
    items_by_author = {
        author: [item_event(f"item-{author}", author, created_at=1000 + index)]
        for index, author in enumerate(authors)
    }

    def handler(query_filter):
        events = [event for author in query_filter.authors for event in items_by_author[author]]
        return events[: query_filter.limit]

    # The second batch covers user100..user199 and never answers in time.
    store = RecordingStore(handler, delay=lambda f: 5.0 if "user150" in f.authors else 0.0)
    aggregator = ContentAggregator(store, Settings(item_batch_size=100, item_timeout=0.05))

    items = asyncio.run(aggregator.fetch_trusted_recent(frozenset(authors), limit=120))

    assert len(store.calls) == 3
    assert [len(call.authors) for call in store.calls] == [100, 100, 50]
    assert all(call.limit == 100 for call in store.calls)
    timestamps = [item.created_at for item in items]
    assert timestamps == sorted(timestamps, reverse=True)
    assert len(items) == 120
    returned_authors = {item.author for item in items}
    assert "user249" in returned_authors
    assert "user050" in returned_authors
    assert not returned_authors & set(authors[100:200])


def test_failed_batch_is_logged_and_isolated(caplog):
    store = authored_items_store(
        {"a": [item_event("a1", "a", 10)], "b": [item_event("b1", "b", 20)]},
        failing={"b"},
    )
    aggregator = ContentAggregator(store, Settings(item_batch_size=1))
    with caplog.at_level("WARNING"):
        items = asyncio.run(aggregator.fetch_items(ItemScope(authors={"a", "b"}, limit=10)))
    assert [item.id for item in items] == ["a1"]
    assert "Error fetching items batch" in caplog.text


def test_malformed_and_incomplete_records_are_dropped():
    def handler(query_filter):
        return [
            item_event("good", "alice", 10),
            make_event("no-media", "alice", 9999, 11, [["z", "list-1"]]),
            {"id": "broken", "kind": 9999},
            make_event("wrong-kind", "alice", 1, 12, [["z", "list-1"], ["r", "u"]]),
        ]

    aggregator = ContentAggregator(RecordingStore(handler))
    items = asyncio.run(aggregator.fetch_global_recent(10))
    assert [item.id for item in items] == ["good"]


def test_equal_timestamps_keep_arrival_order_and_results_are_repeatable():
    events = [
        item_event("x", "alice", 10),
        item_event("y", "bob", 20),
        item_event("z", "carol", 10),
    ]
    aggregator = ContentAggregator(RecordingStore(lambda f: list(events)))
    first = asyncio.run(aggregator.fetch_global_recent(10))
    second = asyncio.run(aggregator.fetch_global_recent(10))
    assert [item.id for item in first] == ["y", "x", "z"]
    assert first == second


def test_duplicate_events_are_merged():
    events = [item_event("x", "alice", 10), item_event("x", "alice", 10)]
    aggregator = ContentAggregator(RecordingStore(lambda f: list(events)))
    assert len(asyncio.run(aggregator.fetch_global_recent(10))) == 1


def test_fetch_by_list_filters_on_list_tag():
    store = MemoryEventStore(
        [
            item_event("a", "alice", 10, list_id="list-1"),
            item_event("b", "bob", 20, list_id="list-2"),
            item_event("c", "carol", 30, list_id="list-1"),
        ]
    )
    aggregator = ContentAggregator(store)
    items = asyncio.run(aggregator.fetch_by_list("list-1"))
    assert [item.id for item in items] == ["c", "a"]
    assert store.queries[0][0].tag_filters == {"z": ["list-1"]}


def test_fetch_by_author_spans_lists():
    store = MemoryEventStore(
        [
            item_event("a", "alice", 10, list_id="list-1"),
            item_event("b", "alice", 20, list_id="list-2"),
            item_event("c", "bob", 30, list_id="list-1"),
        ]
    )
    items = asyncio.run(ContentAggregator(store).fetch_by_author("alice"))
    assert [(item.id, item.list_id) for item in items] == [("b", "list-2"), ("a", "list-1")]


def test_cached_results_are_reused_until_invalidated():
    events = [item_event("a", "alice", 10)]
    store = RecordingStore(lambda f: list(events))
    aggregator = ContentAggregator(store, cache=TTLCache())

    asyncio.run(aggregator.fetch_global_recent(5))
    asyncio.run(aggregator.fetch_global_recent(5))
    assert len(store.calls) == 1

    events.append(item_event("b", "bob", 20))
    aggregator.invalidate("recent-items")
    items = asyncio.run(aggregator.fetch_global_recent(5))
    assert [item.id for item in items] == ["b", "a"]
    assert len(store.calls) == 2


def list_event(event_id, author, created_at, title, description="", topics=()):
    tags = [["title", title], ["description", description]] + [["t", topic] for topic in topics]
    return make_event(event_id, author, 9998, created_at, tags)


def test_list_queries_and_search():
    store = MemoryEventStore(
        [
            list_event("l1", "alice", 10, "Night Drive", "Synth classics", ["synthwave"]),
            list_event("l2", "bob", 20, "Porch Songs", "Acoustic evenings", ["folk"]),
            list_event("l3", "alice", 30, "Focus", "Instrumental work music", ["ambient"]),
        ]
    )
    aggregator = ContentAggregator(store)

    recent = asyncio.run(aggregator.fetch_recent_lists(2))
    assert [found.id for found in recent] == ["l3", "l2"]
    assert asyncio.run(aggregator.fetch_list("l2")).title == "Porch Songs"
    assert asyncio.run(aggregator.fetch_list("missing")) is None
    assert [found.id for found in asyncio.run(aggregator.fetch_lists_by_tag("FOLK"))] == ["l2"]
    assert [found.id for found in asyncio.run(aggregator.fetch_lists_by_author("alice"))] == ["l3", "l1"]
    assert [found.id for found in asyncio.run(aggregator.search_lists("synth"))] == ["l1"]
    assert [found.id for found in asyncio.run(aggregator.search_lists("ACOUSTIC"))] == ["l2"]
    assert len(asyncio.run(aggregator.search_lists("  "))) == 3


def test_failed_list_query_returns_empty():
    def handler(query_filter):
        raise StoreError("gateway down")

    assert asyncio.run(ContentAggregator(RecordingStore(handler)).fetch_recent_lists()) == []


def test_activity_feed_merges_trusted_lists_and_items():
    store = MemoryEventStore(
        [
            list_event("l1", "alice", 10, "Night Drive"),
            list_event("l2", "stranger", 40, "Spam"),
            item_event("i1", "alice", 30, list_id="l1"),
            item_event("i2", "stranger", 50, list_id="l1"),
            item_event("i3", "bob", 20, list_id="l1"),
        ]
    )
    graph = TrustGraph.build("viewer", {"alice"}, {"bob"})
    aggregator = ContentAggregator(store)

    trusted = asyncio.run(aggregator.activity_feed(graph, "trusted", limit=10))
    assert trusted.mode == "trusted"
    assert [(entry.kind, entry.id) for entry in trusted.entries] == [
        ("track_added", "i1"),
        ("track_added", "i3"),
        ("list_created", "l1"),
    ]
    assert trusted.entries[0].list_title == "Night Drive"

    everyone = asyncio.run(aggregator.activity_feed(graph, "global", limit=3))
    assert everyone.mode == "global"
    assert [entry.id for entry in everyone.entries] == ["i2", "l2", "i1"]


def test_activity_feed_falls_back_to_global_without_follows():
    store = MemoryEventStore([item_event("i1", "stranger", 5)])
    feed = asyncio.run(ContentAggregator(store).activity_feed(TrustGraph.empty("viewer"), "trusted"))
    assert feed.mode == "global"
    assert [entry.id for entry in feed.entries] == ["i1"]


def test_filtered_list_items_respect_trust_mode():
    store = MemoryEventStore(
        [
            item_event("a", "alice", 10, list_id="list-1"),
            item_event("s", "stranger", 20, list_id="list-1"),
            item_event("b", "bob", 30, list_id="list-1"),
            item_event("o", "alice", 40, list_id="list-2"),
        ]
    )
    aggregator = ContentAggregator(store)
    graph = TrustGraph.build("viewer", {"alice"}, {"bob"})

    trusted = asyncio.run(aggregator.fetch_filtered_list_items("list-1", graph, "trusted"))
    everyone = asyncio.run(aggregator.fetch_filtered_list_items("list-1", graph, "global"))
    fallback = asyncio.run(aggregator.fetch_filtered_list_items("list-1", TrustGraph.empty("viewer"), "trusted"))

    assert [item.id for item in trusted] == ["b", "a"]
    assert [item.id for item in everyone] == ["b", "s", "a"]
    assert [item.id for item in fallback] == ["b", "s", "a"]
