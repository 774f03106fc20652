"""Batched, failure-tolerant aggregation of playlists and playlist entries."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Hashable, List, Mapping, Optional, Sequence

from .cache import TTLCache
from .config import Settings
from .errors import MalformedEvent
from .events import EventRecord, Identity, QueryFilter, latest_by_coordinate
from .fanout import chunked, gather_settled
from .filtering import GLOBAL, TRUSTED, apply_filter, effective_filter
from .parsing import ContentItem, ContentList, parse_items, parse_lists
from .store import EventStore, query_with_timeout
from .trust import TrustGraph

logger = logging.getLogger(__name__)


@dataclass
class ItemScope:
    """Which playlist entries to fetch.

    ``authors=None`` means any author; an empty set means nobody.
    """

    list_id: Optional[str] = None
    authors: Optional[AbstractSet[Identity]] = None
    limit: int = 50

    def cache_key(self) -> Hashable:
        authors = None if self.authors is None else frozenset(self.authors)
        return (self.list_id, authors, self.limit)


@dataclass
class ActivityEntry:
    """One row of the merged activity feed."""

    id: str
    kind: str
    author: Identity
    timestamp: int
    list: Optional[ContentList] = None
    item: Optional[ContentItem] = None
    list_title: Optional[str] = None


@dataclass
class ActivityFeed:
    mode: str
    entries: List[ActivityEntry] = field(default_factory=list)


def _records(raws: Sequence[Mapping[str, object]]) -> List[EventRecord]:
    """Coerce, de-duplicate by id and collapse replaceable versions."""

    seen: Dict[str, EventRecord] = {}
    for raw in raws:
        try:
            record = EventRecord.from_dict(raw)
        except MalformedEvent as exc:
            logger.debug("Dropping malformed record: %s", exc)
            continue
        seen.setdefault(record.id, record)
    return latest_by_coordinate(list(seen.values()))


def sort_newest_first(values: Sequence) -> List:
    """Stable sort on ``created_at`` descending; ties keep arrival order."""

    return sorted(values, key=lambda value: value.created_at, reverse=True)


class ContentAggregator:
    """Fetches and merges content across batches of authors."""

    def __init__(
        self,
        store: EventStore,
        settings: Optional[Settings] = None,
        cache: Optional[TTLCache] = None,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.cache = cache

    # Caching ---------------------------------------------------------------

    def _cached(self, key: Hashable):
        return None if self.cache is None else self.cache.get(key)

    def _remember(self, key: Hashable, value, ttl: float) -> None:
        if self.cache is not None:
            self.cache.set(key, value, ttl=ttl)

    def invalidate(self, prefix: str) -> None:
        if self.cache is not None:
            dropped = self.cache.invalidate_prefix(prefix)
            logger.debug("Invalidated %d cached %s results", dropped, prefix)

    # Items -----------------------------------------------------------------

    def _item_filter(self, scope: ItemScope, authors: Optional[List[Identity]], limit: int) -> QueryFilter:
        tag_filters = {"z": [scope.list_id]} if scope.list_id else {}
        return QueryFilter(
            kinds=list(self.settings.kinds.items),
            authors=authors,
            tag_filters=tag_filters,
            limit=limit,
        )

    async def fetch_items(self, scope: ItemScope, timeout: Optional[float] = None) -> List[ContentItem]:
        """Fetch entries for ``scope``, newest first, at most ``scope.limit``.

        Author sets are split into batches queried concurrently. A failed
        batch is logged and contributes nothing; malformed records are
        dropped.
        """

        timeout = self.settings.item_timeout if timeout is None else timeout
        if scope.limit <= 0:
            return []
        if scope.authors is None:
            filters = [self._item_filter(scope, None, scope.limit)]
            batches: List[Optional[List[Identity]]] = [None]
        else:
            if not scope.authors:
                return []
            per_batch = min(scope.limit, self.settings.per_batch_cap)
            batches = list(chunked(sorted(scope.authors), self.settings.item_batch_size))
            filters = [self._item_filter(scope, batch, per_batch) for batch in batches]

        outcomes = await gather_settled(query_with_timeout(self.store, [f], timeout) for f in filters)

        raws: List[Mapping[str, object]] = []
        failed = 0
        for index, outcome in enumerate(outcomes):
            if outcome.ok:
                raws.extend(outcome.value or [])
            else:
                failed += 1
                size = "all" if batches[index] is None else len(batches[index] or [])
                logger.warning("Error fetching items batch %d (%s authors): %s", index + 1, size, outcome.error)

        items = sort_newest_first(parse_items(_records(raws), self.settings.kinds))[: scope.limit]
        logger.info("Aggregated %d items from %d batches (%d failed)", len(items), len(outcomes), failed)
        return items

    async def _cached_items(self, prefix: str, scope: ItemScope) -> List[ContentItem]:
        key = (prefix, scope.cache_key())
        cached = self._cached(key)
        if cached is not None:
            return list(cached)
        items = await self.fetch_items(scope)
        self._remember(key, tuple(items), self.settings.item_ttl)
        return items

    async def fetch_global_recent(self, limit: int = 50) -> List[ContentItem]:
        return await self._cached_items("recent-items", ItemScope(limit=limit))

    async def fetch_trusted_recent(self, trust_set: AbstractSet[Identity], limit: int = 50) -> List[ContentItem]:
        return await self._cached_items("trusted-items", ItemScope(authors=frozenset(trust_set), limit=limit))

    async def fetch_by_list(self, list_id: str, limit: int = 200) -> List[ContentItem]:
        if not list_id:
            return []
        return await self._cached_items("list-items", ItemScope(list_id=list_id, limit=limit))

    async def fetch_by_author(self, author: Identity, limit: int = 100) -> List[ContentItem]:
        if not author:
            return []
        return await self._cached_items("author-items", ItemScope(authors=frozenset([author]), limit=limit))

    async def fetch_filtered_list_items(self, list_id: str, graph: TrustGraph, mode: str) -> List[ContentItem]:
        """Entries of one playlist projected through ``graph`` under the effective mode."""

        items = await self.fetch_by_list(list_id)
        return list(apply_filter(items, graph, effective_filter(graph.viewer, graph, mode)))

    # Lists -----------------------------------------------------------------

    async def _query_lists(self, key: Hashable, query_filter: QueryFilter) -> List[ContentList]:
        cached = self._cached(key)
        if cached is not None:
            return list(cached)
        outcome = (await gather_settled([query_with_timeout(self.store, [query_filter], self.settings.list_timeout)]))[0]
        if not outcome.ok:
            logger.warning("Error fetching lists %s: %s", query_filter.to_dict(), outcome.error)
            return []
        lists = sort_newest_first(parse_lists(_records(outcome.value or []), self.settings.kinds))
        if query_filter.limit is not None:
            lists = lists[: query_filter.limit]
        self._remember(key, tuple(lists), self.settings.list_ttl)
        return lists

    def _list_filter(self, **kwargs) -> QueryFilter:
        return QueryFilter(kinds=list(self.settings.kinds.lists), **kwargs)

    async def fetch_recent_lists(self, limit: int = 20) -> List[ContentList]:
        return await self._query_lists(("music-lists", limit), self._list_filter(limit=limit))

    async def fetch_list(self, list_id: str) -> Optional[ContentList]:
        if not list_id:
            return None
        lists = await self._query_lists(("music-list", list_id), self._list_filter(ids=[list_id]))
        return next((found for found in lists if found.id == list_id), None)

    async def fetch_lists_by_tag(self, tag: str, limit: int = 20) -> List[ContentList]:
        if not tag:
            return []
        tag = tag.lower()
        return await self._query_lists(
            ("music-lists-by-tag", tag, limit), self._list_filter(tag_filters={"t": [tag]}, limit=limit)
        )

    async def fetch_lists_by_author(self, author: Identity, limit: int = 20) -> List[ContentList]:
        if not author:
            return []
        return await self._query_lists(
            ("music-lists-by-author", author, limit), self._list_filter(authors=[author], limit=limit)
        )

    async def search_lists(self, query: str, limit: int = 50) -> List[ContentList]:
        """Case-insensitive match on title, description and topic tags."""

        lists = await self.fetch_recent_lists(limit)
        needle = query.strip().lower()
        if not needle:
            return lists
        return [
            found
            for found in lists
            if needle in found.title.lower()
            or needle in found.description.lower()
            or any(needle in tag.lower() for tag in found.tags)
        ]

    # Activity --------------------------------------------------------------

    async def activity_feed(self, graph: TrustGraph, mode: str = TRUSTED, limit: int = 30) -> ActivityFeed:
        """Merge recent playlists and entries, newest first, under the effective mode."""

        effective = effective_filter(graph.viewer, graph, mode)
        lists = list(apply_filter(await self.fetch_recent_lists(limit), graph, effective))
        if effective == GLOBAL:
            items = await self.fetch_global_recent(limit)
        else:
            items = await self.fetch_trusted_recent(graph.all, limit)

        titles = {found.id: found.title for found in lists}
        entries = [
            ActivityEntry(
                id=found.id,
                kind="list_created",
                author=found.author,
                timestamp=found.created_at,
                list=found,
                list_title=found.title,
            )
            for found in lists
        ]
        entries.extend(
            ActivityEntry(
                id=item.id,
                kind="track_added",
                author=item.author,
                timestamp=item.created_at,
                item=item,
                list_title=titles.get(item.list_id),
            )
            for item in items
        )
        entries.sort(key=lambda entry: entry.timestamp, reverse=True)
        return ActivityFeed(mode=effective, entries=entries[:limit])


__all__ = [
    "ItemScope",
    "ActivityEntry",
    "ActivityFeed",
    "ContentAggregator",
    "sort_newest_first",
]
