"""Web-of-Trust computation from follow-list events."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AbstractSet, FrozenSet, List, Optional, Set, Tuple

from .cache import TTLCache
from .config import Settings
from .events import (
    EventRecord,
    Identity,
    QueryFilter,
    follow_identities,
    latest_by_author,
    select_authoritative,
)
from .errors import MalformedEvent, TrustGraphUnavailable
from .fanout import chunked, gather_settled
from .store import EventStore, query_with_timeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrustGraph:
    """Identities a viewer trusts, partitioned by depth."""

    viewer: Optional[Identity]
    depth0: FrozenSet[Identity] = field(default_factory=frozenset)
    depth1: FrozenSet[Identity] = field(default_factory=frozenset)
    all: FrozenSet[Identity] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls, viewer: Identity, depth0: AbstractSet[Identity], depth1: AbstractSet[Identity] = frozenset()
    ) -> "TrustGraph":
        depth0 = frozenset(depth0)
        depth1 = frozenset(depth1) - depth0 - {viewer}
        return cls(viewer=viewer, depth0=depth0, depth1=depth1, all=frozenset({viewer}) | depth0 | depth1)

    @classmethod
    def empty(cls, viewer: Optional[Identity] = None) -> "TrustGraph":
        return cls(viewer=viewer, all=frozenset({viewer}) if viewer else frozenset())

    def depth_of(self, identity: Optional[Identity]) -> Optional[int]:
        if not identity:
            return None
        if identity in self.depth0:
            return 0
        if identity in self.depth1:
            return 1
        return None

    def __contains__(self, identity: object) -> bool:
        return identity in self.all


def _records(raws) -> List[EventRecord]:
    records: List[EventRecord] = []
    for raw in raws:
        try:
            records.append(EventRecord.from_dict(raw))
        except MalformedEvent as exc:
            logger.debug("Dropping malformed follow list: %s", exc)
    return records


async def fetch_follow_record(
    store: EventStore, identity: Identity, timeout: float, kind: int = 3
) -> Optional[EventRecord]:
    """Return the authoritative follow list of ``identity``; transport errors propagate."""

    raws = await query_with_timeout(store, [QueryFilter(kinds=[kind], authors=[identity], limit=1)], timeout)
    return select_authoritative(
        record for record in _records(raws) if record.pubkey == identity and record.kind == kind
    )


async def fetch_follows(store: EventStore, identity: Identity, timeout: float = 5.0, kind: int = 3) -> List[Identity]:
    """Ordered list of identities ``identity`` follows."""

    if not identity:
        return []
    return follow_identities(await fetch_follow_record(store, identity, timeout, kind))


async def _fetch_follow_batch(
    store: EventStore, batch: List[Identity], timeout: float, kind: int
) -> List[EventRecord]:
    raws = await query_with_timeout(store, [QueryFilter(kinds=[kind], authors=batch, limit=len(batch))], timeout)
    members = set(batch)
    return [record for record in _records(raws) if record.pubkey in members and record.kind == kind]


async def build_trust_graph(
    store: EventStore,
    viewer: Identity,
    *,
    expand_depth1: bool = True,
    timeout: float = 10.0,
    batch_size: int = 50,
    kind: int = 3,
) -> TrustGraph:
    """Compute the Web of Trust for ``viewer``.

    Depth 0 is the viewer's latest follow list. With ``expand_depth1`` the
    follow lists of every depth 0 identity are fetched in concurrent batches
    and their follows, minus depth 0 and the viewer, form depth 1. A batch
    that fails is logged and skipped. Only a failure of the viewer's own
    follow-list query raises, as ``TrustGraphUnavailable``.
    """

    try:
        record = await fetch_follow_record(store, viewer, timeout, kind)
    except Exception as exc:
        raise TrustGraphUnavailable(viewer, exc) from exc

    depth0 = frozenset(identity for identity in follow_identities(record) if identity)
    if not depth0:
        return TrustGraph.empty(viewer)
    if not expand_depth1:
        return TrustGraph.build(viewer, depth0)

    batches = chunked(sorted(depth0), batch_size)
    outcomes = await gather_settled(_fetch_follow_batch(store, batch, timeout, kind) for batch in batches)

    depth1: Set[Identity] = set()
    failed = 0
    for batch, outcome in zip(batches, outcomes):
        if not outcome.ok:
            failed += 1
            logger.warning("Error fetching follows batch of %d authors: %s", len(batch), outcome.error)
            continue
        for latest in latest_by_author(outcome.value or []).values():
            for identity in follow_identities(latest):
                if identity not in depth0 and identity != viewer:
                    depth1.add(identity)

    graph = TrustGraph.build(viewer, depth0, depth1)
    logger.info(
        "Trust graph for %s: %d direct, %d extended (%d/%d batches failed)",
        viewer,
        len(graph.depth0),
        len(graph.depth1),
        failed,
        len(batches),
    )
    return graph


class TrustGraphService:
    """Cached access to trust graphs keyed by viewer."""

    def __init__(
        self,
        store: EventStore,
        settings: Optional[Settings] = None,
        cache: Optional[TTLCache] = None,
        expand_depth1: bool = True,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.cache: TTLCache = cache if cache is not None else TTLCache(default_ttl=self.settings.trust_ttl)
        self.expand_depth1 = expand_depth1

    async def get(self, viewer: Optional[Identity]) -> TrustGraph:
        if not viewer:
            return TrustGraph.empty()
        key = ("wot", viewer, self.expand_depth1)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        graph = await build_trust_graph(
            self.store,
            viewer,
            expand_depth1=self.expand_depth1,
            timeout=self.settings.follow_timeout,
            batch_size=self.settings.follow_batch_size,
            kind=self.settings.kinds.follow_list,
        )
        self.cache.set(key, graph, ttl=self.settings.trust_ttl)
        return graph

    def invalidate(self, viewer: Identity) -> None:
        for expand in (True, False):
            self.cache.invalidate(("wot", viewer, expand))

    async def is_trusted(self, viewer: Optional[Identity], identity: Optional[Identity]) -> Tuple[bool, Optional[int]]:
        """Whether ``identity`` is in the viewer's WoT, and at which depth."""

        graph = await self.get(viewer)
        depth = graph.depth_of(identity)
        return depth is not None, depth


__all__ = [
    "TrustGraph",
    "TrustGraphService",
    "build_trust_graph",
    "fetch_follows",
    "fetch_follow_record",
]
