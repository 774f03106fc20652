"""Publishing playlists, entries and follow lists with cache invalidation."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from .aggregator import ContentAggregator
from .config import StarterPack
from .events import EventRecord, Identity
from .parsing import TrackMetadata, follow_list_draft, item_draft, list_draft
from .store import EventStore
from .trust import TrustGraphService

logger = logging.getLogger(__name__)


class Publisher:
    """Publishes drafts through the store and drops results they make stale."""

    def __init__(self, store: EventStore, trust: TrustGraphService, aggregator: ContentAggregator) -> None:
        self.store = store
        self.trust = trust
        self.aggregator = aggregator

    @property
    def kinds(self):
        return self.aggregator.settings.kinds

    async def create_list(
        self,
        title: str,
        description: str = "",
        image: Optional[str] = None,
        tags: Iterable[str] = (),
    ) -> EventRecord:
        record = EventRecord.from_dict(
            await self.store.publish(list_draft(title, description, image, tags, kinds=self.kinds))
        )
        for prefix in ("music-lists", "music-lists-by-author", "music-lists-by-tag", "recent-items"):
            self.aggregator.invalidate(prefix)
        logger.info("Published list %s (%s)", record.id, title)
        return record

    async def add_track(self, list_id: str, track: TrackMetadata, annotation: Optional[str] = None) -> EventRecord:
        record = EventRecord.from_dict(
            await self.store.publish(item_draft(list_id, track, annotation, kinds=self.kinds))
        )
        for prefix in ("list-items", "recent-items", "trusted-items", "author-items"):
            self.aggregator.invalidate(prefix)
        self.trust.invalidate(record.pubkey)
        logger.info("Added %s to list %s", track.title, list_id)
        return record

    async def follow(self, viewer: Identity, identities: Sequence[Identity]) -> EventRecord:
        """Replace the viewer's follow list with ``identities``."""

        record = EventRecord.from_dict(await self.store.publish(follow_list_draft(identities, kinds=self.kinds)))
        self.trust.invalidate(viewer)
        self.aggregator.invalidate("trusted-items")
        logger.info("Published follow list for %s with %d identities", viewer, len(identities))
        return record

    async def follow_starter_packs(
        self, viewer: Identity, packs: Sequence[StarterPack], genres: Iterable[str]
    ) -> EventRecord:
        chosen = set(genres)
        curators: List[Identity] = []
        for pack in packs:
            if pack.genre not in chosen:
                continue
            for curator in pack.curators:
                if curator not in curators:
                    curators.append(curator)
        if not curators:
            raise ValueError("No curators in the selected starter packs")
        return await self.follow(viewer, curators)


__all__ = ["Publisher"]
