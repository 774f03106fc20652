"""Event store clients used by the trust and aggregation layers."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

import aiohttp

from .errors import MalformedEvent, StoreError
from .events import EventDraft, EventRecord, Identity, QueryFilter, latest_by_coordinate
from .parsing import draft_to_record

logger = logging.getLogger(__name__)


class EventStore(Protocol):
    """Contract of the event store collaborator.

    ``query`` returns raw wire-shaped records; malformed ones are the
    caller's to drop. A timeout or transport problem raises.
    """

    async def query(self, filters: Sequence[QueryFilter], timeout: float) -> List[Mapping[str, object]]:
        ...

    async def publish(self, draft: EventDraft) -> Mapping[str, object]:
        ...


class MemoryEventStore:
    """In-process store that evaluates filters locally.

    Results are returned newest first, one ``limit`` per filter, with
    replaceable events collapsed to their latest version.
    """

    def __init__(self, events: Iterable[Mapping[str, object]] = (), author: Optional[Identity] = None) -> None:
        self.author = author
        self._events: Dict[str, EventRecord] = {}
        self.queries: List[List[QueryFilter]] = []
        for raw in events:
            try:
                record = EventRecord.from_dict(raw)
            except MalformedEvent as exc:
                logger.debug("Skipping malformed seed event: %s", exc)
                continue
            self._events[record.id] = record

    def add(self, record: EventRecord) -> None:
        self._events[record.id] = record

    async def query(self, filters: Sequence[QueryFilter], timeout: float) -> List[Mapping[str, object]]:
        self.queries.append(list(filters))
        ordered = sorted(self._events.values(), key=lambda record: (record.created_at, record.id), reverse=True)
        ordered = latest_by_coordinate(ordered)
        matched: Dict[str, EventRecord] = {}
        for query_filter in filters:
            hits = [record for record in ordered if query_filter.matches(record)]
            if query_filter.limit is not None:
                hits = hits[: query_filter.limit]
            for record in hits:
                matched.setdefault(record.id, record)
        return [record.to_dict() for record in matched.values()]

    async def publish(self, draft: EventDraft) -> Mapping[str, object]:
        if not self.author:
            raise StoreError("MemoryEventStore needs an author to publish")
        record = draft_to_record(draft, self.author, int(time.time()))
        self.add(record)
        return record.to_dict()


class HttpEventStore:
    """Client for a JSON gateway in front of the relay pool.

    ``POST {base}/query`` takes ``{"filters": [...]}`` and answers
    ``{"events": [...]}``; ``POST {base}/publish`` takes a draft and answers
    with the stored event.
    """

    def __init__(self, base_url: str, session: Optional[aiohttp.ClientSession] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "HttpEventStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            connector = aiohttp.TCPConnector(limit_per_host=8)
            self._session = aiohttp.ClientSession(connector=connector)
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def _post(self, path: str, payload: Mapping[str, object], timeout: float) -> object:
        url = f"{self.base_url}{path}"
        session = self._get_session()
        try:
            async with session.post(url, json=payload, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
                response.raise_for_status()
                return await response.json()
        except asyncio.TimeoutError as exc:
            raise StoreError(f"{url} timed out after {timeout}s") from exc
        except aiohttp.ClientError as exc:
            raise StoreError(f"{url} failed: {exc}") from exc

    async def query(self, filters: Sequence[QueryFilter], timeout: float) -> List[Mapping[str, object]]:
        body = await self._post("/query", {"filters": [f.to_dict() for f in filters]}, timeout)
        events = body.get("events") if isinstance(body, dict) else None
        if not isinstance(events, list):
            raise StoreError(f"{self.base_url}/query returned no event list")
        return events

    async def publish(self, draft: EventDraft, timeout: float = 10.0) -> Mapping[str, object]:
        body = await self._post("/publish", draft.to_dict(), timeout)
        if not isinstance(body, dict):
            raise StoreError(f"{self.base_url}/publish returned {type(body).__name__}")
        return body


async def query_with_timeout(
    store: EventStore, filters: Sequence[QueryFilter], timeout: float
) -> List[Mapping[str, object]]:
    """Run ``store.query`` under an explicit deadline."""

    return await asyncio.wait_for(store.query(filters, timeout), timeout=timeout)


__all__ = ["EventStore", "MemoryEventStore", "HttpEventStore", "query_with_timeout"]
