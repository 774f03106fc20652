"""Raw event records, query filters and the "latest event wins" reducers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .errors import MalformedEvent

Identity = str
TagRow = Tuple[str, ...]

REPLACEABLE_KINDS = range(10000, 20000)
ADDRESSABLE_KINDS = range(30000, 40000)
FOLLOW_LIST_KIND = 3


class TagMap:
    """Ordered multi-map over ``[name, value, ...]`` tag rows.

    ``first`` stops at the first row with a matching name, even when that
    row's value is empty. ``all`` skips rows without a value.
    """

    __slots__ = ("_rows",)

    def __init__(self, rows: Iterable[Sequence[str]] = ()) -> None:
        self._rows: Tuple[TagRow, ...] = tuple(tuple(str(part) for part in row) for row in rows if row)

    def first(self, name: str, default: Optional[str] = None) -> Optional[str]:
        for row in self._rows:
            if row[0] == name:
                return row[1] if len(row) > 1 and row[1] else default
        return default

    def all(self, name: str) -> List[str]:
        return [row[1] for row in self._rows if row[0] == name and len(row) > 1 and row[1]]

    def rows(self, name: str) -> List[TagRow]:
        return [row for row in self._rows if row[0] == name]

    def has(self, name: str, value: str) -> bool:
        return value in self.all(name)

    def to_list(self) -> List[List[str]]:
        return [list(row) for row in self._rows]

    def __iter__(self) -> Iterator[TagRow]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TagMap):
            return NotImplemented
        return self._rows == other._rows

    def __hash__(self) -> int:
        return hash(self._rows)

    def __repr__(self) -> str:
        return f"TagMap({self.to_list()!r})"


@dataclass(frozen=True)
class EventRecord:
    """A signed event as returned by the event store."""

    id: str
    pubkey: Identity
    kind: int
    created_at: int
    tags: TagMap = field(default_factory=TagMap)
    content: str = ""

    @classmethod
    def from_dict(cls, raw: Mapping[str, object]) -> "EventRecord":
        """Build a record from its wire shape, raising ``MalformedEvent`` on bad input."""

        if isinstance(raw, EventRecord):
            return raw
        if not isinstance(raw, Mapping):
            raise MalformedEvent(f"expected a mapping, got {type(raw).__name__}")
        created_at = raw.get("created_at", raw.get("createdAt"))
        event_id = raw.get("id")
        pubkey = raw.get("pubkey")
        kind = raw.get("kind")
        if not isinstance(event_id, str) or not event_id:
            raise MalformedEvent("event is missing an id")
        if not isinstance(pubkey, str) or not pubkey:
            raise MalformedEvent(f"event {event_id} is missing a pubkey")
        if isinstance(kind, bool) or not isinstance(kind, int):
            raise MalformedEvent(f"event {event_id} has no integer kind")
        if isinstance(created_at, bool) or not isinstance(created_at, int):
            raise MalformedEvent(f"event {event_id} has no integer created_at")
        tags = raw.get("tags", [])
        if not isinstance(tags, (list, tuple)) or not all(isinstance(row, (list, tuple)) for row in tags):
            raise MalformedEvent(f"event {event_id} has malformed tags")
        content = raw.get("content", "")
        return cls(
            id=event_id,
            pubkey=pubkey,
            kind=kind,
            created_at=created_at,
            tags=TagMap(tags),
            content=content if isinstance(content, str) else "",
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "kind": self.kind,
            "created_at": self.created_at,
            "tags": self.tags.to_list(),
            "content": self.content,
        }

    @property
    def coordinate(self) -> Optional[Tuple[int, Identity, str]]:
        """Replacement coordinate, or ``None`` for regular events."""

        if self.kind == FOLLOW_LIST_KIND or self.kind in REPLACEABLE_KINDS:
            return (self.kind, self.pubkey, "")
        if self.kind in ADDRESSABLE_KINDS:
            return (self.kind, self.pubkey, self.tags.first("d", "") or "")
        return None


@dataclass
class EventDraft:
    """Unsigned event handed to the store for publishing."""

    kind: int
    content: str = ""
    tags: List[List[str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {"kind": self.kind, "content": self.content, "tags": [list(row) for row in self.tags]}


@dataclass
class QueryFilter:
    """Subscription filter understood by the event store."""

    kinds: Optional[List[int]] = None
    authors: Optional[List[Identity]] = None
    ids: Optional[List[str]] = None
    tag_filters: Dict[str, List[str]] = field(default_factory=dict)
    limit: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {}
        if self.ids is not None:
            payload["ids"] = list(self.ids)
        if self.kinds is not None:
            payload["kinds"] = list(self.kinds)
        if self.authors is not None:
            payload["authors"] = list(self.authors)
        for name, values in self.tag_filters.items():
            payload[f"#{name}"] = list(values)
        if self.limit is not None:
            payload["limit"] = self.limit
        return payload

    def matches(self, record: EventRecord) -> bool:
        if self.ids is not None and record.id not in self.ids:
            return False
        if self.kinds is not None and record.kind not in self.kinds:
            return False
        if self.authors is not None and record.pubkey not in self.authors:
            return False
        for name, values in self.tag_filters.items():
            if not any(record.tags.has(name, value) for value in values):
                return False
        return True


def _authority_key(record: EventRecord) -> Tuple[int, str]:
    # Equal timestamps fall back to the greatest event id.
    return (record.created_at, record.id)


def select_authoritative(records: Iterable[EventRecord]) -> Optional[EventRecord]:
    """Return the most recent record, or ``None`` for an empty input."""

    best: Optional[EventRecord] = None
    for record in records:
        if best is None or _authority_key(record) > _authority_key(best):
            best = record
    return best


def latest_by_author(records: Iterable[EventRecord]) -> Dict[Identity, EventRecord]:
    """Keep only the authoritative record per author."""

    grouped: Dict[Identity, List[EventRecord]] = {}
    for record in records:
        grouped.setdefault(record.pubkey, []).append(record)
    latest: Dict[Identity, EventRecord] = {}
    for author, group in grouped.items():
        chosen = select_authoritative(group)
        if chosen is not None:
            latest[author] = chosen
    return latest


def latest_by_coordinate(records: Sequence[EventRecord]) -> List[EventRecord]:
    """Collapse replaceable records to one per coordinate, preserving order.

    Regular events pass through untouched. A surviving replaceable record
    keeps the position of the first record seen for its coordinate.
    """

    winners: Dict[Tuple[int, Identity, str], EventRecord] = {}
    for record in records:
        coordinate = record.coordinate
        if coordinate is None:
            continue
        current = winners.get(coordinate)
        if current is None or _authority_key(record) > _authority_key(current):
            winners[coordinate] = record

    result: List[EventRecord] = []
    emitted = set()
    for record in records:
        coordinate = record.coordinate
        if coordinate is None:
            result.append(record)
        elif coordinate not in emitted:
            emitted.add(coordinate)
            result.append(winners[coordinate])
    return result


def follow_identities(record: Optional[EventRecord]) -> List[Identity]:
    """Declared follows of a follow-list record, in declaration order, without repeats."""

    if record is None:
        return []
    seen: Dict[Identity, None] = {}
    for identity in record.tags.all("p"):
        seen.setdefault(identity, None)
    return list(seen)


__all__ = [
    "Identity",
    "TagMap",
    "EventRecord",
    "EventDraft",
    "QueryFilter",
    "FOLLOW_LIST_KIND",
    "select_authoritative",
    "latest_by_author",
    "latest_by_coordinate",
    "follow_identities",
]
