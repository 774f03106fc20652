"""Conversion between raw events and playlist domain objects."""
from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Tuple, Union

from .config import Kinds
from .errors import MalformedEvent
from .events import EventDraft, EventRecord, Identity

logger = logging.getLogger(__name__)

DEFAULT_KINDS = Kinds()

RawEvent = Union[EventRecord, Mapping[str, object]]


@dataclass(frozen=True)
class ContentList:
    """A playlist published by one curator."""

    id: str
    author: Identity
    title: str
    description: str
    image: Optional[str]
    tags: Tuple[str, ...]
    created_at: int
    event: Optional[EventRecord] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ContentItem:
    """A track added to a playlist."""

    id: str
    author: Identity
    list_id: str
    media_url: str
    title: str
    artist: str
    created_at: int
    annotation: Optional[str] = None
    guid: Optional[str] = None
    feed_url: Optional[str] = None
    value: Optional[str] = None
    artwork_url: Optional[str] = None
    duration: Optional[int] = None
    event: Optional[EventRecord] = field(default=None, compare=False, repr=False)


@dataclass
class TrackMetadata:
    """Track details supplied by the caller when adding to a playlist."""

    title: str
    artist: str
    enclosure_url: str
    guid: Optional[str] = None
    feed_url: Optional[str] = None
    value: Optional[object] = None
    artwork_url: Optional[str] = None
    duration: Optional[int] = None


def _coerce(raw: RawEvent) -> Optional[EventRecord]:
    try:
        return EventRecord.from_dict(raw)
    except MalformedEvent as exc:
        logger.debug("Dropping malformed record: %s", exc)
        return None


def _ordered_unique(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(values))


def parse_list(raw: RawEvent, kinds: Kinds = DEFAULT_KINDS) -> Optional[ContentList]:
    """Parse a playlist event, returning ``None`` for other kinds."""

    record = _coerce(raw)
    if record is None or record.kind not in kinds.lists:
        return None
    tags = record.tags
    return ContentList(
        id=record.id,
        author=record.pubkey,
        title=tags.first("title") or tags.first("names") or "Untitled",
        description=tags.first("description", "") or "",
        image=tags.first("image"),
        tags=_ordered_unique(tags.all("t")),
        created_at=record.created_at,
        event=record,
    )


def _parse_duration(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return None


def parse_item(raw: RawEvent, kinds: Kinds = DEFAULT_KINDS) -> Optional[ContentItem]:
    """Parse a track-add event.

    Items without a list reference (``z``) or a media url (``r``) are
    dropped by returning ``None``.
    """

    record = _coerce(raw)
    if record is None or record.kind not in kinds.items:
        return None
    tags = record.tags
    list_id = tags.first("z")
    media_url = tags.first("r")
    if not list_id or not media_url:
        logger.debug("Dropping item %s without list or media reference", record.id)
        return None
    return ContentItem(
        id=record.id,
        author=record.pubkey,
        list_id=list_id,
        media_url=media_url,
        title=tags.first("title") or "Unknown Track",
        artist=tags.first("artist") or "Unknown Artist",
        created_at=record.created_at,
        annotation=tags.first("annotation"),
        guid=tags.first("guid"),
        feed_url=tags.first("feed"),
        value=tags.first("value"),
        artwork_url=tags.first("artwork"),
        duration=_parse_duration(tags.first("duration")),
        event=record,
    )


def parse_lists(raws: Iterable[RawEvent], kinds: Kinds = DEFAULT_KINDS) -> List[ContentList]:
    return [parsed for parsed in (parse_list(raw, kinds) for raw in raws) if parsed is not None]


def parse_items(raws: Iterable[RawEvent], kinds: Kinds = DEFAULT_KINDS) -> List[ContentItem]:
    return [parsed for parsed in (parse_item(raw, kinds) for raw in raws) if parsed is not None]


def list_draft(
    title: str,
    description: str = "",
    image: Optional[str] = None,
    tags: Iterable[str] = (),
    kinds: Kinds = DEFAULT_KINDS,
) -> EventDraft:
    """Build the unsigned event announcing a new playlist."""

    rows: List[List[str]] = [
        ["names", "playlist", "playlists"],
        ["title", title],
        ["description", description],
        ["required", "r"],
        ["recommended", "title", "artist", "annotation"],
        ["alt", f"Music playlist: {title}"],
    ]
    if image:
        rows.append(["image", image])
    for tag in tags:
        rows.append(["t", tag.lower()])
    return EventDraft(kind=kinds.list_create, content="", tags=rows)


def item_draft(
    list_id: str,
    track: TrackMetadata,
    annotation: Optional[str] = None,
    kinds: Kinds = DEFAULT_KINDS,
) -> EventDraft:
    """Build the unsigned event adding ``track`` to the playlist ``list_id``."""

    rows: List[List[str]] = [
        ["z", list_id],
        ["r", track.enclosure_url],
        ["title", track.title],
        ["artist", track.artist],
        ["alt", f'Added "{track.title}" by {track.artist} to playlist'],
    ]
    if annotation:
        rows.append(["annotation", annotation])
    if track.guid:
        rows.append(["guid", track.guid])
    if track.feed_url:
        rows.append(["feed", track.feed_url])
    if track.value is not None:
        value = track.value if isinstance(track.value, str) else json.dumps(track.value, sort_keys=True)
        rows.append(["value", value])
    if track.artwork_url:
        rows.append(["artwork", track.artwork_url])
    if track.duration is not None:
        rows.append(["duration", str(track.duration)])
    return EventDraft(kind=kinds.item_add, content="", tags=rows)


def follow_list_draft(identities: Iterable[Identity], kinds: Kinds = DEFAULT_KINDS) -> EventDraft:
    return EventDraft(
        kind=kinds.follow_list,
        content="",
        tags=[["p", identity] for identity in _ordered_unique(identities)],
    )


def event_id_for(draft: EventDraft, author: Identity, created_at: int) -> str:
    """Content-addressed id over the canonical serialisation of an event."""

    canonical = json.dumps(
        [0, author, created_at, draft.kind, draft.tags, draft.content],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def draft_to_record(
    draft: EventDraft,
    author: Identity,
    created_at: int,
    event_id: Optional[str] = None,
) -> EventRecord:
    """Stamp a draft into the record the store would return for it."""

    return EventRecord.from_dict(
        {
            "id": event_id or event_id_for(draft, author, created_at),
            "pubkey": author,
            "kind": draft.kind,
            "created_at": created_at,
            "tags": draft.tags,
            "content": draft.content,
        }
    )


__all__ = [
    "ContentList",
    "ContentItem",
    "TrackMetadata",
    "parse_list",
    "parse_item",
    "parse_lists",
    "parse_items",
    "list_draft",
    "item_draft",
    "follow_list_draft",
    "event_id_for",
    "draft_to_record",
]
