"""Projection of content through a viewer's Web of Trust."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, TypeVar

from .events import Identity
from .trust import TrustGraph

GLOBAL = "global"
TRUSTED = "trusted"
MODES = (GLOBAL, TRUSTED)

T = TypeVar("T")


def _check_mode(mode: str) -> str:
    if mode not in MODES:
        raise ValueError(f"Unknown filter mode {mode!r}; expected one of {', '.join(MODES)}")
    return mode


def apply_filter(items: Sequence[T], graph: TrustGraph, mode: str) -> Sequence[T]:
    """Return ``items`` unchanged in global mode, or only trusted authors' items."""

    if _check_mode(mode) == GLOBAL:
        return items
    return [item for item in items if item.author in graph.all]  # type: ignore[attr-defined]


def can_use_trusted(viewer: Optional[Identity], graph: Optional[TrustGraph]) -> bool:
    return bool(viewer) and graph is not None and bool(graph.depth0)


def effective_filter(viewer: Optional[Identity], graph: Optional[TrustGraph], requested: str) -> str:
    """Resolve the requested mode, falling back to global without trust data."""

    if _check_mode(requested) == TRUSTED and can_use_trusted(viewer, graph):
        return TRUSTED
    return GLOBAL


@dataclass
class FilterState:
    """The user's preferred mode, kept even while it cannot apply."""

    preferred: str = TRUSTED

    def __post_init__(self) -> None:
        _check_mode(self.preferred)

    def toggle(self) -> str:
        self.preferred = GLOBAL if self.preferred == TRUSTED else TRUSTED
        return self.preferred

    def select(self, mode: str) -> None:
        self.preferred = _check_mode(mode)

    def effective(self, viewer: Optional[Identity], graph: Optional[TrustGraph]) -> str:
        return effective_filter(viewer, graph, self.preferred)


__all__ = [
    "GLOBAL",
    "TRUSTED",
    "MODES",
    "apply_filter",
    "can_use_trusted",
    "effective_filter",
    "FilterState",
]
