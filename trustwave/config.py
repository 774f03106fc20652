"""Configuration helpers for the trust and aggregation layers."""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from .errors import ConfigError


@dataclass(frozen=True)
class Kinds:
    """Event kinds recognised by the parsing layer."""

    follow_list: int = 3
    list_create: int = 9998
    list_replaceable: int = 39998
    item_add: int = 9999
    item_replaceable: int = 39999

    @property
    def lists(self) -> Tuple[int, int]:
        return (self.list_create, self.list_replaceable)

    @property
    def items(self) -> Tuple[int, int]:
        return (self.item_add, self.item_replaceable)


@dataclass
class Settings:
    """Tunables for querying, batching and caching.

    Timeouts and TTLs are expressed in seconds.
    """

    gateway_url: Optional[str] = None
    kinds: Kinds = field(default_factory=Kinds)
    follow_batch_size: int = 50
    item_batch_size: int = 100
    per_batch_cap: int = 100
    follow_timeout: float = 10.0
    item_timeout: float = 8.0
    list_timeout: float = 3.0
    trust_ttl: float = 300.0
    item_ttl: float = 30.0
    list_ttl: float = 120.0

    def __post_init__(self) -> None:
        for name in ("follow_batch_size", "item_batch_size", "per_batch_cap"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be a positive integer")


@dataclass
class StarterPack:
    """A curated group of curators offered during onboarding."""

    genre: str
    display_name: str
    description: str
    curators: List[str]


def _read_yaml(path: Path) -> object:
    try:
        return yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"Could not parse {path}: {exc}") from exc


def load_settings(path: Optional[Path]) -> Settings:
    """Load ``Settings`` from a YAML mapping; a missing file yields defaults."""

    if path is None or not path.exists():
        return Settings()

    raw = _read_yaml(path) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown settings in {path}: {', '.join(unknown)}")

    values: Dict[str, object] = dict(raw)
    kinds = values.pop("kinds", None)
    if kinds is not None:
        if not isinstance(kinds, dict):
            raise ConfigError("'kinds' must be a mapping")
        try:
            values["kinds"] = Kinds(**{key: int(value) for key, value in kinds.items()})
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid kinds in {path}: {exc}") from exc
    try:
        return Settings(**values)  # type: ignore[arg-type]
    except TypeError as exc:
        raise ConfigError(f"Invalid settings in {path}: {exc}") from exc


def load_starter_packs(path: Path) -> List[StarterPack]:
    """Load onboarding starter packs from ``starter_packs.yaml``."""

    raw = _read_yaml(path) or []
    if not isinstance(raw, list):
        raise ConfigError(f"{path} must contain a list of starter packs")
    packs: List[StarterPack] = []
    for entry in raw:
        try:
            genre = str(entry["genre"])
        except (KeyError, TypeError) as exc:
            raise ConfigError(f"Starter pack without a genre in {path}") from exc
        packs.append(
            StarterPack(
                genre=genre,
                display_name=str(entry.get("display_name", genre.title())),
                description=str(entry.get("description", "")),
                curators=[str(curator) for curator in entry.get("curators", []) or []],
            )
        )
    return packs


__all__ = ["Kinds", "Settings", "StarterPack", "load_settings", "load_starter_packs"]
