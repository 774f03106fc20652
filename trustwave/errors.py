"""Exception types raised by the trust and aggregation layers."""
from __future__ import annotations


class TrustWaveError(Exception):
    """Base class for every error raised by the package."""


class ConfigError(TrustWaveError):
    """Raised when a settings or starter pack file cannot be interpreted."""


class StoreError(TrustWaveError):
    """Raised by event store clients when a query or publish fails."""


class MalformedEvent(TrustWaveError):
    """Raised when a raw record is missing a required field."""


class TrustGraphUnavailable(TrustWaveError):
    """Raised when the viewer's own follow list cannot be fetched."""

    def __init__(self, viewer: str, cause: BaseException) -> None:
        super().__init__(f"Could not load follow list for {viewer}: {cause}")
        self.viewer = viewer
        self.cause = cause


__all__ = [
    "TrustWaveError",
    "ConfigError",
    "StoreError",
    "MalformedEvent",
    "TrustGraphUnavailable",
]
