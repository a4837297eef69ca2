"""Platform/aggregator name canonicalization against ``known_platforms``."""

from __future__ import annotations

from savingslens.platforms.cache import PlatformCache
from savingslens.platforms.canonicalizer import (
    PlatformCanonicalizer,
    match_platform,
    split_embedded_label,
)
from savingslens.platforms.store import PlatformStore, PostgresPlatformStore

__all__ = [
    "PlatformCache",
    "PlatformCanonicalizer",
    "PlatformStore",
    "PostgresPlatformStore",
    "match_platform",
    "split_embedded_label",
]
