"""Platform/aggregator label canonicalization.

Resolution order for a raw label:
  1. Exact case-insensitive match against cached variants.
  2. Bidirectional substring match; first hit in cache order wins.
  3. Register the label as an inactive ``unknown`` platform for review.

The match decision (:func:`match_platform`) is pure; the write-on-miss side
effect goes through the :class:`PlatformStore` port.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone

import structlog

from savingslens.db import ReferenceStoreError
from savingslens.models import UNKNOWN_PLATFORM, PlatformMatch, PlatformReferenceEntry
from savingslens.platforms.cache import DEFAULT_TTL_SECONDS, PlatformCache
from savingslens.platforms.store import PlatformStore

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Pure matching
# ---------------------------------------------------------------------------


def match_platform(
    label: str,
    entries: Mapping[str, PlatformReferenceEntry],
) -> tuple[PlatformReferenceEntry, str] | None:
    """Match a cleaned *label* against lower-cased variant *entries*.

    Returns ``(entry, reason)`` with reason ``exact_match`` or
    ``partial_match``, or ``None`` when nothing matches.
    """
    key = label.lower()
    if not key:
        return None

    exact = entries.get(key)
    if exact is not None:
        return exact, "exact_match"

    for variant, entry in entries.items():
        if variant and (key in variant or variant in key):
            logger.debug("platform_partial_match", label=label, variant=variant)
            return entry, "partial_match"
    return None


def split_embedded_label(
    text: str,
    entries: Iterable[PlatformReferenceEntry],
) -> tuple[str, PlatformReferenceEntry] | None:
    """Split a platform variant off the end of an aggregator listing name.

    ``"AlRayan Bank Raisin UK - 1 Year Fixed"`` with a ``"Raisin UK"`` variant
    yields ``("AlRayan Bank", <Raisin UK entry>)``. Longer variants are tried
    first so ``"Raisin UK"`` wins over ``"Raisin"``.
    """
    cleaned = text.strip()
    if not cleaned:
        return None

    candidates = sorted(
        (e for e in entries if e.is_active and e.platform_variant.strip()),
        key=lambda e: len(e.platform_variant),
        reverse=True,
    )
    for entry in candidates:
        variant = re.escape(entry.platform_variant.strip())
        pattern = re.compile(rf"^(.+?)\s+({variant})(?:\s|$|\s*[-–—].*$)", re.IGNORECASE)
        match = pattern.match(cleaned)
        if match:
            return match.group(1).strip(), entry
    return None


# ---------------------------------------------------------------------------
# Canonicalizer
# ---------------------------------------------------------------------------


class PlatformCanonicalizer:
    """Resolves raw platform labels to canonical ids through a TTL cache."""

    def __init__(
        self,
        store: PlatformStore,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._cache = PlatformCache(store, ttl_seconds=ttl_seconds, clock=clock)
        self._now = now
        self._unknown_labels: set[str] = set()
        # Labels known to be in the store; failed writes are retried on the next sighting.
        self._registered: set[str] = set()

    @property
    def cache(self) -> PlatformCache:
        return self._cache

    def canonicalize(self, raw_label: object, source_tag: str = "unknown") -> PlatformMatch:
        """Resolve *raw_label* to its canonical platform id.

        Never raises: a reference-store failure yields an unmatched result
        with reason ``lookup_error``.
        """
        if not isinstance(raw_label, str) or not raw_label.strip():
            return PlatformMatch(
                canonical_id=UNKNOWN_PLATFORM,
                raw_label=raw_label,
                matched=False,
                reason="invalid_input",
            )

        label = raw_label.strip()
        try:
            entries = self._cache.entries()
        except ReferenceStoreError as exc:
            logger.warning("platform_cache_unavailable", label=label, error=str(exc))
            return PlatformMatch(
                canonical_id=UNKNOWN_PLATFORM,
                raw_label=label,
                matched=False,
                reason="lookup_error",
            )

        found = match_platform(label, entries)
        if found is not None:
            entry, reason = found
            return PlatformMatch(
                canonical_id=entry.canonical_name,
                raw_label=label,
                matched=True,
                reason=reason,
                platform_type=entry.platform_type,
                is_active=entry.is_active,
            )

        logger.debug("unknown_platform_detected", label=label, source=source_tag)
        self._register_unknown(label, source_tag)
        return PlatformMatch(
            canonical_id=UNKNOWN_PLATFORM,
            raw_label=label,
            matched=False,
            reason="not_found",
        )

    def batch_canonicalize(
        self, raw_labels: Iterable[object], source_tag: str = "unknown"
    ) -> list[PlatformMatch]:
        return [self.canonicalize(label, source_tag) for label in raw_labels]

    def split_label(self, text: str) -> tuple[str, PlatformReferenceEntry] | None:
        """Split an embedded platform label off *text* using the cached variants."""
        try:
            entries = self._cache.entries()
        except ReferenceStoreError as exc:
            logger.warning("platform_cache_unavailable", text=text, error=str(exc))
            return None
        return split_embedded_label(text, entries.values())

    def _register_unknown(self, label: str, source_tag: str) -> None:
        """Queue *label* for review, at most once."""
        self._unknown_labels.add(label)
        if label in self._registered:
            return

        try:
            if self._store.platform_exists(label):
                logger.debug("platform_already_registered", label=label)
                self._registered.add(label)
                return
            notes = (
                f"Auto-detected from {source_tag} scraper on "
                f"{self._now().isoformat()} - requires review"
            )
            self._store.register_platform(label, notes)
        except ReferenceStoreError as exc:
            logger.warning("platform_auto_register_failed", label=label, error=str(exc))
            return
        self._registered.add(label)
        logger.info("unknown_platform_registered", label=label, source=source_tag)

    def get_statistics(self) -> dict:
        return {
            "cache_size": len(self._cache),
            "unknown_platforms_found": sorted(self._unknown_labels),
            "unknown_count": len(self._unknown_labels),
            "last_cache_update": self._cache.loaded_at,
        }

    def reset_unknown_tracking(self) -> None:
        """Forget labels seen so far; call at the start of a new run."""
        self._unknown_labels.clear()
        self._registered.clear()
