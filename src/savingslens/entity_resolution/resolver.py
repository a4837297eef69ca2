"""Identity resolution orchestrator.

Resolves scraped institution names to FRNs through the cascade
cache -> exact -> partial -> fuzzy, flagging names nothing matches for
manual research. Batches are grouped by institution name so each distinct
name is looked up once per run.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from savingslens.config import Settings
from savingslens.db import ReferenceStoreError
from savingslens.entity_resolution.matchers import (
    DEFAULT_FUZZY_THRESHOLD,
    DEFAULT_PARTIAL_MIN_LENGTH,
    LookupQuery,
    Matcher,
    default_matchers,
)
from savingslens.entity_resolution.review import ReviewQueue
from savingslens.entity_resolution.store import IdentityStore
from savingslens.models import (
    UNKNOWN_BANK,
    IdentityAnnotation,
    IdentityMatch,
    NormalizedRecord,
)

logger = structlog.get_logger(__name__)

UNRESOLVED_NOTES = "No automatic match found - flagged for manual research"
UNKNOWN_NAME_NOTES = "Institution name not captured - not looked up"


@dataclass
class ResolutionStats:
    """Counters for one resolver instance."""

    lookup_attempts: int = 0
    cache_hits: int = 0
    failed: int = 0
    auto_flagged: int = 0
    stage_hits: dict[str, int] = field(default_factory=dict)
    stage_calls: dict[str, int] = field(default_factory=dict)
    stage_seconds: dict[str, float] = field(default_factory=dict)
    processing_seconds: list[float] = field(default_factory=list)

    def record_stage(self, stage: str, seconds: float, *, hit: bool) -> None:
        self.stage_calls[stage] = self.stage_calls.get(stage, 0) + 1
        self.stage_seconds[stage] = self.stage_seconds.get(stage, 0.0) + seconds
        if hit:
            self.stage_hits[stage] = self.stage_hits.get(stage, 0) + 1

    def stage_latency_ms(self) -> dict[str, float]:
        return {
            stage: round(self.stage_seconds[stage] / calls * 1000, 3)
            for stage, calls in self.stage_calls.items()
            if calls
        }


class IdentityResolver:
    """Resolves institution names to regulator identifiers.

    Every outcome, positive or negative, is cached for the life of the
    instance keyed by the cleaned name; a new instance is needed to pick up
    reference-table corrections for names already seen. Lookup errors are
    not cached.
    """

    def __init__(
        self,
        store: IdentityStore,
        *,
        matchers: Sequence[Matcher] | None = None,
        review_queue: ReviewQueue | None = None,
        fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
        partial_min_length: int = DEFAULT_PARTIAL_MIN_LENGTH,
        enable_caching: bool = True,
        enable_auto_flagging: bool = True,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._store = store
        self._matchers = list(
            matchers
            if matchers is not None
            else default_matchers(
                fuzzy_threshold=fuzzy_threshold, partial_min_length=partial_min_length
            )
        )
        self._review_queue = review_queue if review_queue is not None else ReviewQueue(store)
        self._enable_caching = enable_caching
        self._enable_auto_flagging = enable_auto_flagging
        self._timer = timer
        self._cache: dict[str, IdentityMatch | None] = {}
        self.stats = ResolutionStats()

    @classmethod
    def from_settings(cls, store: IdentityStore, settings: Settings) -> IdentityResolver:
        return cls(
            store,
            fuzzy_threshold=settings.fuzzy_threshold,
            partial_min_length=settings.partial_min_length,
            enable_caching=settings.enable_caching,
            enable_auto_flagging=settings.enable_auto_flagging,
        )

    # ------------------------------------------------------------------
    # Single-name resolution
    # ------------------------------------------------------------------

    def resolve(
        self, name: Any, context: Mapping[str, Any] | None = None
    ) -> IdentityMatch | None:
        """Resolve one institution name.

        Returns the match, or ``None`` when the name is invalid, nothing
        matches, or the lookup fails. Unmatched valid names are
        flagged for review.
        """
        start = self._timer()
        self.stats.lookup_attempts += 1

        if not isinstance(name, str) or not name.strip():
            logger.debug("invalid_institution_name", name=repr(name))
            self.stats.failed += 1
            return None

        query = LookupQuery.from_name(name)
        try:
            result = self._cached_lookup(query)
        except ReferenceStoreError as exc:
            logger.warning("identity_lookup_error", name=query.original, error=str(exc))
            result = None
        except Exception:
            logger.exception("identity_lookup_failed", name=query.original)
            result = None

        if result is None:
            self.stats.failed += 1
            if self._enable_auto_flagging and self._review_queue.flag(query.original, context):
                self.stats.auto_flagged += 1

        self.stats.processing_seconds.append(self._timer() - start)
        return result

    def _cached_lookup(self, query: LookupQuery) -> IdentityMatch | None:
        if self._enable_caching and query.cleaned in self._cache:
            started = self._timer()
            result = self._cache[query.cleaned]
            self.stats.cache_hits += 1
            self.stats.record_stage("cache", self._timer() - started, hit=True)
            logger.debug(
                "identity_cache_hit",
                name=query.original,
                frn=result.frn if result else None,
            )
            return result

        result = self._lookup(query)
        if self._enable_caching:
            self._cache[query.cleaned] = result
        return result

    def _lookup(self, query: LookupQuery) -> IdentityMatch | None:
        for matcher in self._matchers:
            started = self._timer()
            match = matcher.match(self._store, query)
            self.stats.record_stage(matcher.stage, self._timer() - started, hit=match is not None)
            if match is not None:
                logger.debug(
                    "identity_resolved",
                    name=query.original,
                    frn=match.frn,
                    method=match.match_method,
                    confidence=round(match.confidence, 4),
                )
                return match

        logger.debug("identity_no_match", name=query.original)
        return None

    # ------------------------------------------------------------------
    # Batch resolution
    # ------------------------------------------------------------------

    def resolve_for_batch(self, records: Sequence[NormalizedRecord]) -> dict[str, Any]:
        """Annotate every record with its institution's identity.

        Records sharing an institution name are resolved with one lookup and
        all receive the same annotation. Records that already carry a
        regulator id, or whose name was never captured, are skipped.

        Returns
        -------
        dict
            ``{"total_processed", "resolved", "skipped", "failed",
            "success_rate", "duration_ms", "source_breakdown", "cache"}``
        """
        started = self._timer()
        skipped = 0
        groups: dict[str, list[NormalizedRecord]] = {}

        for record in records:
            if record.identity is not None and record.identity.regulator_id:
                skipped += 1
                continue
            name = record.institution_name
            if not isinstance(name, str) or not name.strip() or name == UNKNOWN_BANK:
                record.identity = IdentityAnnotation.unresolved(UNKNOWN_NAME_NOTES)
                skipped += 1
                continue
            groups.setdefault(name, []).append(record)

        logger.debug(
            "identity_batch_grouped",
            distinct_names=len(groups),
            records=len(records) - skipped,
        )

        resolved = 0
        source_breakdown: dict[str, dict[str, int]] = {}
        for name, group in groups.items():
            result = self._resolve_group(name, group)
            annotation = (
                IdentityAnnotation.from_match(result)
                if result is not None
                else IdentityAnnotation.unresolved(UNRESOLVED_NOTES)
            )
            for record in group:
                record.identity = annotation

            source_stats = source_breakdown.setdefault(
                group[0].source or "unknown", {"resolved": 0, "failed": 0, "total": 0}
            )
            source_stats["total"] += len(group)
            if result is not None:
                resolved += len(group)
                source_stats["resolved"] += len(group)
            else:
                source_stats["failed"] += len(group)

        total = len(records)
        success_rate = round(resolved / total * 100, 1) if total else 0.0
        duration_ms = round((self._timer() - started) * 1000, 3)

        logger.info(
            "identity_resolution_complete",
            resolved=resolved,
            total=total,
            success_rate=success_rate,
        )
        for source, source_stats in source_breakdown.items():
            logger.info("identity_resolution_source", source=source, **source_stats)

        return {
            "total_processed": total,
            "resolved": resolved,
            "skipped": skipped,
            "failed": total - resolved - skipped,
            "success_rate": success_rate,
            "duration_ms": duration_ms,
            "source_breakdown": source_breakdown,
            "cache": self.get_cache_statistics(),
        }

    def _resolve_group(self, name: str, group: list[NormalizedRecord]) -> IdentityMatch | None:
        context = {
            "platform": group[0].platform or group[0].source,
            "product_count": len(group),
            "avg_rate": sum(r.aer_rate or 0.0 for r in group) / len(group),
        }
        try:
            return self.resolve(name, context)
        except Exception:
            # A batch always completes; an unexpected error degrades this name only.
            logger.exception("identity_resolution_failed", name=name)
            self.stats.failed += 1
            return None

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_statistics(self) -> dict[str, Any]:
        stats = self.stats
        attempts = stats.lookup_attempts
        timings = stats.processing_seconds
        return {
            "lookup_attempts": attempts,
            "exact_matches": stats.stage_hits.get("exact", 0),
            "partial_matches": stats.stage_hits.get("partial", 0),
            "fuzzy_matches": stats.stage_hits.get("fuzzy", 0),
            "cache_hits": stats.cache_hits,
            "cache_hit_rate": round(stats.cache_hits / attempts * 100, 1) if attempts else 0.0,
            "failed": stats.failed,
            "auto_flagged": stats.auto_flagged,
            "avg_processing_time_ms": (
                round(sum(timings) / len(timings) * 1000, 3) if timings else 0.0
            ),
            "stage_calls": dict(stats.stage_calls),
            "stage_latency_ms": stats.stage_latency_ms(),
            "cache_size": len(self._cache),
        }

    def get_cache_statistics(self) -> dict[str, Any]:
        return {
            "size": len(self._cache),
            "hits": self.stats.cache_hits,
            "enabled": self._enable_caching,
        }

    def log_statistics(self) -> None:
        logger.info("identity_resolver_statistics", **self.get_statistics())

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.debug("identity_cache_cleared")

    def reset_statistics(self) -> None:
        self.stats = ResolutionStats()
