"""Shared fixtures: in-memory reference stores and pipeline components."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from savingslens.db import ReferenceStoreError
from savingslens.entity_resolution.names import clean_search_name
from savingslens.entity_resolution.resolver import IdentityResolver
from savingslens.models import (
    IdentityReferenceEntry,
    PlatformReferenceEntry,
    ReviewQueueEntry,
)
from savingslens.normalization.normalizer import SchemaNormalizer
from savingslens.platforms.canonicalizer import PlatformCanonicalizer

FIXED_NOW = datetime(2025, 7, 1, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryPlatformStore:
    """``PlatformStore`` over a list, recording every call."""

    def __init__(self, platforms: list[PlatformReferenceEntry]) -> None:
        self.platforms = list(platforms)
        self.load_calls = 0
        self.registered: list[tuple[str, str]] = []
        self.fail_loads = False
        self.fail_writes = False

    def load_platforms(self) -> list[PlatformReferenceEntry]:
        self.load_calls += 1
        if self.fail_loads:
            raise ReferenceStoreError("known_platforms read failed: connection lost")
        return sorted(
            (p for p in self.platforms if p.is_active), key=lambda p: p.platform_variant
        )

    def platform_exists(self, label: str) -> bool:
        if self.fail_writes:
            raise ReferenceStoreError("known_platforms lookup failed")
        return any(label in (p.platform_variant, p.canonical_name) for p in self.platforms)

    def register_platform(self, label: str, notes: str) -> None:
        if self.fail_writes:
            raise ReferenceStoreError("known_platforms insert failed")
        self.registered.append((label, notes))
        self.platforms.append(
            PlatformReferenceEntry(
                platform_variant=label,
                canonical_name=label,
                display_name=label,
                platform_type="unknown",
                is_active=False,
            )
        )


class InMemoryIdentityStore:
    """``IdentityStore`` over a list of rank-1 reference rows."""

    def __init__(self, entries: list[IdentityReferenceEntry]) -> None:
        self.entries = list(entries)
        self.review_entries: list[ReviewQueueEntry] = []
        self.queries = 0
        self.fail = False

    def _check(self) -> None:
        self.queries += 1
        if self.fail:
            raise ReferenceStoreError("identity reference query failed: timeout")

    def find_exact(self, search_name: str) -> list[IdentityReferenceEntry]:
        self._check()
        return [e for e in self.entries if clean_search_name(e.search_name) == search_name]

    def find_overlapping(self, search_name: str) -> list[IdentityReferenceEntry]:
        self._check()
        return [
            e for e in self.entries if search_name in e.search_name or e.search_name in search_name
        ]

    def all_entries(self) -> list[IdentityReferenceEntry]:
        self._check()
        return sorted(self.entries, key=lambda e: (e.search_name, e.frn))

    def review_entry_exists(self, scraped_name: str) -> bool:
        self._check()
        return any(r.scraped_name == scraped_name for r in self.review_entries)

    def add_review_entry(self, entry: ReviewQueueEntry) -> None:
        self._check()
        self.review_entries.append(entry)


def _platform(variant: str, canonical: str, display: str, platform_type: str) -> PlatformReferenceEntry:
    return PlatformReferenceEntry(
        platform_variant=variant,
        canonical_name=canonical,
        display_name=display,
        platform_type=platform_type,
    )


def _identity(
    frn: str, canonical: str, search: str, score: float = 1.0, match_type: str = "canonical"
) -> IdentityReferenceEntry:
    return IdentityReferenceEntry(
        frn=frn,
        canonical_name=canonical,
        search_name=search,
        confidence_score=score,
        match_type=match_type,
    )


@pytest.fixture()
def platform_entries() -> list[PlatformReferenceEntry]:
    return [
        _platform("AJBell", "ajbell", "AJ Bell", "platform"),
        _platform("Flagstone", "flagstone", "Flagstone", "platform"),
        _platform("Hargreaves Lansdown", "hargreaves_lansdown", "Hargreaves Lansdown", "platform"),
        _platform("Raisin", "raisin", "Raisin", "aggregator"),
        _platform("Raisin UK", "raisin", "Raisin UK", "aggregator"),
        _platform("direct", "direct", "Direct", "direct"),
    ]


@pytest.fixture()
def identity_entries() -> list[IdentityReferenceEntry]:
    return [
        _identity("204478", "Zopa Bank Limited", "ZOPA BANK", 0.95),
        _identity("204550", "Gatehouse Bank plc", "GATEHOUSE BANK", 1.0),
        _identity("183346", "Tandem Bank Limited", "TANDEM BANK PLC", 1.0),
        _identity("183346", "Tandem Bank Limited", "TANDEM", 0.9, "alias"),
        _identity("106078", "Nationwide Building Society", "NATIONWIDE BUILDING SOCIETY", 1.0),
    ]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def platform_store(platform_entries) -> InMemoryPlatformStore:
    return InMemoryPlatformStore(platform_entries)


@pytest.fixture()
def identity_store(identity_entries) -> InMemoryIdentityStore:
    return InMemoryIdentityStore(identity_entries)


@pytest.fixture()
def canonicalizer(platform_store, clock) -> PlatformCanonicalizer:
    return PlatformCanonicalizer(platform_store, clock=clock, now=lambda: FIXED_NOW)


@pytest.fixture()
def normalizer(canonicalizer) -> SchemaNormalizer:
    return SchemaNormalizer(canonicalizer, clock=lambda: FIXED_NOW)


@pytest.fixture()
def resolver(identity_store) -> IdentityResolver:
    return IdentityResolver(identity_store)
