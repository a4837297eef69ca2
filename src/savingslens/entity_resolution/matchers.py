"""Matching strategies for the identity cascade.

Each matcher fetches its candidates from the store and then makes a pure
selection over them, so selection logic can be tested with plain lists.
The resolver runs matchers in order and stops at the first match; adding a
stage means adding a matcher to that list.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein

from savingslens.entity_resolution.names import clean_search_name, fuzzy_key
from savingslens.entity_resolution.store import IdentityStore
from savingslens.models import IdentityMatch, IdentityReferenceEntry

PARTIAL_CONFIDENCE_FACTOR = 0.9
FUZZY_CONFIDENCE_FACTOR = 0.8
DEFAULT_FUZZY_THRESHOLD = 0.7
DEFAULT_PARTIAL_MIN_LENGTH = 3


@dataclass(frozen=True)
class LookupQuery:
    """An institution name as scraped and as used for lookup."""

    original: str
    cleaned: str

    @classmethod
    def from_name(cls, name: str) -> LookupQuery:
        return cls(original=name.strip(), cleaned=clean_search_name(name))


class Matcher(ABC):
    """One stage of the identity cascade."""

    stage: str

    @abstractmethod
    def candidates(
        self, store: IdentityStore, query: LookupQuery
    ) -> list[IdentityReferenceEntry]:
        """Fetch the reference rows this stage should consider."""

    @abstractmethod
    def select(
        self, query: LookupQuery, candidates: list[IdentityReferenceEntry]
    ) -> IdentityMatch | None:
        """Pick the best candidate for *query*, or ``None``."""

    def match(self, store: IdentityStore, query: LookupQuery) -> IdentityMatch | None:
        return self.select(query, self.candidates(store, query))


class ExactMatcher(Matcher):
    """Equality against reference search names; confidence is the reference score."""

    stage = "exact"

    def candidates(self, store, query):
        return store.find_exact(query.cleaned)

    def select(self, query, candidates):
        best: IdentityReferenceEntry | None = None
        for entry in candidates:
            if clean_search_name(entry.search_name) != query.cleaned:
                continue
            if best is None or entry.confidence_score > best.confidence_score:
                best = entry
        if best is None:
            return None

        return IdentityMatch(
            frn=best.frn,
            canonical_name=best.canonical_name,
            confidence=best.confidence_score,
            match_method=best.match_type,
            notes=f"{best.match_type} - FRN {best.frn}",
            search_name=query.cleaned,
            matched_via=best.search_name,
        )


class PartialMatcher(Matcher):
    """Substring match in either direction.

    Ranking: equal > candidate starts with query > candidate ends with query >
    other containment, then shorter search name, then higher reference score.
    Names shorter than ``min_length`` on either side never match.
    """

    stage = "partial"

    def __init__(self, min_length: int = DEFAULT_PARTIAL_MIN_LENGTH) -> None:
        self.min_length = min_length

    def candidates(self, store, query):
        return store.find_overlapping(query.cleaned)

    @staticmethod
    def _position_rank(search_name: str, cleaned: str) -> int:
        if search_name == cleaned:
            return 0
        if search_name.startswith(cleaned):
            return 1
        if search_name.endswith(cleaned):
            return 2
        return 3

    def select(self, query, candidates):
        cleaned = query.cleaned
        if len(cleaned) < self.min_length:
            return None

        ranked: list[tuple[int, int, float, int, IdentityReferenceEntry]] = []
        for index, entry in enumerate(candidates):
            search_name = clean_search_name(entry.search_name)
            if len(search_name) < self.min_length:
                continue
            if cleaned not in search_name and search_name not in cleaned:
                continue
            ranked.append((
                self._position_rank(search_name, cleaned),
                len(search_name),
                -entry.confidence_score,
                index,
                entry,
            ))
        if not ranked:
            return None

        best = min(ranked, key=lambda r: r[:4])[4]
        return IdentityMatch(
            frn=best.frn,
            canonical_name=best.canonical_name,
            confidence=best.confidence_score * PARTIAL_CONFIDENCE_FACTOR,
            match_method="partial_match",
            notes=(
                f'Partial match: "{query.original}" -> {best.canonical_name} '
                f"({best.match_type}) - FRN {best.frn}"
            ),
            search_name=cleaned,
            matched_via=best.search_name,
        )


def name_similarity(a: str, b: str) -> float:
    """``1 - levenshtein(a, b) / max(len(a), len(b))``; 0.0 if either is empty."""
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)


class FuzzyMatcher(Matcher):
    """Edit-distance match over every reference row.

    Similarity is the better of the raw cleaned name against the search name
    and the suffix-stripped keys of both canonical forms. Candidates under
    ``threshold`` are discarded; the most similar wins, ties going to the
    higher reference score.
    """

    stage = "fuzzy"

    def __init__(self, threshold: float = DEFAULT_FUZZY_THRESHOLD) -> None:
        self.threshold = threshold

    def candidates(self, store, query):
        return store.all_entries()

    def similarity(self, query: LookupQuery, entry: IdentityReferenceEntry) -> float:
        raw = name_similarity(query.cleaned, clean_search_name(entry.search_name))
        stripped = name_similarity(fuzzy_key(query.original), fuzzy_key(entry.canonical_name))
        return max(raw, stripped)

    def select(self, query, candidates):
        best: IdentityReferenceEntry | None = None
        best_similarity = 0.0
        for entry in candidates:
            similarity = self.similarity(query, entry)
            if similarity < self.threshold:
                continue
            if (
                best is None
                or similarity > best_similarity
                or (similarity == best_similarity and entry.confidence_score > best.confidence_score)
            ):
                best = entry
                best_similarity = similarity
        if best is None:
            return None

        return IdentityMatch(
            frn=best.frn,
            canonical_name=best.canonical_name,
            confidence=best_similarity * best.confidence_score * FUZZY_CONFIDENCE_FACTOR,
            match_method="fuzzy_match",
            notes=(
                f"Fuzzy match ({best_similarity * 100:.1f}% similarity) - "
                f'"{query.original}" -> {best.canonical_name} - FRN {best.frn}'
            ),
            search_name=query.cleaned,
            matched_via=best.search_name,
            similarity=best_similarity,
        )


def default_matchers(
    *,
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
    partial_min_length: int = DEFAULT_PARTIAL_MIN_LENGTH,
) -> list[Matcher]:
    """The standard cascade: exact, then partial, then fuzzy."""
    return [
        ExactMatcher(),
        PartialMatcher(min_length=partial_min_length),
        FuzzyMatcher(threshold=fuzzy_threshold),
    ]
