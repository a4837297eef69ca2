"""Identity resolution of institution names to FCA Firm Reference Numbers."""

from __future__ import annotations

from savingslens.entity_resolution.matchers import (
    ExactMatcher,
    FuzzyMatcher,
    LookupQuery,
    Matcher,
    PartialMatcher,
    default_matchers,
    name_similarity,
)
from savingslens.entity_resolution.names import clean_search_name, fuzzy_key
from savingslens.entity_resolution.resolver import IdentityResolver, ResolutionStats
from savingslens.entity_resolution.review import ReviewQueue, generate_flag_notes
from savingslens.entity_resolution.store import IdentityStore, PostgresIdentityStore
from savingslens.entity_resolution.validation import (
    compute_resolution_metrics,
    generate_validation_report,
)

__all__ = [
    "ExactMatcher",
    "FuzzyMatcher",
    "IdentityResolver",
    "IdentityStore",
    "LookupQuery",
    "Matcher",
    "PartialMatcher",
    "PostgresIdentityStore",
    "ResolutionStats",
    "ReviewQueue",
    "clean_search_name",
    "compute_resolution_metrics",
    "default_matchers",
    "fuzzy_key",
    "generate_flag_notes",
    "generate_validation_report",
    "name_similarity",
]
