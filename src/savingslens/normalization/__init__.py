"""Schema normalization of raw scraper output into NormalizedRecord."""

from __future__ import annotations

from savingslens.normalization.normalizer import SchemaNormalizer
from savingslens.normalization.sources import (
    SOURCE_PROFILES,
    SourceProfile,
    get_source_profile,
    with_title_policy,
)
from savingslens.normalization.validation import validate_record

__all__ = [
    "SOURCE_PROFILES",
    "SchemaNormalizer",
    "SourceProfile",
    "get_source_profile",
    "validate_record",
    "with_title_policy",
]
