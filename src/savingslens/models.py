"""Canonical record and reference types shared by the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

UNKNOWN_BANK = "Unknown Bank"
UNKNOWN_PLATFORM = "unknown_platform"
NO_MATCH = "no_match"


class AccountCategory(str, Enum):
    EASY_ACCESS = "easy_access"
    NOTICE = "notice"
    FIXED_TERM = "fixed_term"
    CASH_ISA = "cash_isa"
    LIMITED_ACCESS = "limited_access"


class InterestFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"
    ON_MATURITY = "on_maturity"


# ---------------------------------------------------------------------------
# Reference rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlatformReferenceEntry:
    """One row of ``known_platforms``: a raw variant and its canonical identity."""

    platform_variant: str
    canonical_name: str
    display_name: str
    platform_type: str
    is_active: bool = True


@dataclass(frozen=True)
class IdentityReferenceEntry:
    """One rank-1 row of ``frn_lookup_helper``."""

    frn: str
    canonical_name: str
    search_name: str
    confidence_score: float
    match_type: str


@dataclass(frozen=True)
class ReviewQueueEntry:
    """An unresolved institution name awaiting manual research."""

    scraped_name: str
    notes: str
    created_at: datetime
    frn: str | None = None
    firm_name: str | None = None
    confidence_score: float = 0.0


# ---------------------------------------------------------------------------
# Match results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlatformMatch:
    """Outcome of canonicalizing one raw platform label."""

    canonical_id: str
    raw_label: Any
    matched: bool
    reason: str  # exact_match | partial_match | not_found | invalid_input | lookup_error
    platform_type: str | None = None
    is_active: bool | None = None


@dataclass(frozen=True)
class IdentityMatch:
    """A successful institution lookup."""

    frn: str
    canonical_name: str
    confidence: float
    match_method: str  # reference match_type, partial_match or fuzzy_match
    notes: str
    search_name: str
    matched_via: str | None = None
    similarity: float | None = None


@dataclass(frozen=True)
class IdentityAnnotation:
    """Identity fields attached to a NormalizedRecord by the resolver."""

    regulator_id: str | None
    canonical_name: str | None
    confidence: float
    match_method: str
    notes: str

    @classmethod
    def from_match(cls, match: IdentityMatch) -> IdentityAnnotation:
        return cls(
            regulator_id=match.frn,
            canonical_name=match.canonical_name,
            confidence=match.confidence,
            match_method=match.match_method,
            notes=match.notes,
        )

    @classmethod
    def unresolved(cls, notes: str) -> IdentityAnnotation:
        return cls(
            regulator_id=None,
            canonical_name=None,
            confidence=0.0,
            match_method=NO_MATCH,
            notes=notes,
        )


# ---------------------------------------------------------------------------
# Canonical product record
# ---------------------------------------------------------------------------


@dataclass
class NormalizedRecord:
    """A savings product in the canonical schema.

    Created by the schema normalizer; ``identity`` is assigned once by the
    identity resolver and the record is not mutated after the run.
    """

    institution_name: str
    platform: str
    raw_platform: Any
    account_category: AccountCategory | None
    aer_rate: float | None
    gross_rate: float | None
    term_months: int | None
    notice_period_days: int | None
    min_deposit: float | None
    max_deposit: float | None
    fscs_protected: bool
    interest_payment_frequency: InterestFrequency | None
    apply_by_date: str | None
    special_features: str | None
    scraped_at: datetime
    source: str
    raw: Any = field(repr=False)
    identity: IdentityAnnotation | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the field names the downstream ingestion stage reads."""
        identity = self.identity
        return {
            "bankName": self.institution_name,
            "platform": self.platform,
            "rawPlatform": self.raw_platform,
            "accountType": self.account_category.value if self.account_category else None,
            "aerRate": self.aer_rate,
            "grossRate": self.gross_rate,
            "termMonths": self.term_months,
            "noticePeriodDays": self.notice_period_days,
            "minDeposit": self.min_deposit,
            "maxDeposit": self.max_deposit,
            "fscsProtected": self.fscs_protected,
            "interestPaymentFrequency": (
                self.interest_payment_frequency.value
                if self.interest_payment_frequency
                else None
            ),
            "applyByDate": self.apply_by_date,
            "specialFeatures": self.special_features,
            "scrapedAt": self.scraped_at.isoformat(),
            "frn": identity.regulator_id if identity else None,
            "firmName": identity.canonical_name if identity else None,
            "confidenceScore": identity.confidence if identity else None,
            "frnLookupMethod": identity.match_method if identity else None,
            "fuzzyMatchNotes": identity.notes if identity else None,
            "originalData": self.raw,
        }
