"""Schema normalizer: maps each source's raw records onto NormalizedRecord.

Extraction rules come from the source's :class:`SourceProfile`; the
platform label of every item is canonicalized through the
:class:`PlatformCanonicalizer`. Output cardinality always equals input
cardinality: a record nobody can read still comes out, with null fields.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from datetime import date, datetime, timezone
from typing import Any

import structlog

from savingslens.models import (
    UNKNOWN_BANK,
    AccountCategory,
    NormalizedRecord,
    PlatformReferenceEntry,
)
from savingslens.normalization.parsing import (
    classify_term_text,
    classify_title,
    join_features,
    normalize_account_type,
    parse_amount,
    parse_apply_by_date,
    parse_fscs,
    parse_interest_frequency,
    parse_notice_days,
    parse_rate,
    parse_term_months,
    parse_title_notice_days,
    term_from_end_date,
    title_mentions_notice,
)
from savingslens.normalization.sources import SourceProfile, get_source_profile
from savingslens.normalization.validation import validate_record
from savingslens.platforms.canonicalizer import PlatformCanonicalizer

logger = structlog.get_logger(__name__)

DIRECT_PLATFORM = "direct"

_GROSS_FIELDS = ("gross", "grossRate", "gross_rate")
_MIN_DEPOSIT_FIELDS = ("minDeposit", "min_deposit", "minimum")
_MAX_DEPOSIT_FIELDS = ("maxDeposit", "max_deposit", "maximum")
_FSCS_FIELDS = ("fscsProtected", "fscs_protected", "fscs", "fscsEligible")
_FREQUENCY_FIELDS = (
    "interestPaymentFrequency", "interest_payment_frequency", "paymentFrequency", "interestPayment",
)
_APPLY_BY_FIELDS = ("applyByDate", "apply_by_date", "deadline")
_FEATURE_FIELDS = ("specialFeatures", "special_features", "features", "notes")
_SCRAPED_AT_FIELDS = ("scrapedAt", "scraped_at")

_TERM_NOTICE = re.compile(r"notice\s+(\d+)\s+days?", re.IGNORECASE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _first(fields: Mapping[str, Any], keys: Iterable[str]) -> Any:
    """First value under *keys* that is present and not blank."""
    for key in keys:
        value = fields.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


class SchemaNormalizer:
    """Normalizes raw scraper records for one source at a time."""

    def __init__(
        self,
        canonicalizer: PlatformCanonicalizer | None = None,
        *,
        profiles: Mapping[str, SourceProfile] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._canonicalizer = canonicalizer
        self._profiles = dict(profiles or {})
        self._clock = clock

    def profile_for(self, source_tag: str) -> SourceProfile:
        """Profile override registered for *source_tag*, else the built-in one."""
        override = self._profiles.get(source_tag)
        return override if override is not None else get_source_profile(source_tag)

    def normalize(self, raw_records: Iterable[Any], source_tag: str) -> list[NormalizedRecord]:
        """Normalize every raw record; returns exactly one record per input."""
        profile = self.profile_for(source_tag)
        records = [self.normalize_item(item, profile) for item in raw_records]
        logger.info("normalization_complete", source=profile.tag, records=len(records))
        return records

    def normalize_item(self, item: Any, profile: SourceProfile) -> NormalizedRecord:
        fields: dict[str, Any] = item if isinstance(item, dict) else {}
        captured_at = self._clock()

        institution_name, embedded = self._extract_institution(fields, profile)
        raw_platform = self._extract_platform(fields, profile, embedded)
        if self._canonicalizer is not None:
            platform = self._canonicalizer.canonicalize(raw_platform, profile.tag).canonical_id
        else:
            platform = raw_platform

        category = self._extract_category(fields, profile)
        scrape_date = self._scrape_date(fields, captured_at)

        special_features = join_features(_first(fields, _FEATURE_FIELDS))
        if special_features is None and embedded is not None:
            special_features = f"Available via {embedded.display_name}"

        record = NormalizedRecord(
            institution_name=institution_name,
            platform=platform,
            raw_platform=raw_platform,
            account_category=category,
            aer_rate=parse_rate(_first(fields, profile.rate_fields)),
            gross_rate=parse_rate(_first(fields, _GROSS_FIELDS)),
            term_months=self._extract_term(fields, profile, scrape_date),
            notice_period_days=self._extract_notice(fields, profile),
            min_deposit=parse_amount(_first(fields, _MIN_DEPOSIT_FIELDS)),
            max_deposit=parse_amount(_first(fields, _MAX_DEPOSIT_FIELDS)),
            fscs_protected=parse_fscs(_first(fields, _FSCS_FIELDS)),
            interest_payment_frequency=parse_interest_frequency(_first(fields, _FREQUENCY_FIELDS)),
            apply_by_date=parse_apply_by_date(_first(fields, _APPLY_BY_FIELDS)),
            special_features=special_features,
            scraped_at=captured_at,
            source=profile.tag,
            raw=item,
        )
        validated, _ = validate_record(record)
        return validated

    # ------------------------------------------------------------------
    # Field extraction
    # ------------------------------------------------------------------

    def _extract_institution(
        self, fields: Mapping[str, Any], profile: SourceProfile
    ) -> tuple[str, PlatformReferenceEntry | None]:
        name = None
        for key in profile.name_fields:
            value = fields.get(key)
            if isinstance(value, str) and value.strip():
                name = value.strip()
                break
        if name is None:
            return UNKNOWN_BANK, None

        # Aggregators list "<bank> <platform>" when the scraper did not split it.
        if (
            profile.aggregator
            and self._canonicalizer is not None
            and _first(fields, profile.platform_fields) is None
        ):
            split = self._canonicalizer.split_label(name)
            if split is not None:
                bank_name, entry = split
                return bank_name, entry
        return name, None

    def _extract_platform(
        self,
        fields: Mapping[str, Any],
        profile: SourceProfile,
        embedded: PlatformReferenceEntry | None,
    ) -> Any:
        if profile.default_platform is not None:
            return profile.default_platform
        explicit = _first(fields, profile.platform_fields)
        if explicit is not None:
            return explicit
        if embedded is not None:
            return embedded.platform_variant
        return DIRECT_PLATFORM

    def _extract_category(
        self, fields: Mapping[str, Any], profile: SourceProfile
    ) -> AccountCategory | None:
        title = fields.get(profile.title_field) if profile.title_field else None

        for signal in profile.ordered_category_signals():
            if signal == "explicit":
                category = normalize_account_type(_first(fields, profile.explicit_type_fields))
            elif signal == "term":
                category = classify_term_text(fields.get("term"))
            elif signal == "title":
                category = classify_title(title)
            else:
                category = normalize_account_type(_first(fields, profile.section_fields))
                if (
                    category == AccountCategory.NOTICE
                    and profile.title_overrides_section
                    and isinstance(title, str)
                    and title.strip()
                    and not title_mentions_notice(title)
                ):
                    # Section says notice but the product title never mentions it.
                    category = AccountCategory.EASY_ACCESS
            if category is not None:
                return category
        return None

    def _extract_term(
        self, fields: Mapping[str, Any], profile: SourceProfile, scrape_date: date
    ) -> int | None:
        term = parse_term_months(_first(fields, profile.term_fields))
        if term is not None:
            return term

        title = fields.get(profile.title_field) if profile.title_field else None
        if not isinstance(title, str):
            return None
        term = parse_term_months(title)
        if term is None and profile.end_date_terms:
            term = term_from_end_date(title, scrape_date)
        return term

    def _extract_notice(self, fields: Mapping[str, Any], profile: SourceProfile) -> int | None:
        if profile.term_field_carries_notice:
            term_text = fields.get("term")
            if isinstance(term_text, str):
                match = _TERM_NOTICE.search(term_text)
                if match:
                    return parse_notice_days(match.group(0))

        title = fields.get(profile.title_field) if profile.title_field else None
        if isinstance(title, str):
            notice = parse_title_notice_days(title)
            if notice is not None:
                return notice

        return parse_notice_days(_first(fields, profile.notice_fields))

    @staticmethod
    def _scrape_date(fields: Mapping[str, Any], captured_at: datetime) -> date:
        scraped = parse_apply_by_date(_first(fields, _SCRAPED_AT_FIELDS))
        if scraped is not None:
            return date.fromisoformat(scraped)
        return captured_at.date()
