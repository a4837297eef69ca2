"""Per-source extraction rules.

Each scraper emits its own field names and text conventions. Rather than
branching on the source inside every extractor, a :class:`SourceProfile`
describes where each canonical field lives for that source and which
heuristics apply. Adding a source means adding a profile here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

# Account-category signals, evaluated in profile order until one yields a
# category:
#   explicit - a dedicated account-type field
#   term     - keywords in the term string ("Fixed 12 months", "Notice 95 days")
#   section  - the page section the scraper filed the product under
#   title    - the aggregator's free-text product title
CATEGORY_SIGNALS = ("explicit", "term", "section", "title")

_DEFAULT_RATE_FIELDS = ("aer", "aerRate", "aer_rate", "rate")
_DEFAULT_TYPE_FIELDS = ("accountType", "account_type", "type")


@dataclass(frozen=True)
class SourceProfile:
    tag: str
    name_fields: tuple[str, ...] = ("bankName", "bank_name", "provider")
    default_platform: str | None = None
    platform_fields: tuple[str, ...] = ("platform",)
    aggregator: bool = False
    category_signals: tuple[str, ...] = ("explicit", "term")
    explicit_type_fields: tuple[str, ...] = _DEFAULT_TYPE_FIELDS
    section_fields: tuple[str, ...] = ()
    title_field: str | None = None
    # Aggregator sites periodically file notice accounts under the wrong page
    # section; when set, title cues win over the section classification.
    title_overrides_section: bool = False
    rate_fields: tuple[str, ...] = _DEFAULT_RATE_FIELDS
    term_fields: tuple[str, ...] = ("termMonths", "term_months", "term")
    notice_fields: tuple[str, ...] = (
        "noticePeriodDays", "notice_period_days", "noticePeriod", "notice",
    )
    term_field_carries_notice: bool = False
    end_date_terms: bool = False

    @property
    def extraction_method(self) -> str:
        return f"{self.tag}-scraper"

    def ordered_category_signals(self) -> tuple[str, ...]:
        """Category signals with the title-vs-section policy applied."""
        signals = [s for s in self.category_signals if s in CATEGORY_SIGNALS]
        if "title" in signals and "section" in signals:
            signals.remove("title")
            section_at = signals.index("section")
            insert_at = section_at if self.title_overrides_section else section_at + 1
            signals.insert(insert_at, "title")
        return tuple(signals)


SOURCE_PROFILES: dict[str, SourceProfile] = {
    "ajbell": SourceProfile(
        tag="ajbell",
        default_platform="AJBell",
        category_signals=("explicit", "term"),
    ),
    "moneyfacts": SourceProfile(
        tag="moneyfacts",
        name_fields=("parsedBankName", "bankName", "provider"),
        platform_fields=("parsedPlatform", "platform"),
        aggregator=True,
        category_signals=("section", "title", "term"),
        section_fields=("accountType", "account_type", "type", "category"),
        title_field="originalWebsiteTitle",
        title_overrides_section=True,
        rate_fields=("aer", "aerRate", "rate"),
        end_date_terms=True,
    ),
    "hargreaveslansdown": SourceProfile(
        tag="hargreaves_lansdown",
        name_fields=("providerName", "bankName", "provider"),
        default_platform="Hargreaves Lansdown",
        category_signals=("explicit", "term"),
        explicit_type_fields=("accountType", "account_type", "type", "category"),
        rate_fields=("aer", "aerRate", "rate"),
    ),
    "flagstone": SourceProfile(
        tag="flagstone",
        name_fields=("bankName", "provider"),
        default_platform="Flagstone",
        category_signals=("term", "explicit"),
        rate_fields=("aer", "aerRate", "rate"),
        term_field_carries_notice=True,
    ),
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def source_key(source_tag: str) -> str:
    """Collapse a source tag to its lookup key (``"AJ Bell"`` -> ``"ajbell"``)."""
    return _NON_ALNUM.sub("", str(source_tag).lower())


def get_source_profile(source_tag: str) -> SourceProfile:
    """Return the extraction profile for *source_tag*.

    Unknown tags get the generic profile under their own (lower-cased) name,
    so the run metadata still identifies where the records came from.
    """
    profile = SOURCE_PROFILES.get(source_key(source_tag))
    if profile is not None:
        return profile
    tag = re.sub(r"\s+", "_", str(source_tag).strip().lower()) or "unknown"
    return SourceProfile(tag=tag)


def with_title_policy(profile: SourceProfile, title_overrides_section: bool) -> SourceProfile:
    """Copy of *profile* with the title-vs-section policy switched."""
    return replace(profile, title_overrides_section=title_overrides_section)
