"""Tests for the schema normalizer and record validation."""

from __future__ import annotations

from savingslens.models import UNKNOWN_BANK, UNKNOWN_PLATFORM, AccountCategory
from savingslens.normalization import (
    SchemaNormalizer,
    get_source_profile,
    validate_record,
    with_title_policy,
)
from savingslens.normalization.sources import source_key

# =========================================================================
# Source profiles
# =========================================================================


class TestSourceProfiles:
    def test_source_key_collapses_spacing_and_case(self):
        assert source_key("AJ Bell") == "ajbell"
        assert source_key("Hargreaves-Lansdown") == "hargreaveslansdown"

    def test_known_source(self):
        profile = get_source_profile("Moneyfacts")
        assert profile.tag == "moneyfacts"
        assert profile.aggregator

    def test_unknown_source_gets_generic_profile(self):
        profile = get_source_profile("Savings Champion")
        assert profile.tag == "savings_champion"
        assert profile.extraction_method == "savings_champion-scraper"

    def test_title_policy_orders_signals(self):
        profile = get_source_profile("moneyfacts")
        assert profile.ordered_category_signals() == ("title", "section", "term")
        relaxed = with_title_policy(profile, False)
        assert relaxed.ordered_category_signals() == ("section", "title", "term")


# =========================================================================
# SchemaNormalizer.normalize
# =========================================================================


class TestNormalize:
    def test_fixed_term_from_term_text(self, normalizer):
        records = normalizer.normalize(
            [{"bankName": "Tandem Bank Plc", "aer": "4.50%", "term": "12 months"}], "ajbell"
        )

        record = records[0]
        assert record.institution_name == "Tandem Bank Plc"
        assert record.account_category == AccountCategory.FIXED_TERM
        assert record.aer_rate == 4.5
        assert record.term_months == 12
        assert record.notice_period_days is None
        assert record.platform == "ajbell"
        assert record.source == "ajbell"

    def test_output_length_equals_input_length(self, normalizer):
        raw = [None, "not a record", {}, {"bankName": "Zopa Bank", "aer": "bad"}]
        records = normalizer.normalize(raw, "ajbell")

        assert len(records) == len(raw)
        assert [r.raw for r in records] == raw
        assert records[0].institution_name == UNKNOWN_BANK
        assert records[2].institution_name == UNKNOWN_BANK
        assert records[3].aer_rate is None

    def test_empty_input(self, normalizer):
        assert normalizer.normalize([], "ajbell") == []

    def test_normalizing_twice_gives_identical_output(self, normalizer):
        raw = [
            {"bankName": "Tandem Bank Plc", "aer": "4.50%", "term": "12 months"},
            {"bankName": "Chip", "platform": "Chip", "aer": "4.84%"},
        ]
        first = [r.to_dict() for r in normalizer.normalize(raw, "generic")]
        second = [r.to_dict() for r in normalizer.normalize(raw, "generic")]
        assert first == second

    def test_absurd_term_does_not_lose_batch(self, normalizer):
        records = normalizer.normalize(
            [
                {"bankName": "Zopa Bank", "term": "12 months"},
                {"bankName": "Chase", "term": "9" * 5000 + " months", "aer": "4.5% AER"},
                {"bankName": "Tandem Bank Plc", "term": "2 years"},
            ],
            "ajbell",
        )

        assert [r.institution_name for r in records] == ["Zopa Bank", "Chase", "Tandem Bank Plc"]
        assert records[1].term_months is None
        assert records[1].aer_rate == 4.5
        assert [records[0].term_months, records[2].term_months] == [12, 24]

    def test_min_above_max_nulls_both_deposit_bounds(self, normalizer):
        record = normalizer.normalize(
            [{"bankName": "Zopa Bank", "minDeposit": 5000, "maxDeposit": 1000}], "ajbell"
        )[0]
        assert record.min_deposit is None
        assert record.max_deposit is None

    def test_unknown_platform_label(self, normalizer, platform_store):
        record = normalizer.normalize(
            [{"bankName": "Chip", "platform": "Chip"}], "savings champion"
        )[0]

        assert record.platform == UNKNOWN_PLATFORM
        assert record.raw_platform == "Chip"
        assert [label for label, _ in platform_store.registered] == ["Chip"]

    def test_no_platform_field_is_direct(self, normalizer):
        record = normalizer.normalize([{"bankName": "Chip"}], "generic")[0]
        assert record.raw_platform == "direct"
        assert record.platform == "direct"

    def test_without_canonicalizer_keeps_raw_label(self):
        normalizer = SchemaNormalizer()
        record = normalizer.normalize([{"bankName": "Chip", "platform": "Chip"}], "generic")[0]
        assert record.platform == "Chip"

    def test_features_and_flags(self, normalizer):
        record = normalizer.normalize(
            [
                {
                    "bankName": "Zopa Bank",
                    "accountType": "Easy Access",
                    "specialFeatures": ["App only", "Bonus rate for 12 months"],
                    "fscsProtected": "Yes",
                    "interestPaymentFrequency": "Monthly",
                    "applyByDate": "31/08/2025",
                }
            ],
            "ajbell",
        )[0]

        assert record.account_category == AccountCategory.EASY_ACCESS
        assert record.special_features == "App only; Bonus rate for 12 months"
        assert record.fscs_protected is True
        assert record.interest_payment_frequency.value == "monthly"
        assert record.apply_by_date == "2025-08-31"

    def test_to_dict_uses_downstream_field_names(self, normalizer):
        data = normalizer.normalize(
            [{"bankName": "Tandem Bank Plc", "aer": "4.50%", "term": "12 months"}], "ajbell"
        )[0].to_dict()

        assert data["bankName"] == "Tandem Bank Plc"
        assert data["accountType"] == "fixed_term"
        assert data["aerRate"] == 4.5
        assert data["termMonths"] == 12
        assert data["frn"] is None
        assert data["scrapedAt"] == "2025-07-01T09:30:00+00:00"


# =========================================================================
# Source-specific heuristics
# =========================================================================


class TestAggregatorListings:
    def test_embedded_platform_is_split_from_bank_name(self, normalizer):
        record = normalizer.normalize(
            [{"bankName": "AlRayan Bank Raisin UK", "originalWebsiteTitle": "Easy Access Saver"}],
            "moneyfacts",
        )[0]

        assert record.institution_name == "AlRayan Bank"
        assert record.raw_platform == "Raisin UK"
        assert record.platform == "raisin"
        assert record.special_features == "Available via Raisin UK"
        assert record.account_category == AccountCategory.EASY_ACCESS

    def test_explicit_platform_prevents_split(self, normalizer):
        record = normalizer.normalize(
            [{"bankName": "AlRayan Bank Raisin UK", "platform": "Raisin"}], "moneyfacts"
        )[0]
        assert record.institution_name == "AlRayan Bank Raisin UK"
        assert record.platform == "raisin"

    def test_notice_section_without_notice_title_becomes_easy_access(self, normalizer):
        record = normalizer.normalize(
            [
                {
                    "bankName": "Chase",
                    "platform": "direct",
                    "accountType": "notice",
                    "originalWebsiteTitle": "Online Saver Issue 5",
                }
            ],
            "moneyfacts",
        )[0]
        assert record.account_category == AccountCategory.EASY_ACCESS

    def test_notice_section_with_notice_title_stays_notice(self, normalizer):
        record = normalizer.normalize(
            [
                {
                    "bankName": "Chase",
                    "platform": "direct",
                    "accountType": "notice",
                    "originalWebsiteTitle": "95 Day Notice Account",
                }
            ],
            "moneyfacts",
        )[0]
        assert record.account_category == AccountCategory.NOTICE
        assert record.notice_period_days == 95

    def test_section_wins_when_title_policy_disabled(self, canonicalizer):
        profile = with_title_policy(get_source_profile("moneyfacts"), False)
        normalizer = SchemaNormalizer(canonicalizer, profiles={"moneyfacts": profile})
        record = normalizer.normalize(
            [
                {
                    "bankName": "Chase",
                    "platform": "direct",
                    "accountType": "notice",
                    "originalWebsiteTitle": "Online Saver Issue 5",
                }
            ],
            "moneyfacts",
        )[0]
        assert record.account_category == AccountCategory.NOTICE

    def test_term_from_end_date_in_title(self, normalizer):
        record = normalizer.normalize(
            [
                {
                    "bankName": "Zopa Bank",
                    "platform": "Raisin",
                    "originalWebsiteTitle": "Fixed Rate Bond (01.07.2027)",
                    "scrapedAt": "2025-07-01T08:00:00",
                }
            ],
            "moneyfacts",
        )[0]
        assert record.account_category == AccountCategory.FIXED_TERM
        assert record.term_months == 24


class TestFlagstone:
    def test_notice_days_read_from_term_field(self, normalizer):
        record = normalizer.normalize(
            [{"bankName": "Close Brothers", "term": "Notice 95 days", "aer": "4.35%"}],
            "flagstone",
        )[0]

        assert record.account_category == AccountCategory.NOTICE
        assert record.notice_period_days == 95
        assert record.term_months is None
        assert record.platform == "flagstone"


# =========================================================================
# validate_record
# =========================================================================


class TestValidateRecord:
    def _record(self, normalizer, **fields):
        record = normalizer.normalize([{"bankName": "Zopa Bank"}], "ajbell")[0]
        for name, value in fields.items():
            setattr(record, name, value)
        return record

    def test_valid_record_unchanged(self, normalizer):
        record = self._record(normalizer, aer_rate=4.5, term_months=12)
        validated, issues = validate_record(record)
        assert validated is record
        assert issues == []

    def test_rate_out_of_range_nulled(self, normalizer):
        validated, issues = validate_record(self._record(normalizer, aer_rate=450.0))
        assert validated.aer_rate is None
        assert len(issues) == 1

    def test_notice_account_keeps_notice_period(self, normalizer):
        record = self._record(
            normalizer,
            account_category=AccountCategory.NOTICE,
            term_months=12,
            notice_period_days=95,
        )
        validated, _ = validate_record(record)
        assert validated.term_months is None
        assert validated.notice_period_days == 95

    def test_fixed_account_keeps_term(self, normalizer):
        record = self._record(
            normalizer,
            account_category=AccountCategory.FIXED_TERM,
            term_months=12,
            notice_period_days=95,
        )
        validated, _ = validate_record(record)
        assert validated.term_months == 12
        assert validated.notice_period_days is None

    def test_negative_deposit_nulled(self, normalizer):
        validated, _ = validate_record(self._record(normalizer, min_deposit=-1.0))
        assert validated.min_deposit is None

    def test_input_not_mutated(self, normalizer):
        record = self._record(normalizer, min_deposit=5000.0, max_deposit=1000.0)
        validate_record(record)
        assert record.min_deposit == 5000.0
