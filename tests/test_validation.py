"""Tests for identity-resolution quality metrics."""

from __future__ import annotations

from savingslens.entity_resolution.validation import (
    compute_resolution_metrics,
    generate_validation_report,
)
from savingslens.models import IdentityAnnotation


def _annotated(normalizer, pairs):
    """Records for ``(name, frn)`` pairs; a ``None`` frn means unresolved."""
    records = normalizer.normalize([{"bankName": name} for name, _ in pairs], "ajbell")
    for record, (_, frn) in zip(records, pairs):
        if frn is None:
            record.identity = IdentityAnnotation.unresolved("no match")
        else:
            record.identity = IdentityAnnotation(
                regulator_id=frn,
                canonical_name=record.institution_name,
                confidence=1.0,
                match_method="canonical",
                notes="",
            )
    return records


class TestComputeResolutionMetrics:
    def test_perfect_resolution(self, normalizer):
        records = _annotated(normalizer, [("Zopa Bank", "204478"), ("Chase", "124579")])
        metrics = compute_resolution_metrics(
            records, {"Zopa Bank": "204478", "Chase": "124579"}
        )

        assert metrics["precision"] == 1.0
        assert metrics["recall"] == 1.0
        assert metrics["f1"] == 1.0
        assert metrics["true_positives"] == 2
        assert metrics["total_names"] == 2

    def test_wrong_frn_is_false_positive_and_false_negative(self, normalizer):
        records = _annotated(normalizer, [("Zopa Bank", "111111")])
        metrics = compute_resolution_metrics(records, {"Zopa Bank": "204478"})

        assert metrics["false_positives"] == 1
        assert metrics["false_negatives"] == 1
        assert metrics["f1"] == 0.0

    def test_unresolved_known_name_is_false_negative(self, normalizer):
        records = _annotated(normalizer, [("Zopa Bank", None)])
        metrics = compute_resolution_metrics(records, {"Zopa Bank": "204478"})
        assert metrics["false_negatives"] == 1
        assert metrics["recall"] == 0.0

    def test_resolving_unregulated_name_is_false_positive(self, normalizer):
        records = _annotated(normalizer, [("Nowhere Bank", "204478")])
        metrics = compute_resolution_metrics(records, {"Nowhere Bank": None})
        assert metrics["false_positives"] == 1

    def test_correctly_unresolved_is_not_counted(self, normalizer):
        records = _annotated(normalizer, [("Nowhere Bank", None)])
        metrics = compute_resolution_metrics(records, {"Nowhere Bank": None})
        assert metrics["true_positives"] == metrics["false_positives"] == 0
        assert metrics["false_negatives"] == 0

    def test_duplicate_names_scored_once(self, normalizer):
        records = _annotated(normalizer, [("Zopa Bank", "204478"), ("Zopa Bank", "204478")])
        metrics = compute_resolution_metrics(records, {"Zopa Bank": "204478"})
        assert metrics["true_positives"] == 1

    def test_names_without_ground_truth_ignored(self, normalizer):
        records = _annotated(normalizer, [("Chase", "124579")])
        metrics = compute_resolution_metrics(records, {})
        assert metrics["total_names"] == 0
        assert metrics["precision"] == 0.0


class TestGenerateValidationReport:
    def test_excellent(self):
        report = generate_validation_report({"f1": 0.97, "precision": 1.0, "recall": 0.94})
        assert "Identity Resolution Validation Report" in report
        assert "EXCELLENT" in report

    def test_poor(self):
        assert "POOR" in generate_validation_report({"f1": 0.4})

    def test_includes_resolver_statistics(self):
        report = generate_validation_report(
            {"f1": 0.9}, {"lookup_attempts": 12, "fuzzy_matches": 2, "cache_hit_rate": 25.0}
        )
        assert "Lookup attempts:  12" in report
        assert "Fuzzy matches:    2" in report
        assert "GOOD" in report
