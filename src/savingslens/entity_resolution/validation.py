"""Precision / recall measurement for identity resolution quality.

Compares the identities the resolver attached to a batch of records against
a hand-labelled ground-truth set to compute standard information-retrieval
metrics.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from savingslens.models import NormalizedRecord


def compute_resolution_metrics(
    records: Sequence[NormalizedRecord],
    ground_truth: Mapping[str, str | None],
) -> dict[str, float]:
    """Compute precision, recall, and F1 for identity resolution.

    Parameters
    ----------
    records:
        Records already annotated by
        :meth:`~savingslens.entity_resolution.resolver.IdentityResolver.resolve_for_batch`.
    ground_truth:
        Mapping of scraped institution name to the expected FRN, or ``None``
        when the name is known to have no regulator entry.

    Each distinct institution name is scored once. Names absent from
    *ground_truth* are ignored. A resolution to the wrong FRN counts as both
    a false positive and a false negative.

    Returns
    -------
    dict
        ``{"precision": float, "recall": float, "f1": float,
          "true_positives": int, "false_positives": int,
          "false_negatives": int, "total_names": int}``
    """
    predicted: dict[str, str | None] = {}
    for record in records:
        name = record.institution_name
        if name in ground_truth and name not in predicted:
            predicted[name] = record.identity.regulator_id if record.identity else None

    true_positives = 0
    false_positives = 0
    false_negatives = 0

    for name, frn in predicted.items():
        expected = ground_truth[name]
        if frn is None:
            if expected is not None:
                false_negatives += 1
            continue

        if expected is None:
            false_positives += 1
        elif frn == expected:
            true_positives += 1
        else:
            false_positives += 1
            false_negatives += 1

    precision = (
        true_positives / (true_positives + false_positives)
        if (true_positives + false_positives) > 0
        else 0.0
    )
    recall = (
        true_positives / (true_positives + false_negatives)
        if (true_positives + false_negatives) > 0
        else 0.0
    )
    f1 = (
        2 * precision * recall / (precision + recall)
        if (precision + recall) > 0
        else 0.0
    )

    return {
        "precision": precision,
        "recall": recall,
        "f1": f1,
        "true_positives": true_positives,
        "false_positives": false_positives,
        "false_negatives": false_negatives,
        "total_names": len(predicted),
    }


def generate_validation_report(
    metrics: Mapping[str, float],
    statistics: Mapping[str, Any] | None = None,
) -> str:
    """Format resolution metrics, and optionally resolver statistics, as text."""
    lines = [
        "Identity Resolution Validation Report",
        "=" * 40,
        "",
        f"Names evaluated:        {metrics.get('total_names', 0):.0f}",
        f"True positives:         {metrics.get('true_positives', 0):.0f}",
        f"False positives:        {metrics.get('false_positives', 0):.0f}",
        f"False negatives:        {metrics.get('false_negatives', 0):.0f}",
        "",
        f"Precision:  {metrics.get('precision', 0.0):.4f}",
        f"Recall:     {metrics.get('recall', 0.0):.4f}",
        f"F1 Score:   {metrics.get('f1', 0.0):.4f}",
    ]

    if statistics:
        lines += [
            "",
            "Resolver statistics",
            "-" * 40,
            f"Lookup attempts:  {statistics.get('lookup_attempts', 0)}",
            f"Exact matches:    {statistics.get('exact_matches', 0)}",
            f"Partial matches:  {statistics.get('partial_matches', 0)}",
            f"Fuzzy matches:    {statistics.get('fuzzy_matches', 0)}",
            f"Cache hit rate:   {statistics.get('cache_hit_rate', 0.0)}%",
            f"Auto-flagged:     {statistics.get('auto_flagged', 0)}",
        ]

    f1 = metrics.get("f1", 0.0)
    if f1 >= 0.95:
        lines.append("\nAssessment: EXCELLENT, production-ready")
    elif f1 >= 0.85:
        lines.append("\nAssessment: GOOD, acceptable for production with monitoring")
    elif f1 >= 0.70:
        lines.append("\nAssessment: FAIR, review fuzzy threshold and reference coverage")
    else:
        lines.append("\nAssessment: POOR, significant identity resolution errors")

    return "\n".join(lines)
