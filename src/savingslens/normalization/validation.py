"""Range and consistency checks applied to every normalized record.

Invalid values are nulled rather than rejected so the product still reaches
downstream review; each correction is logged.
"""

from __future__ import annotations

from dataclasses import replace

import structlog

from savingslens.models import AccountCategory, NormalizedRecord

logger = structlog.get_logger(__name__)

RATE_RANGE = (0.0, 100.0)
TERM_MONTHS_RANGE = (1, 600)
NOTICE_DAYS_RANGE = (1, 365)


def _in_range(value: float | None, bounds: tuple[float, float]) -> bool:
    return value is None or bounds[0] <= value <= bounds[1]


def validate_record(record: NormalizedRecord) -> tuple[NormalizedRecord, list[str]]:
    """Return a corrected copy of *record* and the list of corrections made."""
    changes: dict[str, object] = {}
    issues: list[str] = []

    for field_name in ("aer_rate", "gross_rate"):
        value = getattr(record, field_name)
        if not _in_range(value, RATE_RANGE):
            changes[field_name] = None
            issues.append(f"{field_name} {value} outside 0-100")

    if not _in_range(record.term_months, TERM_MONTHS_RANGE):
        changes["term_months"] = None
        issues.append(f"term_months {record.term_months} outside 1-600")

    if not _in_range(record.notice_period_days, NOTICE_DAYS_RANGE):
        changes["notice_period_days"] = None
        issues.append(f"notice_period_days {record.notice_period_days} outside 1-365")

    term = changes.get("term_months", record.term_months)
    notice = changes.get("notice_period_days", record.notice_period_days)
    if term is not None and notice is not None:
        # A product has a fixed term or a notice period, never both.
        if record.account_category == AccountCategory.NOTICE:
            changes["term_months"] = None
        else:
            changes["notice_period_days"] = None
        issues.append("term_months and notice_period_days both set")

    for field_name in ("min_deposit", "max_deposit"):
        value = getattr(record, field_name)
        if value is not None and value < 0:
            changes[field_name] = None
            issues.append(f"{field_name} {value} is negative")

    min_deposit = changes.get("min_deposit", record.min_deposit)
    max_deposit = changes.get("max_deposit", record.max_deposit)
    if min_deposit is not None and max_deposit is not None and min_deposit > max_deposit:
        changes["min_deposit"] = None
        changes["max_deposit"] = None
        issues.append(f"min_deposit {min_deposit} greater than max_deposit {max_deposit}")

    if not changes:
        return record, issues

    logger.warning(
        "record_fields_nulled",
        institution=record.institution_name,
        source=record.source,
        issues=issues,
    )
    return replace(record, **changes), issues
