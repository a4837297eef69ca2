"""Field-level parsers for scraped savings-product text.

Every parser returns ``None`` for input it cannot interpret rather than
raising, so a malformed field never takes a whole record down with it.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any

from savingslens.models import AccountCategory, InterestFrequency

# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------

_RATE_NOISE = re.compile(r"[%\s,£$€]")
_AMOUNT_NOISE = re.compile(r"[£$€,\s]")
_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+(?:\.\d+)?|\.\d+)")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_float(text: str) -> float | None:
    """Read the leading number of *text* (``"4.50AER"`` -> 4.5)."""
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    try:
        parsed = float(match.group(0))
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def parse_rate(value: Any) -> float | None:
    """Parse a rate such as ``"4.50%"`` or ``4.5`` into a float.

    ``None`` means "could not read a rate", which is distinct from a genuine
    ``0.0``.
    """
    if _is_number(value):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        return _to_float(_RATE_NOISE.sub("", value))
    return None


def parse_amount(value: Any) -> float | None:
    """Parse a deposit amount such as ``"£5,000"``.

    "No limit" style text has no numeric bound and yields ``None``.
    """
    if _is_number(value):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        lowered = value.lower()
        if "no limit" in lowered or "unlimited" in lowered:
            return None
        return _to_float(_AMOUNT_NOISE.sub("", value))
    return None


# ---------------------------------------------------------------------------
# Term / notice periods
# ---------------------------------------------------------------------------

_MONTHS = re.compile(r"(\d+)\s*months?", re.IGNORECASE)
_YEARS = re.compile(r"(\d+)\s*years?", re.IGNORECASE)
_DAYS = re.compile(r"(\d+)\s*days?", re.IGNORECASE)
_END_DATE = re.compile(r"\((\d{1,2})\.(\d{1,2})\.(\d{4})\)")

# Notice phrasing seen in aggregator titles: "95 Day Notice", "95-Day Notice",
# "Notice Account (95 days)".
_TITLE_NOTICE_PATTERNS = (
    re.compile(r"(\d+)\s*day\s*notice", re.IGNORECASE),
    re.compile(r"(\d+)-day\s*notice", re.IGNORECASE),
    re.compile(r"notice.*?(\d+)\s*day", re.IGNORECASE),
)

MIN_END_DATE_TERM_MONTHS = 3
MAX_END_DATE_TERM_MONTHS = 120


def _to_int(digits: str) -> int | None:
    try:
        return int(digits)
    except ValueError:
        # Digit runs beyond the interpreter's int conversion limit.
        return None


def _whole_number(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def parse_term_months(value: Any) -> int | None:
    """Parse ``"12 months"`` / ``"2 years"`` (case-insensitive) into months."""
    number = _whole_number(value)
    if number is not None:
        return number
    if not isinstance(value, str):
        return None

    month_match = _MONTHS.search(value)
    if month_match:
        return _to_int(month_match.group(1))

    year_match = _YEARS.search(value)
    if year_match:
        years = _to_int(year_match.group(1))
        return years * 12 if years is not None else None
    return None


def parse_notice_days(value: Any) -> int | None:
    """Parse ``"90 days"`` into days; ``"3 months"`` is approximated as 90."""
    number = _whole_number(value)
    if number is not None:
        return number
    if not isinstance(value, str):
        return None

    day_match = _DAYS.search(value)
    if day_match:
        return _to_int(day_match.group(1))

    month_match = _MONTHS.search(value)
    if month_match:
        months = _to_int(month_match.group(1))
        return months * 30 if months is not None else None
    return None


def parse_title_notice_days(title: str) -> int | None:
    """Extract a notice period from free-text product titles."""
    for pattern in _TITLE_NOTICE_PATTERNS:
        match = pattern.search(title)
        if match:
            return _to_int(match.group(1))
    return None


def term_from_end_date(text: str, scrape_date: date) -> int | None:
    """Derive a term in months from an end date like ``"(31.10.2027)"``.

    The term is the distance from *scrape_date* in 30-day months. Results
    outside 3–120 months are treated as misparsed dates and rejected.
    """
    match = _END_DATE.search(text)
    if not match:
        return None

    day, month, year = (int(g) for g in match.groups())
    try:
        end = date(year, month, day)
    except ValueError:
        return None

    months = round((end - scrape_date).days / 30)
    if MIN_END_DATE_TERM_MONTHS <= months <= MAX_END_DATE_TERM_MONTHS:
        return months
    return None


# ---------------------------------------------------------------------------
# Account category
# ---------------------------------------------------------------------------


def normalize_account_type(raw: Any) -> AccountCategory | None:
    """Map an explicit account-type field onto the category enum."""
    if not isinstance(raw, str) or not raw.strip():
        return None

    text = raw.lower()
    if "easy" in text or "instant" in text:
        return AccountCategory.EASY_ACCESS
    if "fixed" in text or "term" in text or "deposit" in text or "bond" in text:
        return AccountCategory.FIXED_TERM
    if "notice" in text:
        return AccountCategory.NOTICE
    if "limited" in text or "restricted" in text:
        return AccountCategory.LIMITED_ACCESS
    if "isa" in text:
        return AccountCategory.CASH_ISA
    return None


def classify_term_text(raw: Any) -> AccountCategory | None:
    """Infer the category from a term string such as ``"Fixed 12 months"``."""
    if not isinstance(raw, str) or not raw.strip():
        return None

    text = raw.lower()
    if "fixed" in text:
        return AccountCategory.FIXED_TERM
    if "notice" in text:
        return AccountCategory.NOTICE
    if any(cue in text for cue in ("instant", "immediate", "easy access", "on demand")):
        return AccountCategory.EASY_ACCESS
    if _MONTHS.search(text) or _YEARS.search(text):
        return AccountCategory.FIXED_TERM
    if _DAYS.search(text):
        return AccountCategory.NOTICE
    return None


def classify_title(raw: Any) -> AccountCategory | None:
    """Infer the category from an aggregator's free-text product title."""
    if not isinstance(raw, str) or not raw.strip():
        return None

    title = raw.lower()
    if any(cue in title for cue in ("instant access", "easy access", "easy saver", "instant saver")):
        return AccountCategory.EASY_ACCESS
    if "notice" in title or ("day" in title and ("account" in title or "saver" in title)):
        return AccountCategory.NOTICE
    if "fixed" in title or "bond" in title or "term" in title:
        return AccountCategory.FIXED_TERM
    return None


def title_mentions_notice(raw: Any) -> bool:
    if not isinstance(raw, str):
        return False
    title = raw.lower()
    return "notice" in title or "day" in title


# ---------------------------------------------------------------------------
# Flags, enums and free text
# ---------------------------------------------------------------------------

_FSCS_NEGATIVE = re.compile(r"\b(no|not|ineligible|false)\b")
_FSCS_POSITIVE = re.compile(r"\b(yes|eligible|protected|covered|true)\b")


def parse_fscs(value: Any) -> bool:
    """Read an FSCS-protection flag; anything unreadable defaults to protected."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.lower()
        if _FSCS_POSITIVE.search(text) and not _FSCS_NEGATIVE.search(text):
            return True
        if _FSCS_NEGATIVE.search(text):
            return False
    return True


def parse_interest_frequency(value: Any) -> InterestFrequency | None:
    if not isinstance(value, str):
        return None

    text = value.lower()
    if "monthly" in text:
        return InterestFrequency.MONTHLY
    if "quarterly" in text:
        return InterestFrequency.QUARTERLY
    if "annually" in text or "yearly" in text:
        return InterestFrequency.ANNUALLY
    if "maturity" in text:
        return InterestFrequency.ON_MATURITY
    return None


_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d.%m.%Y", "%d %B %Y", "%d %b %Y")


def parse_apply_by_date(value: Any) -> str | None:
    """Return an ISO ``YYYY-MM-DD`` date, or ``None`` if the text is not a date."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return datetime.fromisoformat(text).date().isoformat()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def join_features(value: Any) -> str | None:
    if isinstance(value, (list, tuple)):
        parts = [str(v).strip() for v in value if v is not None and str(v).strip()]
        return "; ".join(parts) or None
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
