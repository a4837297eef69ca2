"""Auto-flagging of unresolved institution names for manual research."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

import structlog

from savingslens.db import ReferenceStoreError
from savingslens.entity_resolution.store import IdentityStore
from savingslens.models import ReviewQueueEntry

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_flag_notes(context: Mapping[str, Any] | None) -> str:
    """Describe where an unresolved name was seen, e.g. ``from moneyfacts, 3 products``."""
    if not context:
        return "no automatic match found"

    notes = []
    if context.get("platform"):
        notes.append(f"from {context['platform']}")
    if context.get("product_count"):
        notes.append(f"{context['product_count']} products")
    if context.get("avg_rate"):
        notes.append(f"avg rate {context['avg_rate']:.2f}%")
    return ", ".join(notes) if notes else "no automatic match found"


class ReviewQueue:
    """Appends unresolved names to the manual-review table, once per name.

    Names already flagged by this instance are skipped without a store
    round-trip; otherwise an existence check runs immediately before the
    insert. Concurrent runs can still race on the same name, which at worst
    produces a duplicate flag.
    """

    def __init__(
        self,
        store: IdentityStore,
        *,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._now = now
        self._flagged: set[str] = set()

    def flag(self, raw_name: str, context: Mapping[str, Any] | None = None) -> bool:
        """Queue *raw_name* for research. Returns True if a new entry was inserted."""
        if raw_name in self._flagged:
            return False

        try:
            if self._store.review_entry_exists(raw_name):
                logger.debug("review_entry_exists", name=raw_name)
                self._flagged.add(raw_name)
                return False
            self._store.add_review_entry(
                ReviewQueueEntry(
                    scraped_name=raw_name,
                    notes=f"Auto-flagged for manual verification - {generate_flag_notes(context)}",
                    created_at=self._now(),
                )
            )
        except ReferenceStoreError as exc:
            logger.warning("review_flag_failed", name=raw_name, error=str(exc))
            return False

        self._flagged.add(raw_name)
        logger.debug("review_entry_added", name=raw_name)
        return True
