"""Reference lookups against ``frn_lookup_helper`` and the review table."""

from __future__ import annotations

from typing import Protocol

import psycopg

from savingslens.db import ReferenceStoreError, execute_query
from savingslens.models import IdentityReferenceEntry, ReviewQueueEntry

_ENTRY_COLUMNS = "frn, canonical_name, search_name, confidence_score, match_type"


class IdentityStore(Protocol):
    """Port for the identity reference view and the manual-review table."""

    def find_exact(self, search_name: str) -> list[IdentityReferenceEntry]: ...

    def find_overlapping(self, search_name: str) -> list[IdentityReferenceEntry]: ...

    def all_entries(self) -> list[IdentityReferenceEntry]: ...

    def review_entry_exists(self, scraped_name: str) -> bool: ...

    def add_review_entry(self, entry: ReviewQueueEntry) -> None: ...


def _to_entry(row: dict) -> IdentityReferenceEntry:
    return IdentityReferenceEntry(
        frn=str(row["frn"]),
        canonical_name=row["canonical_name"],
        search_name=row["search_name"],
        confidence_score=float(row["confidence_score"]),
        match_type=row["match_type"],
    )


class PostgresIdentityStore:
    """``IdentityStore`` over PostgreSQL.

    ``frn_lookup_helper`` is read-only here; only rank-1 rows per search key
    are considered. ``frn_manual_overrides`` is append-only.
    """

    def __init__(self, conn: psycopg.Connection) -> None:
        self._conn = conn

    def _query(self, query: str, params: tuple = ()) -> list[dict]:
        try:
            with self._conn.transaction():
                return execute_query(self._conn, query, params)
        except psycopg.Error as exc:
            raise ReferenceStoreError(f"identity reference query failed: {exc}") from exc

    def _entries(self, query: str, params: tuple = ()) -> list[IdentityReferenceEntry]:
        rows = self._query(query, params)
        try:
            return [_to_entry(r) for r in rows]
        except (KeyError, TypeError, ValueError) as exc:
            raise ReferenceStoreError(f"malformed frn_lookup_helper row: {exc!r}") from exc

    def find_exact(self, search_name: str) -> list[IdentityReferenceEntry]:
        return self._entries(
            f"""
            SELECT {_ENTRY_COLUMNS}
            FROM frn_lookup_helper
            WHERE search_name = %s AND match_rank = 1
            """,
            (search_name,),
        )

    def find_overlapping(self, search_name: str) -> list[IdentityReferenceEntry]:
        """Rows whose search name contains, or is contained in, *search_name*."""
        return self._entries(
            f"""
            SELECT DISTINCT {_ENTRY_COLUMNS}
            FROM frn_lookup_helper
            WHERE (strpos(search_name, %s) > 0 OR strpos(%s, search_name) > 0)
              AND match_rank = 1
            """,
            (search_name, search_name),
        )

    def all_entries(self) -> list[IdentityReferenceEntry]:
        return self._entries(
            f"""
            SELECT DISTINCT {_ENTRY_COLUMNS}
            FROM frn_lookup_helper
            WHERE match_rank = 1
            ORDER BY search_name, frn
            """,
        )

    def review_entry_exists(self, scraped_name: str) -> bool:
        rows = self._query(
            "SELECT 1 AS found FROM frn_manual_overrides WHERE scraped_name = %s LIMIT 1",
            (scraped_name,),
        )
        return bool(rows)

    def add_review_entry(self, entry: ReviewQueueEntry) -> None:
        self._query(
            """
            INSERT INTO frn_manual_overrides
                (scraped_name, frn, firm_name, confidence_score, notes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT DO NOTHING
            """,
            (
                entry.scraped_name,
                entry.frn,
                entry.firm_name,
                entry.confidence_score,
                entry.notes,
                entry.created_at,
            ),
        )
