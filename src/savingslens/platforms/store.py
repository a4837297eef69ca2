"""Read/write access to the ``known_platforms`` reference table."""

from __future__ import annotations

from typing import Protocol

import psycopg

from savingslens.db import ReferenceStoreError, execute_query
from savingslens.models import PlatformReferenceEntry


class PlatformStore(Protocol):
    """Port through which the canonicalizer reads and extends the reference table."""

    def load_platforms(self) -> list[PlatformReferenceEntry]: ...

    def platform_exists(self, label: str) -> bool: ...

    def register_platform(self, label: str, notes: str) -> None: ...


class PostgresPlatformStore:
    """``PlatformStore`` backed by the ``known_platforms`` table.

    Each call runs in its own transaction (a savepoint when one is already
    open) so a failed statement never poisons the caller's connection.
    """

    def __init__(self, conn: psycopg.Connection) -> None:
        self._conn = conn

    def load_platforms(self) -> list[PlatformReferenceEntry]:
        """Return active variants ordered by variant text."""
        try:
            with self._conn.transaction():
                rows = execute_query(
                    self._conn,
                    """
                    SELECT platform_variant, canonical_name, display_name,
                           platform_type, is_active
                    FROM known_platforms
                    WHERE is_active
                    ORDER BY platform_variant
                    """,
                )
        except psycopg.Error as exc:
            raise ReferenceStoreError(f"known_platforms read failed: {exc}") from exc

        return [
            PlatformReferenceEntry(
                platform_variant=r["platform_variant"],
                canonical_name=r["canonical_name"],
                display_name=r["display_name"] or r["canonical_name"],
                platform_type=r["platform_type"] or "unknown",
                is_active=bool(r["is_active"]),
            )
            for r in rows
        ]

    def platform_exists(self, label: str) -> bool:
        try:
            with self._conn.transaction():
                rows = execute_query(
                    self._conn,
                    """
                    SELECT 1 AS found
                    FROM known_platforms
                    WHERE platform_variant = %s OR canonical_name = %s
                    LIMIT 1
                    """,
                    (label, label),
                )
        except psycopg.Error as exc:
            raise ReferenceStoreError(f"known_platforms lookup failed: {exc}") from exc
        return bool(rows)

    def register_platform(self, label: str, notes: str) -> None:
        """Insert *label* as an inactive, unknown-type platform awaiting review."""
        try:
            with self._conn.transaction():
                execute_query(
                    self._conn,
                    """
                    INSERT INTO known_platforms
                        (platform_variant, canonical_name, display_name,
                         platform_type, is_active, notes, created_at, updated_at)
                    VALUES (%s, %s, %s, 'unknown', false, %s, now(), now())
                    """,
                    (label, label, label, notes),
                )
        except psycopg.Error as exc:
            raise ReferenceStoreError(f"known_platforms insert failed: {exc}") from exc
