"""PostgreSQL database connection via psycopg3."""

import psycopg
from psycopg.rows import dict_row

from savingslens.config import Settings


def get_connection(settings: Settings | None = None) -> psycopg.Connection:
    """Open a synchronous connection to PostgreSQL with dict row factory.

    Every lookup is bounded: the connection attempt by ``connect_timeout_seconds``
    and each statement by ``statement_timeout_ms``.
    """
    if settings is None:
        from savingslens.config import get_settings
        settings = get_settings()

    return psycopg.connect(
        settings.database_url,
        row_factory=dict_row,
        connect_timeout=settings.connect_timeout_seconds,
        options=f"-c statement_timeout={settings.statement_timeout_ms}",
    )


def execute_query(conn: psycopg.Connection, query: str, params: tuple = ()) -> list[dict]:
    """Execute a query and return all rows as dicts."""
    with conn.cursor() as cur:
        cur.execute(query, params)
        if cur.description:
            return cur.fetchall()
        return []


class ReferenceStoreError(Exception):
    """A reference table could not be read or written."""
