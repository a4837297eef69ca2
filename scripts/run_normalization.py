#!/usr/bin/env python3
"""CLI script to normalize a scraper output file and annotate institution identities."""

from __future__ import annotations

from pathlib import Path

import structlog
import typer

from savingslens.config import get_settings
from savingslens.db import get_connection
from savingslens.entity_resolution.resolver import IdentityResolver
from savingslens.entity_resolution.store import PostgresIdentityStore
from savingslens.logs import configure_logging
from savingslens.normalization.normalizer import SchemaNormalizer
from savingslens.pipeline import load_raw_records, run_pipeline, write_envelope
from savingslens.platforms.canonicalizer import PlatformCanonicalizer
from savingslens.platforms.store import PostgresPlatformStore

logger = structlog.get_logger(__name__)
app = typer.Typer()


@app.command()
def main(
    input_file: Path = typer.Argument(help="Scraper JSON output (list or envelope)"),
    output_file: Path = typer.Argument(help="Where to write the normalized envelope"),
    source: str | None = typer.Option(
        None, "--source", help="Source tag (defaults to metadata.source in the input file)"
    ),
    resolve: bool = typer.Option(True, "--resolve/--no-resolve", help="Annotate FRNs"),
) -> None:
    """Normalize one source's scrape and write the envelope for ingestion."""
    settings = get_settings()
    configure_logging(settings.log_level)

    raw_records, metadata = load_raw_records(input_file)
    source_tag = source or metadata.get("source")
    if not source_tag:
        raise typer.BadParameter("no --source given and input file has no metadata.source")

    conn = get_connection(settings)
    try:
        canonicalizer = PlatformCanonicalizer(
            PostgresPlatformStore(conn), ttl_seconds=settings.platform_cache_ttl_seconds
        )
        canonicalizer.reset_unknown_tracking()
        normalizer = SchemaNormalizer(canonicalizer)
        resolver = (
            IdentityResolver.from_settings(PostgresIdentityStore(conn), settings)
            if resolve
            else None
        )

        envelope, stats = run_pipeline(
            raw_records, source_tag, normalizer=normalizer, resolver=resolver
        )
        conn.commit()

        write_envelope(output_file, envelope)
        logger.info("normalization_written", path=str(output_file), **stats)
        logger.info("platform_statistics", **canonicalizer.get_statistics())
        if resolver is not None:
            resolver.log_statistics()
    finally:
        conn.close()


if __name__ == "__main__":
    app()
