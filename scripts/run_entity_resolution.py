#!/usr/bin/env python3
"""CLI script to resolve a list of institution names and report resolution quality."""

from __future__ import annotations

import json
from pathlib import Path

import structlog
import typer

from savingslens.config import get_settings
from savingslens.db import get_connection
from savingslens.entity_resolution.resolver import IdentityResolver
from savingslens.entity_resolution.store import PostgresIdentityStore
from savingslens.entity_resolution.validation import (
    compute_resolution_metrics,
    generate_validation_report,
)
from savingslens.logs import configure_logging
from savingslens.normalization.normalizer import SchemaNormalizer

logger = structlog.get_logger(__name__)
app = typer.Typer()


@app.command()
def main(
    input_file: Path = typer.Argument(help="File with one institution name per line"),
    ground_truth: Path | None = typer.Option(
        None, help="JSON object mapping institution name to expected FRN (or null)"
    ),
    flag: bool = typer.Option(
        False, "--flag/--no-flag", help="Add unresolved names to the manual review queue"
    ),
) -> None:
    """Resolve every name in INPUT_FILE and print a validation report."""
    names = [line.strip() for line in input_file.read_text().splitlines() if line.strip()]

    settings = get_settings()
    configure_logging(settings.log_level)
    conn = get_connection(settings)

    try:
        resolver = IdentityResolver(
            PostgresIdentityStore(conn),
            fuzzy_threshold=settings.fuzzy_threshold,
            partial_min_length=settings.partial_min_length,
            enable_caching=settings.enable_caching,
            enable_auto_flagging=flag,
        )
        records = SchemaNormalizer().normalize(
            [{"bankName": name} for name in names], "manual"
        )
        stats = resolver.resolve_for_batch(records)
        conn.commit()
        logger.info("entity_resolution_complete", **stats)

        for record in records:
            identity = record.identity
            typer.echo(
                f"{record.institution_name}\t{identity.regulator_id or '-'}\t"
                f"{identity.match_method}\t{identity.confidence:.3f}"
            )

        metrics = compute_resolution_metrics(
            records,
            json.loads(ground_truth.read_text()) if ground_truth else {},
        )
        typer.echo(generate_validation_report(metrics, resolver.get_statistics()))
    finally:
        conn.close()


if __name__ == "__main__":
    app()
