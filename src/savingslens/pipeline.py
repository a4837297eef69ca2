"""End-to-end run: normalize one source's scrape, then resolve identities.

Produces the envelope the downstream ingestion stage reads:
``{"metadata": {"source", "method"}, "products": [...]}``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from savingslens.entity_resolution.resolver import IdentityResolver
from savingslens.normalization.normalizer import SchemaNormalizer

logger = structlog.get_logger(__name__)


def load_raw_records(path: Path) -> tuple[list[Any], dict[str, Any]]:
    """Read a scraper output file.

    Accepts either a bare JSON list of records or an envelope with a
    ``products`` list. Returns ``(records, metadata)``; metadata is empty for
    a bare list.

    Raises:
        ValueError: If the file holds neither shape.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, list):
        return data, {}
    if isinstance(data, dict) and isinstance(data.get("products"), list):
        metadata = data.get("metadata")
        return data["products"], metadata if isinstance(metadata, dict) else {}
    raise ValueError(f"{path}: expected a list of records or an object with 'products'")


def write_envelope(path: Path, envelope: dict[str, Any]) -> None:
    """Write *envelope* as indented JSON, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(envelope, indent=2, default=str), encoding="utf-8")


def run_pipeline(
    raw_records: list[Any],
    source_tag: str,
    *,
    normalizer: SchemaNormalizer,
    resolver: IdentityResolver | None = None,
    extraction_method: str | None = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Normalize *raw_records* from *source_tag* and annotate their identities.

    Parameters
    ----------
    raw_records:
        Records in the scraper's own shape, in scrape order.
    source_tag:
        Which scraper produced them; selects the extraction profile.
    normalizer:
        Schema normalizer, usually wired to a platform canonicalizer.
    resolver:
        Identity resolver. When omitted, records are emitted without
        identity fields populated.
    extraction_method:
        Overrides the ``metadata.method`` value (default ``"<source>-scraper"``).

    Returns
    -------
    tuple
        ``(envelope, stats)``; ``products`` keeps input order and length.
    """
    profile = normalizer.profile_for(source_tag)
    records = normalizer.normalize(raw_records, source_tag)

    stats: dict[str, Any] = {"source": profile.tag, "normalized": len(records)}
    if resolver is not None:
        stats["identity"] = resolver.resolve_for_batch(records)

    envelope = {
        "metadata": {
            "source": profile.tag,
            "method": extraction_method or profile.extraction_method,
        },
        "products": [record.to_dict() for record in records],
    }
    logger.info("pipeline_complete", source=profile.tag, products=len(records))
    return envelope, stats
