"""TTL cache over the platform reference table."""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from savingslens.db import ReferenceStoreError
from savingslens.models import PlatformReferenceEntry
from savingslens.platforms.store import PlatformStore

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 300.0


class PlatformCache:
    """Lower-cased variant -> reference entry, reloaded in full once stale.

    Entries keep the store's load order, so iteration order is stable between
    reloads of an unchanged table. The clock is injectable so tests can
    control expiry.
    """

    def __init__(
        self,
        store: PlatformStore,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, PlatformReferenceEntry] = {}
        self._loaded_at: float | None = None

    @property
    def loaded_at(self) -> float | None:
        return self._loaded_at

    def __len__(self) -> int:
        return len(self._entries)

    def is_expired(self) -> bool:
        if self._loaded_at is None:
            return True
        return self._clock() - self._loaded_at > self._ttl

    def refresh(self) -> None:
        """Reload every entry from the store.

        Raises:
            ReferenceStoreError: If the store cannot be read.
        """
        platforms = self._store.load_platforms()
        entries: dict[str, PlatformReferenceEntry] = {}
        for platform in platforms:
            entries.setdefault(platform.platform_variant.strip().lower(), platform)
        self._entries = entries
        self._loaded_at = self._clock()
        logger.debug("platform_cache_loaded", entries=len(entries))

    def entries(self) -> dict[str, PlatformReferenceEntry]:
        """Return the current table, reloading first if the TTL has passed.

        A failed reload keeps serving the previous table until the next TTL.

        Raises:
            ReferenceStoreError: If the table has never been loaded and the
                store cannot be read.
        """
        if self.is_expired():
            try:
                self.refresh()
            except ReferenceStoreError as exc:
                if self._loaded_at is None:
                    raise
                # Retry after another TTL rather than on every lookup.
                self._loaded_at = self._clock()
                logger.warning(
                    "platform_cache_refresh_failed", error=str(exc), stale_entries=len(self._entries)
                )
        return self._entries
