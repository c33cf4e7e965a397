"""Steam metadata enrichment with throttling-aware retry.

Identifiers are processed strictly one at a time to stay under Steam's
rate limits.  Each resolution is written to the shared ``MetadataStore``
and patched into any deal currently held by the ``CurrencyCache``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable

import httpx

from .aggregator import Deal
from .cache import CurrencyCache
from .errors import DealsProxyError, ThrottlingError
from .metadata import ABSENT, MetadataEntry, MetadataStore
from .steam import fetch_app_metadata

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class EnrichmentReport:
    requested: int = 0
    present: int = 0
    absent: int = 0
    exhausted: int = 0  # still throttled after every attempt, left unknown
    stopped: bool = False


def backoff_delay(attempt: int, initial: float, maximum: float) -> float:
    """Delay before retrying after the *attempt*-th throttled try (1-based)."""
    return min(initial * (2 ** (attempt - 1)), maximum)


class MetadataEnricher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        store: MetadataStore,
        cache: CurrencyCache,
        *,
        locale: str = "english",
        region: str = "US",
        timeout: float = 6.0,
        max_attempts: int = 30,
        backoff_initial: float = 1.0,
        backoff_max: float = 30.0,
        delay: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ):
        self._client = client
        self._store = store
        self._cache = cache
        self.locale = locale
        self.region = region
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self.delay = delay
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._stopping = False

    def stop(self) -> None:
        """Ask a running pass to finish at the next identifier or backoff sleep."""
        self._stopping = True

    def pending_app_ids(self, deals: Iterable[Deal], *, force: bool = False) -> list[str]:
        """Distinct app ids in input order, minus those already known (unless forced)."""
        seen: set[str] = set()
        app_ids: list[str] = []
        for deal in deals:
            app_id = deal.external_app_id
            if not app_id or app_id in seen:
                continue
            seen.add(app_id)
            if not force and self._store.get(app_id).is_present:
                continue
            app_ids.append(app_id)
        return app_ids

    async def enrich(self, deals: Iterable[Deal], *, force: bool = False) -> EnrichmentReport:
        """Fetch metadata for *deals*; never raises for upstream failures."""
        deals = list(deals)
        async with self._lock:
            # Computed under the lock so a pass queued behind another one
            # skips whatever that pass already resolved
            app_ids = self.pending_app_ids(deals, force=force)
            report = EnrichmentReport(requested=len(app_ids))
            if not app_ids:
                return report

            logger.info("Enriching metadata for %d app(s) (force=%s)", len(app_ids), force)
            for index, app_id in enumerate(app_ids):
                if self._stopping:
                    report.stopped = True
                    logger.info("Enrichment stopped with %d app(s) left", len(app_ids) - index)
                    break

                entry = await self._fetch_with_retry(app_id)
                if entry is None:
                    report.exhausted += 1
                else:
                    self._record(app_id, entry)
                    if entry.is_present:
                        report.present += 1
                    else:
                        report.absent += 1

                if index < len(app_ids) - 1:
                    await self._sleep(self.delay)

        logger.info(
            "Enrichment done: %d present, %d absent, %d throttled out",
            report.present,
            report.absent,
            report.exhausted,
        )
        return report

    async def _fetch_with_retry(self, app_id: str) -> MetadataEntry | None:
        """Resolve one app id; ``None`` means we were throttled on every attempt."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                metadata = await fetch_app_metadata(
                    self._client,
                    app_id,
                    locale=self.locale,
                    region=self.region,
                    timeout=self.timeout,
                )
                return MetadataEntry.present(metadata)
            except ThrottlingError as exc:
                if attempt >= self.max_attempts:
                    logger.warning(
                        "Giving up on app %s after %d throttled attempts", app_id, attempt
                    )
                    return None
                delay = backoff_delay(attempt, self.backoff_initial, self.backoff_max)
                logger.info(
                    "Throttled on app %s (%s), retrying in %.0fs (attempt %d/%d)",
                    app_id,
                    exc.status_code,
                    delay,
                    attempt,
                    self.max_attempts,
                )
                await self._sleep(delay)
                if self._stopping:
                    logger.info("Stopping: leaving app %s unresolved", app_id)
                    return None
            except DealsProxyError as exc:
                logger.warning("No metadata for app %s: %s", app_id, exc)
                return ABSENT
        return None

    def _record(self, app_id: str, entry: MetadataEntry) -> None:
        if not entry.is_present and self._store.get(app_id).is_present:
            # A forced refresh that fails keeps the metadata we already have
            logger.debug("Keeping existing metadata for app %s", app_id)
            return
        self._store.set(app_id, entry)
        patched = self._cache.patch_metadata(app_id, entry)
        logger.debug("Stored %s metadata for app %s (%d cached deal(s))", entry.status.value, app_id, patched)
