"""Deals service: ties together the CheapShark and Steam clients, the caches
and the background tasks that keep them fresh."""

import asyncio
import logging
import time
from typing import Callable, Coroutine

import httpx

from .aggregator import DealAggregator
from .cache import CurrencyCache
from .config import Config
from .enricher import EnrichmentReport, MetadataEnricher, Sleep
from .errors import DealsProxyError
from .metadata import MetadataStore
from .stores import StoreDirectory

logger = logging.getLogger(__name__)


class DealsService:
    def __init__(
        self,
        config: Config,
        *,
        http: httpx.AsyncClient | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=config.http_timeout)

        self.directory = StoreDirectory(self._http, config.default_stores)
        self.metadata = MetadataStore()
        self.cache = CurrencyCache(config.cache_ttl, clock=clock)
        self.aggregator = DealAggregator(
            self._http,
            self.directory,
            self.metadata,
            page_size=config.deals_page_size,
            target_count=config.deals_target_count,
            max_pages=config.deals_max_pages,
        )
        self.enricher = MetadataEnricher(
            self._http,
            self.metadata,
            self.cache,
            locale=config.steam_locale,
            region=config.steam_region,
            timeout=config.metadata_timeout,
            max_attempts=config.metadata_max_attempts,
            backoff_initial=config.metadata_backoff_initial,
            backoff_max=config.metadata_backoff_max,
            delay=config.metadata_delay,
            sleep=sleep,
        )

        self.ready = False
        self._tasks: set[asyncio.Task] = set()
        self._refreshing: dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        """Load stores, pre-warm every tracked currency, then start enrichment."""
        await self.refresh_all()
        self.ready = True
        logger.info("Cache pre-warmed for %s", ", ".join(self.cache.currencies()) or "no currencies")
        self.trigger_enrichment()

    async def stop(self):
        """Let in-flight tasks finish their current step, then close the client."""
        self.enricher.stop()
        # A finishing refresh may still spawn an enrichment pass, which ends at once
        while self._tasks:
            logger.info("Waiting for %d background task(s)", len(self._tasks))
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await asyncio.sleep(0)
        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        """Run *coro* as a tracked background task whose failures get logged."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed: %s", task.get_name(), exc, exc_info=exc)

    def trigger_refresh(self, currency: str) -> asyncio.Task:
        """Start a refresh for *currency* unless one is already running."""
        currency = currency.upper()
        task = self._refreshing.get(currency)
        if task is not None and not task.done():
            return task
        task = self.spawn(self.refresh_currency(currency, enrich=True), f"refresh-{currency}")
        self._refreshing[currency] = task
        task.add_done_callback(lambda t: self._refresh_done(currency, t))
        return task

    def _refresh_done(self, currency: str, task: asyncio.Task):
        if self._refreshing.get(currency) is task:
            del self._refreshing[currency]

    def trigger_enrichment(self, *, force: bool = False) -> asyncio.Task:
        name = "full-enrichment" if force else "enrichment"
        return self.spawn(self.enrich_cached(force=force), name)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def load_stores(self) -> bool:
        try:
            await self.directory.load()
            return True
        except DealsProxyError as exc:
            logger.error("Error loading stores: %s", exc)
            return False

    async def refresh_currency(
        self, currency: str, *, enrich: bool = False, reload_stores: bool = True
    ) -> bool:
        """Re-aggregate *currency*; the cache is only touched on success."""
        currency = currency.upper()
        if reload_stores and not self.directory.loaded:
            await self.load_stores()

        try:
            deals = await self.aggregator.aggregate(currency, self.directory.default_store_ids)
        except DealsProxyError as exc:
            logger.error("Error fetching deals for %s: %s", currency, exc)
            return False

        self.cache.put(currency, deals)
        if enrich:
            self.spawn(self.enricher.enrich(deals), f"enrichment-{currency}")
        return True

    async def refresh_all(self, *, enrich: bool = False):
        """Refresh every tracked currency concurrently."""
        if not self.directory.loaded:
            await self.load_stores()
        # Stores were just (re)tried above, so currencies do not retry them again
        results = await asyncio.gather(
            *(
                self.refresh_currency(c, enrich=enrich, reload_stores=False)
                for c in self.config.tracked_currencies
            )
        )
        failed = [c for c, ok in zip(self.config.tracked_currencies, results) if not ok]
        if failed:
            logger.warning("Refresh failed for %s — serving previous data", ", ".join(failed))

    async def enrich_cached(self, *, force: bool = False) -> EnrichmentReport:
        return await self.enricher.enrich(self.cache.all_deals(), force=force)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def get_deals(self, currency: str) -> dict:
        """Return the cached deals for *currency*, refreshing in the background
        when the entry is missing or expired."""
        currency = currency.strip().upper()
        entry = self.cache.get(currency)
        expired = entry is None or self.cache.is_expired(entry)
        if expired and currency in self.config.tracked_currencies:
            self.trigger_refresh(currency)
        elif expired:
            logger.debug("Ignoring request for untracked currency %r", currency)

        deals = [d.to_dict() for d in entry.deals] if entry else []
        return {
            "cached": not expired,
            "currency": currency,
            "count": len(deals),
            "deals": deals,
        }

    def status(self) -> dict:
        now = self.cache.now()
        currencies = {}
        for currency in self.cache.currencies():
            entry = self.cache.get(currency)
            currencies[currency] = {
                "count": len(entry.deals),
                "age_seconds": round(entry.age(now)),
                "expired": self.cache.is_expired(entry, now),
            }
        return {
            "ready": self.ready,
            "stores": len(self.directory.stores),
            "default_store_ids": self.directory.default_store_ids,
            "currencies": currencies,
            "metadata": self.metadata.counts(),
            "background_tasks": len(self._tasks),
        }

    def log_status(self):
        status = self.status()
        for currency, info in status["currencies"].items():
            logger.info(
                "Status %s: %d deals, %ds old%s",
                currency,
                info["count"],
                info["age_seconds"],
                " (expired)" if info["expired"] else "",
            )
        logger.info(
            "Status metadata: %d present, %d absent",
            status["metadata"]["present"],
            status["metadata"]["absent"],
        )
