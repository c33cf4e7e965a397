"""Periodic refresh jobs, independent of request traffic."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .service import DealsService

logger = logging.getLogger(__name__)

STATUS_INTERVAL_HOURS = 1


class RefreshScheduler:
    def __init__(self, service: DealsService):
        self.service = service
        self._scheduler = AsyncIOScheduler()

    def _add_jobs(self):
        config = self.service.config

        # Deals: once per cache TTL, each fresh result enriched as it lands
        self._scheduler.add_job(
            self.service.refresh_all,
            "interval",
            kwargs={"enrich": True},
            seconds=config.cache_ttl,
            id="refresh_deals",
            name="Deal cache refresh",
        )

        # Metadata still missing from cached deals: once per cache TTL
        self._scheduler.add_job(
            self.enrich_cached,
            "interval",
            seconds=config.cache_ttl,
            id="enrich_cached",
            name="Metadata enrichment",
        )

        # Full metadata refresh: daily by default
        self._scheduler.add_job(
            self.full_enrich,
            "interval",
            hours=config.full_enrich_hours,
            id="full_enrich",
            name="Full metadata re-enrichment",
        )

        self._scheduler.add_job(
            self.service.log_status,
            "interval",
            hours=STATUS_INTERVAL_HOURS,
            id="status",
            name="Cache status log",
        )

    async def enrich_cached(self):
        # Spawned so a long backoff never holds up the refresh job
        self.service.trigger_enrichment()

    async def full_enrich(self):
        self.service.trigger_enrichment(force=True)

    def start(self):
        self._add_jobs()
        self._scheduler.start()
        logger.info(
            "Scheduler running: jobs %s",
            ", ".join(job.id for job in self._scheduler.get_jobs()),
        )

    def job_ids(self) -> list[str]:
        return [job.id for job in self._scheduler.get_jobs()]

    def shutdown(self):
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
