"""In-memory deal cache, one entry per currency.

Entries are immutable and replaced wholesale by ``put``; the only in-place
change ever made to cached data is swapping a deal's ``metadata`` attribute.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from .aggregator import Deal
from .metadata import MetadataEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    currency: str
    timestamp: float  # seconds since the epoch
    deals: tuple[Deal, ...]

    def age(self, now: float) -> float:
        return now - self.timestamp


def is_expired(entry: CacheEntry, now: float, ttl: float) -> bool:
    return now - entry.timestamp > ttl


class CurrencyCache:
    def __init__(self, ttl: float, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def now(self) -> float:
        return self._clock()

    def get(self, currency: str) -> CacheEntry | None:
        return self._entries.get(currency.upper())

    def put(self, currency: str, deals: Iterable[Deal]) -> CacheEntry:
        """Replace the entry for *currency* in a single assignment."""
        entry = CacheEntry(
            currency=currency.upper(),
            timestamp=self._clock(),
            deals=tuple(deals),
        )
        self._entries[entry.currency] = entry
        logger.info("Cache updated for %s with %d unique deals", entry.currency, len(entry.deals))
        return entry

    def is_expired(self, entry: CacheEntry, now: float | None = None) -> bool:
        return is_expired(entry, self._clock() if now is None else now, self.ttl)

    def currencies(self) -> list[str]:
        return list(self._entries)

    def all_deals(self) -> list[Deal]:
        """Every cached deal across currencies, each object listed once."""
        seen: set[int] = set()
        result: list[Deal] = []
        for entry in list(self._entries.values()):
            for deal in entry.deals:
                if id(deal) not in seen:
                    seen.add(id(deal))
                    result.append(deal)
        return result

    def patch_metadata(self, app_id: str, metadata: MetadataEntry) -> int:
        """Set *metadata* on every cached deal for *app_id*; returns the count."""
        patched = 0
        for entry in list(self._entries.values()):
            for deal in entry.deals:
                if deal.external_app_id == app_id:
                    deal.metadata = metadata
                    patched += 1
        return patched
