"""Deal aggregation: page through CheapShark and keep one deal per game."""

import logging
from dataclasses import dataclass
from decimal import Decimal

import httpx

from .cheapshark import CheapSharkDeal, fetch_deal_page
from .errors import ConfigurationError
from .metadata import UNKNOWN, MetadataEntry, MetadataStore
from .stores import StoreDirectory

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Deal:
    game_id: str
    external_app_id: str
    store_id: str
    store_name: str
    sale_price: Decimal
    deal_id: str = ""
    title: str = ""
    normal_price: str = ""
    savings: float = 0.0
    deal_rating: float = 0.0
    thumb: str = ""
    # Replaced as a whole by the enricher while the deal sits in the cache
    metadata: MetadataEntry = UNKNOWN

    @property
    def deal_url(self) -> str:
        return f"https://www.cheapshark.com/redirect?dealID={self.deal_id}"

    def to_dict(self) -> dict:
        entry = self.metadata
        return {
            "dealID": self.deal_id,
            "gameID": self.game_id,
            "steamAppID": self.external_app_id,
            "title": self.title,
            "storeID": self.store_id,
            "storeName": self.store_name,
            "salePrice": str(self.sale_price),
            "normalPrice": self.normal_price,
            "savings": self.savings,
            "dealRating": self.deal_rating,
            "thumb": self.thumb,
            "dealUrl": self.deal_url,
            "metadataStatus": entry.status.value,
            "metadata": entry.metadata.to_dict() if entry.metadata else None,
        }


def is_better_deal(candidate: Deal, current: Deal, priority: dict[str, int]) -> bool:
    """True when *candidate* should replace *current* for the same game.

    Lower price wins; at equal price the lower store rank wins; anything
    else keeps the deal seen first.
    """
    if candidate.sale_price != current.sale_price:
        return candidate.sale_price < current.sale_price
    return priority[candidate.store_name] < priority[current.store_name]


class DealAggregator:
    def __init__(
        self,
        client: httpx.AsyncClient,
        directory: StoreDirectory,
        metadata: MetadataStore,
        *,
        page_size: int = 100,
        target_count: int = 100,
        max_pages: int = 50,
    ):
        self._client = client
        self._directory = directory
        self._metadata = metadata
        self.page_size = page_size
        self.target_count = target_count
        self.max_pages = max_pages

    def _to_deal(self, raw: CheapSharkDeal) -> Deal | None:
        """Resolve the store and drop deals we cannot serve."""
        if not raw.steam_app_id:
            return None
        store_name = self._directory.name_for(raw.store_id)
        if self._directory.rank_for(store_name) is None:
            return None
        return Deal(
            game_id=raw.game_id,
            external_app_id=raw.steam_app_id,
            store_id=raw.store_id,
            store_name=store_name,
            sale_price=raw.sale_price,
            deal_id=raw.deal_id,
            title=raw.title,
            normal_price=raw.normal_price,
            savings=raw.savings,
            deal_rating=raw.deal_rating,
            thumb=raw.thumb,
        )

    async def aggregate(self, currency: str, store_ids: list[str]) -> list[Deal]:
        """Build the deduplicated deal list for *currency*.

        Raises ``ConfigurationError`` for an empty store set and lets any
        upstream error abort the whole call, so callers never see a
        partially fetched result.
        """
        if not store_ids:
            raise ConfigurationError(f"No store IDs to aggregate {currency} deals from")

        priority = self._directory.priority
        unique: dict[str, Deal] = {}
        pages_fetched: list[tuple[int, int]] = []
        page = 0

        while len(unique) < self.target_count and page < self.max_pages:
            raw_deals = await fetch_deal_page(
                self._client,
                currency=currency,
                store_ids=list(store_ids),
                page_number=page,
                page_size=self.page_size,
            )
            page += 1

            new_games = 0
            for raw in raw_deals:
                deal = self._to_deal(raw)
                if deal is None:
                    continue
                current = unique.get(deal.game_id)
                if current is None:
                    unique[deal.game_id] = deal
                    new_games += 1
                elif is_better_deal(deal, current, priority):
                    unique[deal.game_id] = deal

            pages_fetched.append((page, new_games))
            if not raw_deals:
                # CheapShark has run out of deals for this store set
                break

        deals = list(unique.values())[: self.target_count]
        for deal in deals:
            deal.metadata = self._metadata.get(deal.external_app_id)

        logger.info(
            "Aggregated %d unique deals for %s from %d page(s)",
            len(deals),
            currency,
            page,
        )
        logger.debug("Pages fetched for %s (page, new games): %s", currency, pages_fetched)
        return deals
