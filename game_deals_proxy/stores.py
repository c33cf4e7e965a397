import logging
from types import MappingProxyType

import httpx

from .cheapshark import fetch_stores, normalize_store_name

logger = logging.getLogger(__name__)

UNKNOWN_STORE = "unknown"


class StoreDirectory:
    """CheapShark store id -> name mapping plus the accepted store priority.

    ``accepted_stores`` is ordered by preference: the first name gets rank 1.
    The mapping is only ever replaced wholesale by ``load()``.
    """

    def __init__(self, client: httpx.AsyncClient, accepted_stores: list[str]):
        self._client = client
        self.priority: dict[str, int] = {
            normalize_store_name(name): rank
            for rank, name in enumerate(accepted_stores, start=1)
        }
        self._names: dict[str, str] = {}
        self._default_ids: tuple[str, ...] = ()
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def stores(self):
        return MappingProxyType(self._names)

    @property
    def default_store_ids(self) -> list[str]:
        return list(self._default_ids)

    async def load(self) -> None:
        """Fetch the store list and rebuild the mapping.

        On failure the previous mapping is kept and the error propagates.
        """
        stores = await fetch_stores(self._client)

        names = {s.store_id: s.name for s in stores}
        default_ids = tuple(sid for sid, name in names.items() if name in self.priority)

        # Swap both together so readers never see a half-built directory
        self._names, self._default_ids = names, default_ids
        self._loaded = True

        logger.info("Store map loaded: %d stores", len(names))
        logger.info("Default store IDs: %s", list(default_ids))
        missing = set(self.priority) - set(names[sid] for sid in default_ids)
        if missing:
            logger.warning("Accepted stores not offered by CheapShark: %s", sorted(missing))

    def name_for(self, store_id: str) -> str:
        return self._names.get(store_id, UNKNOWN_STORE)

    def rank_for(self, store_name: str) -> int | None:
        return self.priority.get(store_name)
