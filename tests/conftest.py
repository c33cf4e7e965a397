"""Pytest configuration and shared fixtures.

Upstream APIs are replaced by ``FakeUpstream``, an ``httpx.MockTransport``
handler that serves scripted CheapShark and Steam responses and records
every request it receives.
"""

import httpx
import pytest

from game_deals_proxy.config import Config
from game_deals_proxy.metadata import MetadataStore
from game_deals_proxy.stores import StoreDirectory

STORES = [
    {"storeID": "1", "storeName": "Steam"},
    {"storeID": "7", "storeName": "GOG"},
    {"storeID": "11", "storeName": "Humble Store"},
    {"storeID": "15", "storeName": " Fanatical "},
]

ACCEPTED_STORES = ["steam", "humble store", "fanatical"]


def raw_deal(game_id: str, store_id: str, price: str, app_id: str | None = "100", **extra) -> dict:
    """A CheapShark ``/deals`` record."""
    deal = {
        "dealID": f"deal-{game_id}-{store_id}",
        "gameID": game_id,
        "title": f"Game {game_id}",
        "storeID": store_id,
        "salePrice": price,
        "normalPrice": "19.99",
        "savings": "50.0",
        "dealRating": "8.5",
        "thumb": "",
    }
    if app_id is not None:
        deal["steamAppID"] = app_id
    deal.update(extra)
    return deal


def app_details(app_id: str, name: str = "Half-Life 2", **data) -> dict:
    """A successful Steam ``appdetails`` body."""
    details = {
        "name": name,
        "release_date": {"coming_soon": False, "date": "16 Nov, 2004"},
        "genres": [{"id": "1", "description": "Action"}],
        "publishers": ["Valve"],
        "metacritic": {"score": 96},
    }
    details.update(data)
    return {app_id: {"success": True, "data": details}}


class FakeUpstream:
    """Scripted CheapShark + Steam.

    ``pages`` is the list of ``/deals`` pages (missing pages come back empty).
    ``apps`` maps a Steam app id to a script of responses, each either an int
    status code or a JSON body; the last item repeats once the script runs out.
    """

    def __init__(self, stores=None, pages=None, apps=None):
        self.stores = STORES if stores is None else stores
        self.pages = pages or []
        self.apps = apps or {}
        self.fail_stores = False
        self.fail_pages: set[int] = set()
        self.store_requests = 0
        self.deal_requests: list[dict] = []
        self.app_requests: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        params = request.url.params

        if path.endswith("/stores"):
            self.store_requests += 1
            if self.fail_stores:
                return httpx.Response(503)
            return httpx.Response(200, json=self.stores)

        if path.endswith("/deals"):
            self.deal_requests.append(dict(params))
            page = int(params["pageNumber"])
            if page in self.fail_pages:
                return httpx.Response(500)
            body = self.pages[page] if page < len(self.pages) else []
            return httpx.Response(200, json=body)

        if path.endswith("/appdetails"):
            app_id = params["appids"]
            self.app_requests.append(app_id)
            script = self.apps.get(app_id, [{app_id: {"success": False}}])
            item = script.pop(0) if len(script) > 1 else script[0]
            if isinstance(item, int):
                return httpx.Response(item)
            return httpx.Response(200, json=item)

        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    @property
    def pages_requested(self) -> list[int]:
        return [int(p["pageNumber"]) for p in self.deal_requests]


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records delays without waiting."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def metadata_store() -> MetadataStore:
    return MetadataStore()


@pytest.fixture
def loaded_directory():
    """Build a ``StoreDirectory`` loaded from the fake store list."""

    async def _build(client: httpx.AsyncClient) -> StoreDirectory:
        directory = StoreDirectory(client, ACCEPTED_STORES)
        await directory.load()
        return directory

    return _build


@pytest.fixture
def config(monkeypatch) -> Config:
    """A ``Config`` built from defaults with fast enrichment timings."""
    for name in (
        "TRACKED_CURRENCIES",
        "DEFAULT_STORES",
        "CACHE_TTL_SECONDS",
        "DEALS_PAGE_SIZE",
        "DEALS_TARGET_COUNT",
        "DEALS_MAX_PAGES",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("METADATA_DELAY_SECONDS", "0")
    monkeypatch.setenv("METADATA_MAX_ATTEMPTS", "3")
    return Config()
