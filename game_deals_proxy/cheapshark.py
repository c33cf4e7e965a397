import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

import httpx

from .errors import ParseError, TransientUpstreamError

logger = logging.getLogger(__name__)

BASE_URL = "https://www.cheapshark.com/api/1.0"


@dataclass
class CheapSharkStore:
    store_id: str
    name: str  # normalised: lowercase, trimmed


@dataclass
class CheapSharkDeal:
    deal_id: str
    game_id: str
    title: str
    store_id: str
    sale_price: Decimal
    normal_price: str
    savings: float  # percentage off
    deal_rating: float
    thumb: str
    steam_app_id: str | None

    @property
    def deal_url(self) -> str:
        return f"https://www.cheapshark.com/redirect?dealID={self.deal_id}"


def normalize_store_name(name: str) -> str:
    return name.strip().lower()


async def _get_json(client: httpx.AsyncClient, path: str, params: dict | None = None):
    try:
        resp = await client.get(f"{BASE_URL}{path}", params=params)
        resp.raise_for_status()
        return resp.json()
    except httpx.HTTPStatusError as exc:
        raise TransientUpstreamError(
            f"CheapShark {path} returned {exc.response.status_code}",
            status_code=exc.response.status_code,
        ) from exc
    except httpx.HTTPError as exc:
        raise TransientUpstreamError(f"CheapShark {path} request failed: {exc}") from exc
    except ValueError as exc:
        raise ParseError(f"CheapShark {path} returned invalid JSON: {exc}") from exc


async def fetch_stores(client: httpx.AsyncClient) -> list[CheapSharkStore]:
    """Fetch the full CheapShark store list (not paginated)."""
    data = await _get_json(client, "/stores")
    if not isinstance(data, list):
        raise ParseError("CheapShark /stores did not return a list")

    stores = []
    for s in data:
        try:
            stores.append(
                CheapSharkStore(
                    store_id=str(s["storeID"]),
                    name=normalize_store_name(s["storeName"]),
                )
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ParseError(f"Malformed store record {s!r}") from exc
    return stores


def _parse_deal(d: dict) -> CheapSharkDeal:
    if not isinstance(d, dict):
        raise ParseError(f"Deal record is not an object: {d!r}")

    steam_app_id = d.get("steamAppID") or None
    if steam_app_id == "0":
        steam_app_id = None

    try:
        return CheapSharkDeal(
            deal_id=d.get("dealID", ""),
            game_id=str(d["gameID"]),
            title=d.get("title", "?"),
            store_id=str(d["storeID"]),
            sale_price=Decimal(str(d["salePrice"])),
            normal_price=d.get("normalPrice", ""),
            savings=float(d.get("savings") or 0),
            deal_rating=float(d.get("dealRating") or 0),
            thumb=d.get("thumb", ""),
            steam_app_id=str(steam_app_id) if steam_app_id else None,
        )
    except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
        raise ParseError(f"Malformed deal record {d!r}") from exc


async def fetch_deal_page(
    client: httpx.AsyncClient,
    *,
    currency: str,
    store_ids: list[str],
    page_number: int,
    page_size: int = 100,
) -> list[CheapSharkDeal]:
    """Fetch one page of deals for *currency* restricted to *store_ids*."""
    params = {
        "pageSize": str(page_size),
        "pageNumber": str(page_number),
        "cc": currency,
        "storeID": ",".join(store_ids),
    }
    raw_deals = await _get_json(client, "/deals", params=params)
    if not isinstance(raw_deals, list):
        raise ParseError("CheapShark /deals did not return a list")

    logger.debug(
        "CheapShark page %d (%s) returned %d raw deals",
        page_number,
        currency,
        len(raw_deals),
    )
    deals = []
    for d in raw_deals:
        try:
            deals.append(_parse_deal(d))
        except ParseError as exc:
            logger.warning("Skipping deal on page %d: %s", page_number, exc)
    return deals
