import asyncio
from decimal import Decimal

import httpx
import pytest

from conftest import FakeUpstream, raw_deal
from game_deals_proxy.cheapshark import fetch_deal_page, fetch_stores
from game_deals_proxy.errors import ParseError, TransientUpstreamError


def test_fetch_stores_normalises_names(upstream):
    async def run():
        async with upstream.client() as client:
            return await fetch_stores(client)

    stores = asyncio.run(run())

    assert [(s.store_id, s.name) for s in stores] == [
        ("1", "steam"),
        ("7", "gog"),
        ("11", "humble store"),
        ("15", "fanatical"),
    ]


def test_fetch_stores_raises_on_error_status(upstream):
    upstream.fail_stores = True

    async def run():
        async with upstream.client() as client:
            await fetch_stores(client)

    with pytest.raises(TransientUpstreamError) as info:
        asyncio.run(run())
    assert info.value.status_code == 503


def test_fetch_stores_rejects_unexpected_shape():
    upstream = FakeUpstream(stores={"error": "nope"})

    async def run():
        async with upstream.client() as client:
            await fetch_stores(client)

    with pytest.raises(ParseError):
        asyncio.run(run())


def test_fetch_deal_page_sends_paging_params():
    upstream = FakeUpstream(pages=[[raw_deal("G1", "1", "4.99")]])

    async def run():
        async with upstream.client() as client:
            return await fetch_deal_page(
                client, currency="CAD", store_ids=["1", "11"], page_number=0, page_size=50
            )

    deals = asyncio.run(run())

    assert upstream.deal_requests == [
        {"pageSize": "50", "pageNumber": "0", "cc": "CAD", "storeID": "1,11"}
    ]
    assert deals[0].game_id == "G1"
    assert deals[0].sale_price == Decimal("4.99")
    assert deals[0].steam_app_id == "100"


def test_fetch_deal_page_treats_zero_app_id_as_missing():
    upstream = FakeUpstream(pages=[[raw_deal("G1", "1", "4.99", app_id="0"), raw_deal("G2", "1", "1.00", app_id=None)]])

    async def run():
        async with upstream.client() as client:
            return await fetch_deal_page(client, currency="USD", store_ids=["1"], page_number=0)

    deals = asyncio.run(run())

    assert [d.steam_app_id for d in deals] == [None, None]


def test_fetch_deal_page_skips_malformed_records():
    broken = raw_deal("G2", "1", "not-a-price")
    upstream = FakeUpstream(pages=[[raw_deal("G1", "1", "4.99"), broken, "garbage"]])

    async def run():
        async with upstream.client() as client:
            return await fetch_deal_page(client, currency="USD", store_ids=["1"], page_number=0)

    deals = asyncio.run(run())

    assert [d.game_id for d in deals] == ["G1"]


def test_fetch_deal_page_wraps_transport_errors():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await fetch_deal_page(client, currency="USD", store_ids=["1"], page_number=0)

    with pytest.raises(TransientUpstreamError):
        asyncio.run(run())
