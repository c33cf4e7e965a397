import asyncio

import httpx
import pytest

from conftest import FakeUpstream, app_details
from game_deals_proxy.errors import ParseError, ThrottlingError, TransientUpstreamError
from game_deals_proxy.steam import (
    AppNotFound,
    extract_release_year,
    fetch_app_metadata,
    parse_app_details,
)


@pytest.mark.parametrize(
    "text, year",
    [
        ("16 Nov, 2004", "2004"),
        ("Q3 2025", "2025"),
        ("Coming soon", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_release_year(text, year):
    assert extract_release_year(text) == year


def test_parse_app_details():
    payload = app_details(
        "220",
        genres=[{"id": "1", "description": "Action"}, {"id": "2", "description": "Shooter"}],
        publishers=["Valve", "Sierra"],
    )

    metadata = parse_app_details("220", payload)

    assert metadata.title == "Half-Life 2"
    assert metadata.release_date == "16 Nov, 2004"
    assert metadata.release_year == "2004"
    assert metadata.genres == ("Action", "Shooter")
    assert metadata.publishers == ("Valve", "Sierra")
    assert metadata.rating_score == 96


def test_parse_app_details_without_optional_fields():
    payload = {"10": {"success": True, "data": {"name": "Counter-Strike"}}}

    metadata = parse_app_details("10", payload)

    assert metadata.release_date is None
    assert metadata.release_year is None
    assert metadata.genres == ()
    assert metadata.rating_score is None


def test_parse_app_details_unsuccessful():
    with pytest.raises(AppNotFound):
        parse_app_details("10", {"10": {"success": False}})


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"other": {"success": True, "data": {}}},
        {"10": "nope"},
        {"10": {"success": True, "data": []}},
        {"10": {"success": True, "data": {"name": "X", "genres": ["Action"]}}},
    ],
)
def test_parse_app_details_rejects_unexpected_shapes(payload):
    with pytest.raises(ParseError):
        parse_app_details("10", payload)


@pytest.mark.parametrize("status", [403, 429])
def test_fetch_raises_throttling_error(status):
    upstream = FakeUpstream(apps={"220": [status]})

    async def run():
        async with upstream.client() as client:
            await fetch_app_metadata(client, "220")

    with pytest.raises(ThrottlingError) as info:
        asyncio.run(run())
    assert info.value.status_code == status


def test_fetch_raises_transient_error_on_server_error():
    upstream = FakeUpstream(apps={"220": [502]})

    async def run():
        async with upstream.client() as client:
            await fetch_app_metadata(client, "220")

    with pytest.raises(TransientUpstreamError) as info:
        asyncio.run(run())
    assert not isinstance(info.value, ThrottlingError)


def test_fetch_sends_locale_and_region():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json=app_details("220"))

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await fetch_app_metadata(client, "220", locale="french", region="CA")

    metadata = asyncio.run(run())

    assert seen == {"appids": "220", "l": "french", "cc": "CA"}
    assert metadata.title == "Half-Life 2"


def test_fetch_wraps_timeouts():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await fetch_app_metadata(client, "220", timeout=0.1)

    with pytest.raises(TransientUpstreamError):
        asyncio.run(run())
