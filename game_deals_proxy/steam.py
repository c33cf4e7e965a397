"""Steam store ``appdetails`` client used for metadata enrichment."""

import logging
import re

import httpx

from .errors import ParseError, ThrottlingError, TransientUpstreamError
from .metadata import Metadata

logger = logging.getLogger(__name__)

APPDETAILS_URL = "https://store.steampowered.com/api/appdetails"

# Steam answers 429 when rate limited and 403 once it starts blocking a caller
THROTTLING_STATUSES = frozenset({403, 429})

_YEAR_RE = re.compile(r"\b(\d{4})\b")


class AppNotFound(ParseError):
    """Steam answered but has no usable store data for the app."""


def extract_release_year(release_date: str | None) -> str | None:
    """Pull a 4-digit year out of Steam's free-text release date ("21 Oct, 2020")."""
    if not release_date:
        return None
    match = _YEAR_RE.search(release_date)
    return match.group(1) if match else None


def parse_app_details(app_id: str, payload) -> Metadata:
    """Parse an ``appdetails`` response body into ``Metadata``.

    Raises ``AppNotFound`` when Steam reports ``success: false`` and
    ``ParseError`` when the body has an unexpected shape.
    """
    if not isinstance(payload, dict) or app_id not in payload:
        raise ParseError(f"appdetails response for {app_id} is missing the app key")

    wrapper = payload[app_id]
    if not isinstance(wrapper, dict):
        raise ParseError(f"appdetails entry for {app_id} is not an object")
    if not wrapper.get("success"):
        raise AppNotFound(f"Steam has no store data for app {app_id}")

    details = wrapper.get("data")
    if not isinstance(details, dict):
        raise ParseError(f"appdetails data for {app_id} is not an object")

    try:
        release_date = (details.get("release_date") or {}).get("date") or None
        genres = tuple(
            g["description"] for g in details.get("genres") or [] if g.get("description")
        )
        publishers = tuple(p for p in details.get("publishers") or [] if p)
        metacritic = details.get("metacritic") or {}
        score = metacritic.get("score")
        return Metadata(
            title=details.get("name", ""),
            release_date=release_date,
            release_year=extract_release_year(release_date),
            genres=genres,
            publishers=publishers,
            rating_score=int(score) if score is not None else None,
        )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise ParseError(f"Unexpected appdetails shape for {app_id}: {exc}") from exc


async def fetch_app_metadata(
    client: httpx.AsyncClient,
    app_id: str,
    *,
    locale: str = "english",
    region: str = "US",
    timeout: float = 6.0,
) -> Metadata:
    """Fetch and parse store metadata for a single Steam app.

    Throttling responses raise ``ThrottlingError`` so the caller can back off;
    every other HTTP or transport failure raises ``TransientUpstreamError``.
    """
    try:
        resp = await client.get(
            APPDETAILS_URL,
            params={"appids": app_id, "l": locale, "cc": region},
            timeout=timeout,
        )
    except httpx.HTTPError as exc:
        raise TransientUpstreamError(f"appdetails request for {app_id} failed: {exc}") from exc

    if resp.status_code in THROTTLING_STATUSES:
        raise ThrottlingError(
            f"appdetails throttled for {app_id} ({resp.status_code})",
            status_code=resp.status_code,
        )
    if resp.is_error:
        raise TransientUpstreamError(
            f"appdetails returned {resp.status_code} for {app_id}",
            status_code=resp.status_code,
        )

    try:
        payload = resp.json()
    except ValueError as exc:
        raise ParseError(f"appdetails returned invalid JSON for {app_id}") from exc

    return parse_app_details(app_id, payload)
