"""Preflight checks — validate configuration and connectivity before serving."""

import logging

import httpx

from .cheapshark import fetch_deal_page, fetch_stores
from .config import Config
from .errors import DealsProxyError
from .steam import fetch_app_metadata

logger = logging.getLogger(__name__)

# ANSI colours for terminal output
_GREEN = "\033[32m"
_RED = "\033[31m"
_BOLD = "\033[1m"
_RESET = "\033[0m"

# Half-Life 2, a long-lived app id that always has store data
_PROBE_APP_ID = "220"


def _pass(label: str, detail: str = "") -> bool:
    suffix = f" — {detail}" if detail else ""
    print(f"  {_GREEN}✓{_RESET} {label}{suffix}")
    return True


def _fail(label: str, detail: str = "") -> bool:
    suffix = f" — {detail}" if detail else ""
    print(f"  {_RED}✗{_RESET} {label}{suffix}")
    return False


async def run_preflight(config: Config) -> bool:
    """Run all preflight checks. Returns True if everything passes."""
    print(f"\n{_BOLD}game-deals-proxy — preflight checks{_RESET}\n")
    all_ok = True

    async with httpx.AsyncClient(timeout=15) as http:
        print(f"{_BOLD}CheapShark{_RESET}")
        store_ids = await _check_stores(http, config)
        all_ok &= bool(store_ids)
        if store_ids:
            all_ok &= await _check_deals(http, config, store_ids)

        print(f"\n{_BOLD}Steam appdetails{_RESET}")
        all_ok &= await _check_steam(http, config)

    print()
    if all_ok:
        print(f"{_GREEN}{_BOLD}All checks passed.{_RESET} The proxy is ready to run.")
    else:
        print(f"{_RED}{_BOLD}Some checks failed.{_RESET} Review the errors above before starting the proxy.")
    print()

    return all_ok


async def _check_stores(http: httpx.AsyncClient, config: Config) -> list[str]:
    """Load the store list and confirm every accepted store is offered."""
    try:
        stores = await fetch_stores(http)
    except DealsProxyError as exc:
        _fail("Store list", str(exc))
        return []

    by_name = {s.name: s.store_id for s in stores}
    _pass("Store list", f"{len(stores)} store(s)")

    store_ids = []
    for name in config.default_stores:
        if name in by_name:
            store_ids.append(by_name[name])
            _pass(f"Store '{name}'", f"id {by_name[name]}")
        else:
            _fail(f"Store '{name}'", "not offered by CheapShark")
    return store_ids


async def _check_deals(http: httpx.AsyncClient, config: Config, store_ids: list[str]) -> bool:
    ok = True
    for currency in config.tracked_currencies:
        try:
            deals = await fetch_deal_page(
                http, currency=currency, store_ids=store_ids, page_number=0, page_size=5
            )
            ok &= _pass(f"Deals ({currency})", f"{len(deals)} deal(s) on the first page")
        except DealsProxyError as exc:
            ok &= _fail(f"Deals ({currency})", str(exc))
    return ok


async def _check_steam(http: httpx.AsyncClient, config: Config) -> bool:
    try:
        metadata = await fetch_app_metadata(
            http,
            _PROBE_APP_ID,
            locale=config.steam_locale,
            region=config.steam_region,
            timeout=config.metadata_timeout,
        )
    except DealsProxyError as exc:
        return _fail("API reachable", str(exc))
    return _pass("API reachable", f"app {_PROBE_APP_ID} is '{metadata.title}'")
