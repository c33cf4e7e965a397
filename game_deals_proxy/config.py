import os


class Config:
    """Proxy configuration loaded from environment variables."""

    def __init__(self):
        # HTTP server
        self.host = os.environ.get("HOST", "0.0.0.0")
        self.port = int(os.environ.get("PORT", "3000"))

        # Currencies pre-warmed at startup and refreshed on every tick
        raw_currencies = os.environ.get("TRACKED_CURRENCIES", "USD,CAD")
        self.tracked_currencies: list[str] = [
            c.strip().upper() for c in raw_currencies.split(",") if c.strip()
        ]
        if not self.tracked_currencies:
            raise ValueError("TRACKED_CURRENCIES must list at least one currency")

        # Accepted stores, most preferred first (order is the tie-break priority)
        raw_stores = os.environ.get("DEFAULT_STORES", "steam,humble store,fanatical")
        self.default_stores: list[str] = [
            s.strip().lower() for s in raw_stores.split(",") if s.strip()
        ]
        if not self.default_stores:
            raise ValueError("DEFAULT_STORES must list at least one store")

        self.cache_ttl = self._positive_float("CACHE_TTL_SECONDS", "3600")

        # CheapShark paging: stop at whichever limit is reached first
        self.deals_page_size = self._positive_int("DEALS_PAGE_SIZE", "100")
        self.deals_target_count = self._positive_int("DEALS_TARGET_COUNT", "100")
        self.deals_max_pages = self._positive_int("DEALS_MAX_PAGES", "50")

        # Steam appdetails enrichment
        self.steam_locale = os.environ.get("STEAM_LOCALE", "english")
        self.steam_region = os.environ.get("STEAM_REGION", "US").upper()
        self.metadata_timeout = self._positive_float("METADATA_TIMEOUT_SECONDS", "6")
        self.metadata_max_attempts = self._positive_int("METADATA_MAX_ATTEMPTS", "30")
        self.metadata_backoff_initial = self._positive_float("METADATA_BACKOFF_INITIAL", "1")
        self.metadata_backoff_max = self._positive_float("METADATA_BACKOFF_MAX", "30")
        self.metadata_delay = float(os.environ.get("METADATA_DELAY_SECONDS", "1"))
        self.full_enrich_hours = self._positive_float("FULL_ENRICH_HOURS", "24")

        self.http_timeout = self._positive_float("HTTP_TIMEOUT_SECONDS", "30")
        self.log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

    @staticmethod
    def _positive_int(name: str, default: str) -> int:
        value = int(os.environ.get(name, default))
        if value <= 0:
            raise ValueError(f"{name} must be positive, got {value}")
        return value

    @staticmethod
    def _positive_float(name: str, default: str) -> float:
        value = float(os.environ.get(name, default))
        if value <= 0:
            raise ValueError(f"{name} must be positive, got {value}")
        return value
