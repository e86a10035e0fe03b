import logging
from typing import Optional

from .cache import CacheStore
from .errors import UpstreamFormatError
from .stops import StopCatalog, stop_cache_key

log = logging.getLogger("dbus_proxy.tokens")

TOKEN_CACHE_KEY = "security_code"


class TokenManager:
    """Process-wide security token for the arrival endpoint.

    There is no way to ask for a token directly: one only turns up when a line
    page is scraped. ``refresh`` forces such a scrape once; if the page still
    carries no token the site has changed and we give up.
    """

    def __init__(self, cache: CacheStore, stops: Optional[StopCatalog] = None) -> None:
        self.cache = cache
        self.stops = stops

    def bind(self, stops: StopCatalog) -> None:
        self.stops = stops

    def get_token(self) -> Optional[str]:
        token = self.cache.get(TOKEN_CACHE_KEY)
        return str(token) if token else None

    def publish(self, token: Optional[str]) -> None:
        if not token:
            return
        self.cache.set(TOKEN_CACHE_KEY, token)

    def refresh(self, line_code: str) -> str:
        if self.stops is None:
            raise RuntimeError("TokenManager is not bound to a StopCatalog")
        log.info("Security token missing, re-scraping line %s", line_code)
        self.cache.invalidate(stop_cache_key(line_code))
        self.stops.get_line_stops(line_code)
        token = self.get_token()
        if not token:
            raise UpstreamFormatError(f"Security token not found on page for line {line_code}")
        return token

    def require(self, line_code: str) -> str:
        return self.get_token() or self.refresh(line_code)
