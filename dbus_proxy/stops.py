import logging
from typing import Callable, List, Optional, Protocol

from .cache import CacheStore
from .errors import NotFound
from .lines import LineCatalog
from .models import Stop, StopPage

log = logging.getLogger("dbus_proxy.stops")


class PageScraper(Protocol):
    def fetch(self, url: str) -> StopPage: ...


def stop_cache_key(line_code: str) -> str:
    return f"line_stops_{line_code}"


class StopCatalog:
    """Stops per line, scraped from the line page and cached per line.

    Every scrape may also turn up the session token the arrival endpoint
    wants. It is handed to ``on_token`` as-is, even if one is cached already;
    the token never goes into the stop entry.
    """

    def __init__(
        self,
        cache: CacheStore,
        lines: LineCatalog,
        scraper: PageScraper,
        on_token: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.cache = cache
        self.lines = lines
        self.scraper = scraper
        self.on_token = on_token

    def get_line_stops(self, line_code: str) -> List[Stop]:
        line_code = str(line_code)
        cache_key = stop_cache_key(line_code)
        cached = self.cache.get(cache_key)
        if isinstance(cached, list):
            try:
                return [Stop.from_dict(item) for item in cached]
            except (KeyError, TypeError, AttributeError):
                log.warning("Ignoring malformed cache entry %s", cache_key)

        line = self.lines.get_line(line_code)
        page = self.scraper.fetch(line.url)

        if page.token and self.on_token is not None:
            self.on_token(page.token)
        elif not page.token:
            log.warning("No security token on page for line %s", line_code)

        self.cache.set(cache_key, [stop.to_dict() for stop in page.stops])
        return page.stops

    def get_stop(self, line_code: str, stop_code: str) -> Stop:
        for stop in self.get_line_stops(line_code):
            if stop.code == str(stop_code):
                return stop
        raise NotFound(f"Stop with code {stop_code} not found on line {line_code}")
