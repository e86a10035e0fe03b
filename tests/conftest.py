import datetime
import json
from typing import Any, Dict, List, Optional

import pytest

from dbus_proxy.cache import CacheStore
from dbus_proxy.lines import LINES_CACHE_KEY
from dbus_proxy.models import Line, Stop, StopPage


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class FakeSession:
    def __init__(self, *responses: FakeResponse, events: Optional[List[str]] = None) -> None:
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.events = events if events is not None else []

    def request(self, method, url, data=None, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "data": data, "headers": headers})
        self.events.append(method.lower())
        return self.responses.pop(0)


class FakeScraper:
    def __init__(self, *pages: StopPage, events: Optional[List[str]] = None) -> None:
        self.pages = list(pages)
        self.urls: List[str] = []
        self.events = events if events is not None else []

    def fetch(self, url: str) -> StopPage:
        self.urls.append(url)
        self.events.append("scrape")
        return self.pages.pop(0)


LINE_5 = Line(code="5", name="Benta Berri", url="https://dbus.eus/5-benta-berri/", internal_id="12")
LINE_28 = Line(code="28", name="Amara - Ospitaleak", url="https://dbus.eus/28-amara/", internal_id="40")

STOPS_5 = [
    Stop(code="101", name="Boulevard 19", internal_id="1001"),
    Stop(code="102", name="Miramar", internal_id="1002"),
]


@pytest.fixture
def cache(tmp_path):
    return CacheStore(str(tmp_path / "cache"), ttl_ms=60 * 60 * 1000)


@pytest.fixture
def seeded_cache(cache):
    cache.set(LINES_CACHE_KEY, [LINE_5.to_dict(), LINE_28.to_dict()])
    return cache


def js_literal(entries: List[Dict[str, str]]) -> str:
    """Encode entries the way the landing page embeds them in JSON.parse('...')."""
    return json.dumps(json.dumps(entries))[1:-1].replace("/", "\\/")


def fixed_clock(*args: int):
    now = datetime.datetime(*args)
    return lambda: now
