import json
import logging
import re
from typing import Any, List, Optional, Tuple

import requests

from .cache import CacheStore
from .errors import NotFound, UpstreamFormatError
from .models import Line, RawLineEntry
from .upstream import request_text

log = logging.getLogger("dbus_proxy.lines")

LINES_CACHE_KEY = "bus_lines"

# The landing page ships the line selector data as
#   var lineas = JSON.parse('[{"text":"5 | Benta Berri", ...}]');
LINES_MARKER = "lineas"
LITERAL_OPEN = "JSON.parse('"

# \s also covers the non-breaking spaces the site puts around the pipe.
DISPLAY_SEPARATOR = re.compile(r"\s*\|\s*")


def split_display_text(text: str) -> Optional[Tuple[str, str]]:
    """Split ``"code | name"`` option text; None when there is no separator."""
    if "|" not in text:
        return None
    code, name = DISPLAY_SEPARATOR.split(text, maxsplit=1)
    return code.strip(), name.strip()


def find_literal_end(html: str, start: int) -> int:
    """Index of the first quote after ``start`` that is not backslash-escaped."""
    at = html.find("'", start)
    while at != -1:
        backslashes = 0
        while html[at - 1 - backslashes] == "\\":
            backslashes += 1
        if backslashes % 2 == 0:
            return at
        at = html.find("'", at + 1)
    return -1


def find_lines_literal(html: str) -> str:
    marker_at = html.find(LINES_MARKER)
    if marker_at == -1:
        raise UpstreamFormatError("Line data not found in landing page")
    start = html.find(LITERAL_OPEN, marker_at)
    if start == -1:
        raise UpstreamFormatError("Line data literal not found in landing page")
    start += len(LITERAL_OPEN)
    end = find_literal_end(html, start)
    if end == -1:
        raise UpstreamFormatError("Line data literal is not terminated")
    return html[start:end]


def unescape_js_string(literal: str) -> str:
    # JSON string escapes cover everything the page emits except \'.
    try:
        return json.loads('"' + literal.replace("\\'", "'") + '"')
    except ValueError as exc:
        raise UpstreamFormatError(f"Line data literal could not be unescaped: {exc}") from exc


def parse_bus_lines(html: str) -> List[Line]:
    literal = unescape_js_string(find_lines_literal(html))
    try:
        raw: Any = json.loads(literal)
    except ValueError as exc:
        raise UpstreamFormatError(f"Line data is not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise UpstreamFormatError("Line data is not a list")

    lines: List[Line] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        item: RawLineEntry = entry
        parts = split_display_text(str(item.get("text") or ""))
        if parts is None:
            continue
        code, name = parts
        lines.append(
            Line(
                code=code,
                name=name,
                url=str(item.get("enlace") or ""),
                internal_id=str(item.get("value") or ""),
            )
        )
    return lines


class LineCatalog:
    def __init__(
        self,
        cache: CacheStore,
        session: requests.Session,
        base_url: str,
        timeout: Optional[float] = None,
    ) -> None:
        self.cache = cache
        self.session = session
        self.base_url = base_url
        self.timeout = timeout

    def get_bus_lines(self) -> List[Line]:
        cached = self.cache.get(LINES_CACHE_KEY)
        if isinstance(cached, list):
            try:
                return [Line.from_dict(item) for item in cached]
            except (KeyError, TypeError, AttributeError):
                log.warning("Ignoring malformed cache entry %s", LINES_CACHE_KEY)

        log.info("Fetching line catalog from %s", self.base_url)
        html = request_text(self.session, "GET", self.base_url, timeout=self.timeout)
        lines = parse_bus_lines(html)
        self.cache.set(LINES_CACHE_KEY, [line.to_dict() for line in lines])
        return lines

    def get_line(self, line_code: str) -> Line:
        for line in self.get_bus_lines():
            if line.code == str(line_code):
                return line
        raise NotFound(f"Line with code {line_code} not found")
