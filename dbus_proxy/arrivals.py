import datetime
import logging
import re
from typing import Callable, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from bs4 import BeautifulSoup
import requests

from .errors import ParseError, TimeNotFound
from .models import ArrivalEstimate
from .stops import StopCatalog
from .tokens import TokenManager
from .upstream import request_text

log = logging.getLogger("dbus_proxy.arrivals")

ARRIVAL_ACTION = "calcula_parada"
ARRIVAL_ITEMS_SELECTOR = "#prox_lle ul li"

CLOCK_PATTERN = re.compile(r"\b(\d{2}):(\d{2})\b")
COUNTDOWN_PATTERN = re.compile(r"(\d+)\s*min")

Clock = Callable[[], datetime.datetime]


def get_local_tz(key: str) -> datetime.tzinfo:
    try:
        return ZoneInfo(key)
    except ZoneInfoNotFoundError:
        log.warning("Timezone %s not found; falling back to UTC", key)
        return datetime.timezone.utc


def local_clock(tz: datetime.tzinfo) -> Clock:
    return lambda: datetime.datetime.now(tz)


def build_arrival_payload(
    token: str, line_code: str, stop_internal_id: str, now: datetime.datetime
) -> Dict[str, str]:
    return {
        "action": ARRIVAL_ACTION,
        "security": token,
        "linea": str(line_code),
        "parada": stop_internal_id,
        "dia": f"{now.day:02d}",
        "mes": f"{now.month:02d}",
        "year": str(now.year),
        "hora": f"{now.hour:02d}",
        "minuto": f"{now.minute:02d}",
    }


def find_line_status(html: str, line_code: str) -> Optional[str]:
    """Return the text after ``Linea <code>:`` in the reply, if that line is listed."""
    label = f"Linea {line_code}:"
    soup = BeautifulSoup(html, "html.parser")
    for item in soup.select(ARRIVAL_ITEMS_SELECTOR):
        text = item.get_text().strip()
        if label in text:
            return text.split(label, 1)[1]
    return None


def parse_arrival_minutes(text: str, now: datetime.datetime) -> int:
    """Minutes until arrival from either ``HH:MM`` or ``N min``.

    A clock time that is not after ``now`` is taken to be tomorrow's.
    """
    clock = CLOCK_PATTERN.search(text)
    if clock:
        hour, minute = int(clock.group(1)), int(clock.group(2))
        try:
            target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
        except ValueError as exc:
            raise ParseError(f"Invalid arrival time {clock.group(0)!r}") from exc
        if target <= now:
            target += datetime.timedelta(days=1)
        if now.tzinfo is not None:
            # Same-zone subtraction is wall-clock; DST nights need real elapsed time.
            target = target.astimezone(datetime.timezone.utc)
            now = now.astimezone(datetime.timezone.utc)
        return max(0, int((target - now).total_seconds() // 60))

    countdown = COUNTDOWN_PATTERN.search(text)
    if countdown:
        return int(countdown.group(1))

    raise ParseError(f"Unrecognised arrival time format: {text.strip()!r}")


class ArrivalEstimator:
    def __init__(
        self,
        stops: StopCatalog,
        tokens: TokenManager,
        session: requests.Session,
        ajax_url: str,
        clock: Clock,
        timeout: Optional[float] = None,
    ) -> None:
        self.stops = stops
        self.tokens = tokens
        self.session = session
        self.ajax_url = ajax_url
        self.clock = clock
        self.timeout = timeout

    def get_arrival_minutes(self, line_code: str, stop_code: str) -> int:
        line_code = str(line_code)
        stop = self.stops.get_stop(line_code, stop_code)
        token = self.tokens.require(line_code)

        now = self.clock()
        payload = build_arrival_payload(token, line_code, stop.internal_id, now)
        html = request_text(
            self.session,
            "POST",
            self.ajax_url,
            data=payload,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=self.timeout,
        )

        status = find_line_status(html, line_code)
        if status is None:
            raise TimeNotFound(line_code)
        minutes = parse_arrival_minutes(status, now)
        log.debug("Line %s stop %s: %d min", line_code, stop_code, minutes)
        return minutes

    def estimate(self, line_code: str, stop_code: str) -> ArrivalEstimate:
        minutes = self.get_arrival_minutes(line_code, stop_code)
        return ArrivalEstimate(line=str(line_code), stop=str(stop_code), minutes=minutes)
