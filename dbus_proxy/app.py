# HTTP API over the dbus.eus scraper: lines, stops and live arrival minutes.

from collections import deque
import datetime
import logging
import threading
import time
from typing import Any, Deque, Dict, Optional, Tuple

from flask import Flask, g, jsonify, make_response, request, Response
from werkzeug.exceptions import HTTPException

from . import config
from .arrivals import ArrivalEstimator, get_local_tz, local_clock
from .browser import StopPageScraper
from .cache import CacheStore
from .errors import DbusError, NotFound
from .lines import LineCatalog
from .stops import StopCatalog
from .tokens import TokenManager
from .upstream import new_session

log = logging.getLogger("dbus_proxy")
logging.basicConfig(level=config.LOG_LEVEL)


def utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat().replace("+00:00", "Z")


class PerKeyLimiter:
    def __init__(self, limit: int, window_sec: int) -> None:
        self.limit = max(1, limit)
        self.window_sec = max(1, window_sec)
        self._events: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def allow(self, key: str) -> Tuple[bool, int]:
        now = time.monotonic()
        with self._lock:
            events = self._events.get(key)
            if events is None:
                events = deque[float]()
                self._events[key] = events
            while events and events[0] <= now - self.window_sec:
                events.popleft()
            if len(events) >= self.limit:
                retry_after = int(self.window_sec - (now - events[0]))
                return False, max(1, retry_after)
            events.append(now)
            return True, 0


cache = CacheStore(config.CACHE_DIR, config.CACHE_TTL_MS)
session = new_session()
tokens = TokenManager(cache)
lines = LineCatalog(cache, session, config.DBUS_BASE_URL, timeout=config.UPSTREAM_TIMEOUT_SEC)
stops = StopCatalog(
    cache,
    lines,
    StopPageScraper(config.COOKIE_CONSENT_TIMEOUT_MS, headless=config.BROWSER_HEADLESS),
    on_token=tokens.publish,
)
tokens.bind(stops)
estimator = ArrivalEstimator(
    stops,
    tokens,
    session,
    config.DBUS_AJAX_URL,
    local_clock(get_local_tz(config.DBUS_TIMEZONE)),
    timeout=config.UPSTREAM_TIMEOUT_SEC,
)

api_limiter = PerKeyLimiter(config.API_RATE_LIMIT, config.RATE_LIMIT_WINDOW_SEC)

app = Flask(__name__)


def get_client_ip() -> str:
    if config.TRUST_PROXY_HEADERS:
        forwarded_for = request.headers.get("X-Forwarded-For", "")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
    return request.remote_addr or "unknown"


def error_response(status: int, message: str, *, retry_after: Optional[int] = None) -> Response:
    payload: Dict[str, Any] = {"success": False, "error": {"message": message}}
    resp = jsonify(payload)
    resp.status_code = status
    resp.headers["Cache-Control"] = "no-store"
    if retry_after is not None:
        resp.headers["Retry-After"] = str(retry_after)
    return resp


@app.before_request
def apply_rate_limit() -> Optional[Response]:
    g.started_at = time.monotonic()
    if not request.path.startswith("/api/"):
        return None
    if request.method == "OPTIONS":
        return make_response("", 204)
    allowed, retry_after = api_limiter.allow(get_client_ip())
    if not allowed:
        return error_response(
            429,
            "Too many requests from this IP, please try again later.",
            retry_after=retry_after,
        )
    return None


@app.after_request
def add_common_headers(resp: Response) -> Response:
    origin = request.headers.get("Origin")
    allow_any = "*" in config.CORS_ALLOWED_ORIGINS
    if origin and (allow_any or origin in config.CORS_ALLOWED_ORIGINS):
        resp.headers["Access-Control-Allow-Origin"] = "*" if allow_any else origin
        if not allow_any:
            resp.headers["Vary"] = "Origin"
        resp.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
        resp.headers["Access-Control-Allow-Headers"] = "Content-Type"
        resp.headers["Access-Control-Expose-Headers"] = "Retry-After, X-Response-Time"
        resp.headers["Access-Control-Max-Age"] = "600"

    resp.headers.setdefault("X-Content-Type-Options", "nosniff")
    resp.headers.setdefault("Referrer-Policy", "no-referrer")
    resp.headers.setdefault("X-Frame-Options", "DENY")

    started_at = g.get("started_at")
    if started_at is not None:
        elapsed_ms = int((time.monotonic() - started_at) * 1000)
        resp.headers["X-Response-Time"] = str(elapsed_ms)
        log.info("%s %s %s %dms", request.method, request.path, resp.status_code, elapsed_ms)
    return resp


@app.errorhandler(DbusError)
def handle_dbus_error(exc: DbusError) -> Response:
    if isinstance(exc, NotFound):
        return error_response(404, str(exc))
    log.error("%s %s failed: %s", request.method, request.path, exc)
    return error_response(500, str(exc))


@app.errorhandler(HTTPException)
def handle_http_error(exc: HTTPException) -> Response:
    if exc.code == 404:
        return error_response(404, f"Endpoint {request.method} {request.path} not found")
    return error_response(exc.code or 500, exc.description or exc.name)


@app.errorhandler(Exception)
def handle_unexpected(exc: Exception) -> Response:
    log.exception("Unhandled error in %s %s", request.method, request.path)
    return error_response(500, "Internal Server Error")


@app.route("/health", methods=["GET"])
def health() -> Response:
    return jsonify({"success": True, "message": "API is running", "timestamp": utc_now_iso()})


@app.route("/api/v1/lines", methods=["GET", "OPTIONS"])
def list_lines() -> Response:
    data = [line.to_dict() for line in lines.get_bus_lines()]
    return jsonify({"success": True, "data": data, "count": len(data)})


@app.route("/api/v1/lines/<line_code>", methods=["GET", "OPTIONS"])
def list_line_stops(line_code: str) -> Response:
    data = [stop.to_dict() for stop in stops.get_line_stops(line_code)]
    return jsonify({"success": True, "data": data})


@app.route("/api/v1/lines/<line_code>/<stop_code>", methods=["GET", "OPTIONS"])
def bus_arrival(line_code: str, stop_code: str) -> Response:
    arrival = estimator.estimate(line_code, stop_code)
    return jsonify({"success": True, "data": arrival.to_dict()})


if __name__ == "__main__":
    app.run(host=config.APP_HOST, port=config.APP_PORT)
