# Environment-driven settings for the dbus.eus proxy.

import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def env_csv(name: str, default: str) -> List[str]:
    value = os.getenv(name, default)
    return [item.strip() for item in value.split(",") if item.strip()]


DBUS_BASE_URL = os.getenv("DBUS_BASE_URL", "https://dbus.eus/")
DBUS_AJAX_URL = os.getenv("DBUS_AJAX_URL", "https://dbus.eus/wp-admin/admin-ajax.php")
DBUS_TIMEZONE = os.getenv("DBUS_TIMEZONE", "Europe/Madrid")

CACHE_DIR = os.getenv("CACHE_DIR", os.path.join(os.getcwd(), "cache"))
# CACHE_EXPIRY, RATE_LIMIT_WINDOW (ms), RATE_LIMIT_MAX and PORT are the older names.
CACHE_TTL_MS = env_int("CACHE_TTL_MS", env_int("CACHE_EXPIRY", 60 * 60 * 1000))

# None keeps requests waiting until the operator answers or drops the connection.
UPSTREAM_TIMEOUT_SEC = env_float("UPSTREAM_TIMEOUT_SEC", None)

COOKIE_CONSENT_TIMEOUT_MS = env_int("COOKIE_CONSENT_TIMEOUT_MS", 5000)
BROWSER_HEADLESS = env_bool("BROWSER_HEADLESS", True)

RATE_LIMIT_WINDOW_SEC = env_int("RATE_LIMIT_WINDOW_SEC", env_int("RATE_LIMIT_WINDOW", 15 * 60 * 1000) // 1000)
API_RATE_LIMIT = env_int("API_RATE_LIMIT", env_int("RATE_LIMIT_MAX", 100))
TRUST_PROXY_HEADERS = env_bool("TRUST_PROXY_HEADERS", False)
CORS_ALLOWED_ORIGINS = set(env_csv("CORS_ALLOWED_ORIGINS", "*"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

APP_HOST = os.getenv("APP_HOST", "127.0.0.1")
APP_PORT = env_int("APP_PORT", env_int("PORT", 3000))
