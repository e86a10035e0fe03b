"""Scraper and HTTP proxy for dbus.eus line, stop and arrival data."""

from .arrivals import ArrivalEstimator, parse_arrival_minutes
from .cache import CacheStore
from .errors import (
    CacheWriteError,
    DbusError,
    NotFound,
    ParseError,
    TimeNotFound,
    UpstreamFormatError,
    UpstreamHttpError,
)
from .lines import LineCatalog
from .models import ArrivalEstimate, Line, Stop, StopPage
from .stops import StopCatalog
from .tokens import TokenManager

__version__ = "1.0.0"

__all__ = [
    "ArrivalEstimate",
    "ArrivalEstimator",
    "CacheStore",
    "CacheWriteError",
    "DbusError",
    "Line",
    "LineCatalog",
    "NotFound",
    "ParseError",
    "Stop",
    "StopCatalog",
    "StopPage",
    "TimeNotFound",
    "TokenManager",
    "UpstreamFormatError",
    "UpstreamHttpError",
    "parse_arrival_minutes",
]
