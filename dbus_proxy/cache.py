import json
import logging
import os
import tempfile
import threading
import time
from typing import Any, Callable, Optional

from .errors import CacheWriteError

log = logging.getLogger("dbus_proxy.cache")


class CacheStore:
    """JSON file cache, one ``<key>.json`` per entry, expired by file mtime.

    Every key shares the same TTL. Unreadable or corrupt entries are reported
    as misses; failing to write one is an error.
    """

    def __init__(
        self,
        directory: str,
        ttl_ms: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = directory
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._ready = False
        self._init_lock = threading.Lock()

    def ensure_dir(self) -> None:
        if self._ready:
            return
        with self._init_lock:
            if not self._ready:
                os.makedirs(self.directory, exist_ok=True)
                self._ready = True

    def path_for(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def is_fresh(self, path: str) -> bool:
        try:
            mtime = os.stat(path).st_mtime
        except OSError:
            return False
        return (self._clock() - mtime) * 1000 < self.ttl_ms

    def get(self, key: str) -> Optional[Any]:
        path = self.path_for(key)
        if not self.is_fresh(path):
            log.debug("Cache miss: %s", key)
            return None
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as exc:
            log.debug("Unreadable cache entry %s: %s", key, exc)
            return None

    def set(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        tmp_path = None
        try:
            self.ensure_dir()
            payload = json.dumps(value, indent=2, ensure_ascii=False)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_path, path)
            tmp_path = None
        except (OSError, TypeError, ValueError) as exc:
            raise CacheWriteError(key, exc) from exc
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
        log.debug("Cache write: %s", key)

    def invalidate(self, key: str) -> None:
        try:
            os.unlink(self.path_for(key))
        except FileNotFoundError:
            return
        log.debug("Cache invalidated: %s", key)

    def clear(self) -> None:
        try:
            names = os.listdir(self.directory)
        except OSError as exc:
            log.warning("Cache clear skipped: %s", exc)
            return
        for name in names:
            try:
                os.unlink(os.path.join(self.directory, name))
            except OSError as exc:
                log.warning("Could not remove cache file %s: %s", name, exc)
