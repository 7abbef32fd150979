"""Cross-invocation cache of the latest released version.

The cache is a single text file holding the version string. Its age comes
from the file's modification time. There is no locking: concurrent launchers
may both refresh the cache, which only costs a duplicate fetch.
"""

import logging
import time
from collections.abc import Callable
from pathlib import Path

from bluedot.updater.config import CACHE_TTL_SECONDS
from bluedot.updater.errors import CacheUnreadable, VersionUnresolvable
from bluedot.updater.registry import ReleaseRegistry

logger = logging.getLogger(__name__)


class VersionCache:
    """TTL-bounded cache in front of the release registry."""

    def __init__(
        self,
        path: Path,
        registry: ReleaseRegistry,
        ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.path = path
        self.registry = registry
        self.ttl = ttl
        self._clock = clock

    def _load(self) -> tuple[str, float]:
        try:
            mtime = self.path.stat().st_mtime
            version = self.path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as e:
            raise CacheUnreadable(str(e)) from e
        if not version or any(ch.isspace() for ch in version):
            raise CacheUnreadable(f"Malformed cache entry in {self.path}")
        return version, mtime

    def read(self) -> str | None:
        """Return the cached version if present and younger than the TTL."""
        try:
            version, written_at = self._load()
        except CacheUnreadable as e:
            logger.debug("Version cache miss: %s", e)
            return None

        age = self._clock() - written_at
        if age >= self.ttl:
            logger.debug("Version cache expired (age %.0fs)", age)
            return None
        return version

    def write(self, version: str) -> bool:
        """Persist ``version``; a failure is logged and reported as False."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(f"{version}\n", encoding="utf-8")
        except OSError as e:
            logger.warning("Could not write version cache %s: %s", self.path, e)
            return False
        return True

    def fetch_latest(self) -> str:
        """Ask the registry for the newest tag; "" when it cannot be determined."""
        try:
            return self.registry.latest_tag()
        except VersionUnresolvable as e:
            logger.debug("Latest version unknown: %s", e)
            return ""

    def get_latest(self) -> str:
        """Cached version when fresh, otherwise fetch and refresh the cache."""
        cached = self.read()
        if cached:
            return cached

        latest = self.fetch_latest()
        if latest:
            self.write(latest)
        return latest
