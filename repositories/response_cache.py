"""
repositories/response_cache.py

Responsibility: Persists the last update outcome per hostname in a cache
directory (one file per hostname) and keeps an in-memory copy that is
invalidated whenever the directory changes underneath it.
Does NOT: decide whether an update is needed, call the update endpoint, or
validate hostnames.
"""

from __future__ import annotations

import logging
import os
import queue
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from watchdog.events import FileSystemEvent
from watchdog.observers import Observer

from ddns.outcome import Outcome, format_outcome, parse_outcome
from exceptions import CacheError, CacheParseError, OutcomeParseError
from watcher import create_observer, is_invalidating

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry:
    """A hostname's last recorded outcome and when it was recorded."""

    outcome: Outcome

    # Timezone-aware UTC; the file mtime for entries loaded from disk
    timestamp: datetime


class ResponseCache:
    """
    Hybrid in-memory / on-disk map from hostname to CacheEntry.

    Disk is the source of truth: `<cache_dir>/<hostname>` holds the canonical
    outcome text and its mtime is the entry timestamp. The in-memory layer
    serves repeated reads within a run. While watching, a background watchdog
    observer queues directory events and check_disk_changes() drops the whole
    in-memory layer if any of them could have changed a file.

    Not thread-safe: get/put/clear/check_disk_changes must all be called from
    the same thread. The observer thread only ever touches the queue.

    Collaborators:
        - watcher.create_observer: builds the background producer
    """

    def __init__(self, cache_dir: Path | str, clock: Callable[[], datetime] = _utcnow) -> None:
        """
        Initialises an empty cache rooted at `cache_dir`.

        The directory is not created until the first put() or start_watching().

        Args:
            cache_dir: Directory holding one file per hostname.
            clock: Source of write timestamps; defaults to the current UTC time.
        """
        self._dir = Path(cache_dir)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._events: queue.Queue[FileSystemEvent] = queue.Queue()
        self._observer: Observer | None = None

    @property
    def cache_dir(self) -> Path:
        return self._dir

    # ---------------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------------

    def get(self, hostname: str) -> CacheEntry | None:
        """
        Returns the cached entry for a hostname.

        Serves the in-memory entry when there is one; otherwise reads the
        cache file and remembers the result.

        Args:
            hostname: The fully-qualified hostname.

        Returns:
            The CacheEntry, or None if the hostname has no cache file.

        Raises:
            CacheParseError: If the file exists but does not hold a valid outcome.
            CacheError: If the file exists but cannot be read.
        """
        entry = self._entries.get(hostname)
        if entry is not None:
            return entry

        cache_file = self._cache_file(hostname)
        try:
            data = cache_file.read_bytes()
            mtime = cache_file.stat().st_mtime
        except FileNotFoundError:
            logger.debug("No cache file for %s.", hostname)
            return None
        except OSError as exc:
            raise CacheError(f"Could not read cache file {cache_file}: {exc}") from exc

        content = data.decode("utf-8", errors="replace").rstrip("\r\n")
        try:
            outcome = parse_outcome(content)
        except OutcomeParseError as exc:
            raise CacheParseError(hostname, content) from exc

        entry = CacheEntry(outcome, datetime.fromtimestamp(mtime, tz=timezone.utc))
        self._entries[hostname] = entry
        logger.debug("Loaded cache entry for %s: %s", hostname, content)
        return entry

    def put(self, hostname: str, outcome: Outcome, force: bool = False) -> None:
        """
        Records an outcome for a hostname, in memory and on disk.

        Skips both when the in-memory entry already holds an equal outcome,
        so an unchanged result never rewrites the file or moves its mtime.
        With `force`, the file is rewritten anyway and the entry gets a new
        timestamp.

        Args:
            hostname: The fully-qualified hostname.
            outcome: The outcome to record.
            force: Rewrite even if an equal outcome is already cached.

        Raises:
            CacheError: If the directory cannot be created or the file written.
        """
        cached = self._entries.get(hostname)
        if not force and cached is not None and cached.outcome == outcome:
            logger.debug("Cache entry for %s unchanged; not rewriting.", hostname)
            return

        cache_file = self._cache_file(hostname)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            self._write_file(cache_file, format_outcome(outcome))
        except OSError as exc:
            raise CacheError(f"Could not write cache file {cache_file}: {exc}") from exc

        # NOTE: Timestamp from the clock rather than a stat() of the new file.
        self._entries[hostname] = CacheEntry(outcome, self._clock())
        logger.debug("Cached %s for %s.", format_outcome(outcome), hostname)

    def clear(self, hostname: str) -> None:
        """
        Removes a hostname's entry from memory and deletes its cache file.

        Args:
            hostname: The fully-qualified hostname.

        Raises:
            CacheError: If there is no cache file or it cannot be deleted.
        """
        self._entries.pop(hostname, None)
        cache_file = self._cache_file(hostname)
        try:
            cache_file.unlink()
        except FileNotFoundError as exc:
            raise CacheError(f"No cache entry for {hostname} in {self._dir}") from exc
        except OSError as exc:
            raise CacheError(f"Could not remove cache file {cache_file}: {exc}") from exc
        logger.info("Cleared cache entry for %s.", hostname)

    def check_disk_changes(self) -> bool:
        """
        Drains the watch queue and drops the in-memory layer if needed.

        Any queued event other than a pure read/access event invalidates
        every in-memory entry, not only the affected hostname.

        Returns:
            True if the in-memory layer was invalidated.
        """
        invalidate = False
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                break
            if is_invalidating(event):
                invalidate = True

        if invalidate:
            if self._entries:
                logger.debug("Cache directory changed; dropping %d in-memory entries.", len(self._entries))
            self._entries.clear()
        return invalidate

    # ---------------------------------------------------------------------------
    # Watch lifecycle
    # ---------------------------------------------------------------------------

    def start_watching(self) -> None:
        """
        Starts the background observer on the cache directory (creating it if needed).

        Raises:
            CacheError: If the directory cannot be created.
        """
        if self._observer is not None:
            return
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheError(f"Could not create cache directory {self._dir}: {exc}") from exc
        self._observer = create_observer(str(self._dir), self._events)
        self._observer.start()

    def stop_watching(self) -> None:
        """Stops the background observer, if running."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
        logger.debug("File watcher stopped for: %s", self._dir)

    def __enter__(self) -> ResponseCache:
        self.start_watching()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop_watching()

    # ---------------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------------

    def _cache_file(self, hostname: str) -> Path:
        return self._dir / hostname

    def _write_file(self, cache_file: Path, content: str) -> None:
        # Write to a temp file and rename so readers never see a partial line.
        fd, temp_path = tempfile.mkstemp(dir=self._dir, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(temp_path, cache_file)
        except OSError:
            Path(temp_path).unlink(missing_ok=True)
            raise
