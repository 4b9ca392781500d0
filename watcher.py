"""
watcher.py

Responsibility: Sets up a watchdog file system observer that monitors the
response cache directory for out-of-band changes (a `clear-cache` run, a
second instance) and hands every event to a thread-safe queue.
Does NOT: touch the in-memory cache, read cache files, or decide on updates.
"""

from __future__ import annotations

import logging
import queue

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

# Event types that only mean "somebody looked at a file". Every other type
# (created, modified, deleted, moved, closed after write) may change what
# the cache would read from disk.
READ_ONLY_EVENT_TYPES = frozenset({"opened", "closed_no_write"})

# ---------------------------------------------------------------------------
# Event handler
# ---------------------------------------------------------------------------


class _CacheDirectoryHandler(FileSystemEventHandler):
    """
    Watchdog event handler for the response cache directory.

    Runs on the observer's thread and only enqueues events. The consumer
    (ResponseCache.check_disk_changes) drains the queue on the main loop, so
    the in-memory cache keeps a single mutator.
    """

    def __init__(self, events: queue.Queue[FileSystemEvent]) -> None:
        """
        Args:
            events: The queue shared with the consumer.
        """
        super().__init__()
        self._events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        """
        Called by watchdog for every event in the watched directory.

        Args:
            event: The file system event describing what changed.

        Returns:
            None
        """
        logger.debug("Cache directory event: %s %s", event.event_type, event.src_path)
        self._events.put(event)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def is_invalidating(event: FileSystemEvent) -> bool:
    """
    Returns True if the event may have changed a cache file's content.

    Args:
        event: An event taken from the watch queue.

    Returns:
        False for pure read/access events, True otherwise.
    """
    return event.event_type not in READ_ONLY_EVENT_TYPES


def create_observer(watch_path: str, events: queue.Queue[FileSystemEvent]) -> Observer:
    """
    Creates and returns a configured (but not yet started) watchdog Observer.

    Args:
        watch_path: The cache directory to monitor. It must already exist.
        events: Queue that receives every event seen in the directory.

    Returns:
        A configured watchdog Observer ready to be started.
    """
    observer = Observer()
    handler = _CacheDirectoryHandler(events)
    observer.schedule(handler, path=watch_path, recursive=False)
    observer.daemon = True
    logger.info("File watcher configured for: %s", watch_path)
    return observer
