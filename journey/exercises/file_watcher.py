#!/usr/bin/env python3
"""
File watcher for watch mode.

Editors save files in different ways (truncate+write, write to a swap file and
rename over the original, ...), so the watcher observes the whole parent
directory and filters the events down to the one file being worked on.
"""

import logging
import os
import queue
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .errors import WatcherError

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.1
QUEUE_SIZE = 1024

# Opened/closed events are access noise, not content changes
WATCHED_EVENT_TYPES = frozenset({
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MOVED,
})


@dataclass
class ChangeEvent:
    """A normalized "target file changed" notification"""
    path: str
    kind: str
    timestamp: float


def canonical_path(path) -> str:
    """Absolute path with symlinks resolved, for comparing event paths"""
    return os.path.realpath(os.fsdecode(path))


def debounce_accepts(event_time: float, last_verify_time: Optional[float],
                     window: float = DEBOUNCE_SECONDS) -> bool:
    """Check whether enough quiet time has passed since the last verification"""
    if last_verify_time is None:
        return True
    return event_time - last_verify_time >= window


class TargetFileHandler(FileSystemEventHandler):
    """Forwards events that touch the target file onto a queue"""

    def __init__(
        self,
        target: str,
        events: queue.Queue,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__()
        self.target = canonical_path(target)
        self.events = events
        self.clock = clock
        self.error: Optional[WatcherError] = None

    def on_any_event(self, event: FileSystemEvent):
        """Called by the observer thread for every event in the directory"""
        if event.is_directory or event.event_type not in WATCHED_EVENT_TYPES:
            return

        paths = [event.src_path]
        dest_path = getattr(event, 'dest_path', '')
        if dest_path:
            paths.append(dest_path)

        if not any(canonical_path(p) == self.target for p in paths):
            return

        change = ChangeEvent(path=self.target, kind=event.event_type, timestamp=self.clock())
        try:
            self.events.put_nowait(change)
        except queue.Full:
            # Surfaced to the controller on its next poll
            self.error = WatcherError(
                f"File watcher queue overflowed while watching {self.target}"
            )


class FileWatcher:
    """Manages the observer for one exercise file"""

    def __init__(
        self,
        filepath: Path,
        queue_size: int = QUEUE_SIZE,
        observer_factory: Callable = Observer,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.filepath = Path(canonical_path(filepath))
        self.watch_dir = self.filepath.parent
        self.events: queue.Queue = queue.Queue(maxsize=queue_size)
        self.handler = TargetFileHandler(str(self.filepath), self.events, clock=clock)
        self.observer_factory = observer_factory
        self.observer = None

    def start(self):
        """Start watching the file's directory"""
        if not self.watch_dir.is_dir():
            raise WatcherError(f"Failed to watch directory {self.watch_dir}: not a directory")

        self.observer = self.observer_factory()
        try:
            self.observer.schedule(self.handler, path=str(self.watch_dir), recursive=True)
            self.observer.start()
        except OSError as e:
            self.observer = None
            raise WatcherError(f"Failed to watch directory {self.watch_dir}: {e}")

        logger.debug("Watching %s for changes to %s", self.watch_dir, self.filepath.name)

    def poll(self) -> Optional[ChangeEvent]:
        """
        Take the next change event without blocking.

        Raises:
            WatcherError: If events were lost or the observer thread died
        """
        if self.handler.error is not None:
            raise self.handler.error

        try:
            return self.events.get_nowait()
        except queue.Empty:
            pass

        if self.observer is None or not self.observer.is_alive():
            raise WatcherError(f"File watcher for {self.filepath} disconnected unexpectedly")
        return None

    def stop(self):
        """Stop watching"""
        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
