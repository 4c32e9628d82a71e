# xmlwatcher/watchdog/handlers.py

"""
Event handlers bridging watchdog's observer thread into asyncio
"""
import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    FileCreatedEvent,
    FileMovedEvent,
)

from .events import FileEvent, EventType
from ..errors import EventSourceError

logger = logging.getLogger(__name__)


class FileEventHandler(FileSystemEventHandler):
    """
    Turn watchdog create/move events into FileEvents

    Watchdog calls the `on_*` methods from its observer thread. Each
    converted event is handed to `sink` on the asyncio loop through
    `call_soon_threadsafe`, so the sink itself never runs concurrently
    with the loop.

    New directories produce no FileEvent, but each one is passed to
    `directory_check`. An EventSourceError from the check means files
    under that directory can no longer be seen; it is handed to
    `on_error` on the loop.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, sink: Callable[[FileEvent], Any],
                 directory_check: Optional[Callable[[str], None]] = None,
                 on_error: Optional[Callable[[EventSourceError], Any]] = None):
        """
        Initialize event handler

        Args:
            loop: Event loop that owns `sink`
            sink: Callable receiving each FileEvent, e.g. queue.put_nowait
            directory_check: Called in the observer thread for every new directory
            on_error: Called on the loop when `directory_check` fails
        """
        super().__init__()
        self.loop = loop
        self.sink = sink
        self.directory_check = directory_check
        self.on_error = on_error

        self.stats = {
            'events_received': 0,
            'events_forwarded': 0,
            'events_ignored': 0,
            'directories_checked': 0,
            'watch_failures': 0,
            'last_event': None,
        }

    def on_created(self, event: FileSystemEvent):
        if not isinstance(event, FileCreatedEvent):
            self.stats['events_ignored'] += 1
            if event.is_directory:
                self._check_directory(event.src_path)
            return
        self._forward(self._convert(event.src_path, EventType.CREATED))

    def on_moved(self, event: FileSystemEvent):
        if not isinstance(event, FileMovedEvent):
            self.stats['events_ignored'] += 1
            if event.is_directory:
                self._check_directory(event.dest_path)
            return
        # Only the destination is new inside the tree
        self._forward(self._convert(event.dest_path, EventType.MOVED_IN))

    def _decode(self, raw_path) -> str:
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode(errors="surrogateescape")
        return raw_path

    def _convert(self, raw_path, kind: EventType) -> FileEvent:
        return FileEvent(path=Path(self._decode(raw_path)).absolute(), kind=kind)

    def _check_directory(self, raw_path):
        if self.directory_check is None:
            return

        directory = self._decode(raw_path)
        self.stats['directories_checked'] += 1
        try:
            self.directory_check(directory)
        except EventSourceError as e:
            self.stats['watch_failures'] += 1
            logger.error(f"New directory {directory} is not being watched: {e}")
            if self.on_error is None:
                return
            try:
                self.loop.call_soon_threadsafe(self.on_error, e)
            except RuntimeError:
                logger.debug(f"Event loop closed, dropping watch failure for {directory}")

    def _forward(self, event: FileEvent):
        self.stats['events_received'] += 1
        self.stats['last_event'] = datetime.now()

        try:
            self.loop.call_soon_threadsafe(self.sink, event)
        except RuntimeError:
            # Loop already closed during shutdown
            logger.debug(f"Event loop closed, dropping event: {event}")
            return

        self.stats['events_forwarded'] += 1
        logger.debug(f"Forwarded event {event}")

    def get_stats(self) -> Dict[str, Any]:
        """Get handler statistics"""
        return self.stats.copy()
