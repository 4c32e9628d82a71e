# xmlwatcher/watchdog/watcher.py

"""
Recursive directory watcher exposed as an async event stream
"""
import asyncio
import errno
import logging
import os
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional
from datetime import datetime

from watchdog.observers import Observer

from .events import FileEvent
from .handlers import FileEventHandler
from ..errors import EventSourceError, WatchDirectoryError

logger = logging.getLogger(__name__)

_STOP = object()

# Running out of these means a new directory can never be watched
_WATCH_EXHAUSTED = (errno.ENOSPC, errno.EMFILE)


class DirectoryWatcher:
    """
    Recursive directory watcher backed by the OS event observer

    Watchdog's recursive mode adds subdirectories created after start to
    the watched set. No polling fallback: `events()` raises EventSourceError
    if the native observer dies, or if a new subdirectory cannot get a
    watch because the OS ran out of inotify watches or instances.
    """

    def __init__(self, directory: Path, health_interval: float = 1.0):
        """
        Initialize directory watcher

        Args:
            directory: Root directory to watch recursively
            health_interval: Seconds between observer liveness checks while idle
        """
        self.directory = Path(directory)
        self.health_interval = health_interval

        self.observer = None
        self.handler: Optional[FileEventHandler] = None
        self.queue: Optional[asyncio.Queue] = None

        self.is_watching = False
        self.failure: Optional[EventSourceError] = None
        self._iterated = False
        self.stats = {
            'start_time': None,
            'events_yielded': 0,
        }

    async def start(self):
        """
        Start watching the directory

        Raises:
            WatchDirectoryError: if the root does not exist
            EventSourceError: if the observer cannot be started
        """
        if self.is_watching:
            logger.warning(f"Already watching directory: {self.directory}")
            return

        if not self.directory.is_dir():
            raise WatchDirectoryError(self.directory)

        loop = asyncio.get_running_loop()
        self.queue = asyncio.Queue()
        self.handler = FileEventHandler(loop, self.queue.put_nowait,
                                        directory_check=self.ensure_watched,
                                        on_error=self._fail)

        try:
            self.observer = Observer()
            self.observer.schedule(self.handler, str(self.directory), recursive=True)
            self.observer.start()
        except OSError as e:
            self.observer = None
            raise EventSourceError(f"Failed to watch directory {self.directory}: {e}") from e

        self.is_watching = True
        self.stats['start_time'] = datetime.now()
        logger.info(f"Started watching directory: {self.directory} (recursive)")

    async def stop(self):
        """Stop watching and end the event stream"""
        if not self.is_watching:
            return

        self.is_watching = False
        if self.observer:
            observer = self.observer
            self.observer = None
            observer.stop()
            await asyncio.get_running_loop().run_in_executor(None, observer.join, 10)

        if self.queue is not None:
            dropped = 0
            while not self.queue.empty():
                if isinstance(self.queue.get_nowait(), FileEvent):
                    dropped += 1
            if dropped:
                logger.warning(f"Dropped {dropped} queued events not yet processed at shutdown")
            self.queue.put_nowait(_STOP)

        logger.info(f"Stopped watching directory: {self.directory}")

    def check_health(self):
        """
        Raise if the observer or one of its emitter threads has died

        Raises:
            EventSourceError: when monitoring can no longer deliver events
        """
        if self.failure is not None:
            raise self.failure

        if not self.is_watching or self.observer is None:
            return

        if not self.observer.is_alive():
            raise EventSourceError(f"Observer for {self.directory} stopped unexpectedly")

        for emitter in list(self.observer.emitters):
            if not emitter.is_alive():
                raise EventSourceError(
                    f"Event emitter for {emitter.watch.path} died; "
                    f"OS watch resources may be exhausted"
                )

    def ensure_watched(self, directory: str):
        """
        Make sure a directory created after start has its own native watch

        Watchdog's inotify backend skips a new subdirectory when adding its
        watch fails, so the watch table is checked here and the watch added
        again when it is missing. Runs in the observer thread.

        Raises:
            EventSourceError: if the OS has no inotify watches or instances left
        """
        inotify = self._inotify_table()
        if inotify is None:
            return

        raw_path = os.fsencode(directory)
        if raw_path in inotify._wd_for_path:
            return

        try:
            inotify.add_watch(raw_path)
        except OSError as e:
            if e.errno in _WATCH_EXHAUSTED:
                raise EventSourceError(
                    f"Cannot watch new directory {directory}: {e.strerror}"
                ) from e
            # Removed again before the watch could be added
            logger.debug(f"Skipping watch for {directory}: {e}")
            return

        logger.debug(f"Added missing watch for new directory {directory}")

    def _inotify_table(self):
        """The inotify instance behind the emitter, None on other platforms"""
        observer = self.observer
        if observer is None:
            return None
        for emitter in list(observer.emitters):
            buffer = getattr(emitter, "_inotify", None)
            inotify = getattr(buffer, "_inotify", None)
            if inotify is not None and hasattr(inotify, "_wd_for_path"):
                return inotify
        return None

    def _fail(self, error: EventSourceError):
        if self.failure is None:
            self.failure = error
        if self.queue is not None:
            self.queue.put_nowait(error)

    async def events(self) -> AsyncIterator[FileEvent]:
        """
        Yield file events until `stop()` is called

        The stream is lazy and can only be iterated once.
        """
        if self.queue is None:
            raise RuntimeError("DirectoryWatcher.start() must be awaited before events()")
        if self._iterated:
            raise RuntimeError("Event stream cannot be restarted")
        self._iterated = True

        while True:
            try:
                item = await asyncio.wait_for(self.queue.get(), timeout=self.health_interval)
            except asyncio.TimeoutError:
                self.check_health()
                continue

            if item is _STOP:
                return
            if isinstance(item, EventSourceError):
                raise item

            self.stats['events_yielded'] += 1
            yield item

    def get_status(self) -> Dict[str, Any]:
        """Get watcher status"""
        handler_stats = self.handler.get_stats() if self.handler else {}
        return {
            'directory': str(self.directory),
            'is_watching': self.is_watching,
            'start_time': self.stats['start_time'],
            'stats': {**self.stats, **handler_stats},
        }
