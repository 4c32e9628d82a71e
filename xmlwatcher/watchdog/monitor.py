# xmlwatcher/watchdog/monitor.py

"""
Main file monitor: from filesystem events to webhook notifications
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, AsyncIterable, Dict, Optional, Set

from .debounce import SettleDebouncer
from .events import FileEvent
from .patterns import PathFilter
from .suppression import SuppressionRegistry
from .watcher import DirectoryWatcher
from ..utils.config import WatchConfig
from ..webhook.client import WebhookDispatcher
from ..webhook.overwrite import OverwriteApplier
from ..webhook.payload import PayloadBuilder

logger = logging.getLogger(__name__)


class FileMonitor:
    """
    Pipeline orchestrator

    Every incoming event goes through the path filter and the suppression
    check on the loop, then gets its own task: settle delay, payload build,
    dispatch. At most `max_concurrency` tasks build and dispatch at once;
    a failure in one task never reaches the others or the intake loop.
    """

    def __init__(self, config: WatchConfig,
                 dispatcher: WebhookDispatcher,
                 registry: SuppressionRegistry,
                 watcher: Optional[DirectoryWatcher] = None,
                 path_filter: Optional[PathFilter] = None,
                 debouncer: Optional[SettleDebouncer] = None,
                 builder: Optional[PayloadBuilder] = None):
        self.config = config
        self.dispatcher = dispatcher
        self.registry = registry
        self.watcher = watcher or DirectoryWatcher(config.watch_dir)
        self.path_filter = path_filter or PathFilter(config.extensions)
        self.debouncer = debouncer or SettleDebouncer(config.settle_delay)
        self.builder = builder or PayloadBuilder(config)

        self._semaphore = asyncio.Semaphore(config.max_concurrency)
        self._tasks: Set[asyncio.Task] = set()
        self.is_running = False
        self._stopped = False

        self.stats = {
            'events_received': 0,
            'events_ignored': 0,
            'events_suppressed': 0,
            'events_dispatched': 0,
            'errors': 0,
            'last_event': None,
        }

    @classmethod
    def from_config(cls, config: WatchConfig,
                    dispatcher: Optional[WebhookDispatcher] = None) -> "FileMonitor":
        """Wire up the default pipeline for `config`"""
        registry = SuppressionRegistry(ttl=config.suppression_ttl)
        if dispatcher is None:
            overwriter = OverwriteApplier(registry) if config.overwrite_enabled else None
            dispatcher = WebhookDispatcher(config, overwriter=overwriter)
        return cls(config, dispatcher, registry)

    def submit(self, event: FileEvent) -> Optional[asyncio.Task]:
        """
        Filter one raw event and start its processing task

        Returns:
            The spawned task, or None if the event was dropped
        """
        self.stats['events_received'] += 1
        self.stats['last_event'] = datetime.now()

        if not self.path_filter.matches(event.path):
            self.stats['events_ignored'] += 1
            logger.debug(f"Ignoring non-matching file: {event.path}")
            return None

        if self.registry.consume_if_present(event.path):
            self.stats['events_suppressed'] += 1
            logger.info(f"Ignoring file event for recently overwritten file: {event.path}")
            return None

        logger.info(f"New file detected: {event.path} ({event.kind.value})",
                    extra={'path': str(event.path)})

        task = asyncio.create_task(self.process_event(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def process_event(self, event: FileEvent):
        """Settle, build the payload and dispatch; errors are logged, not raised"""
        try:
            await self.debouncer.settle(event)
            async with self._semaphore:
                payload = await self.builder.build_async(event)
                await self.dispatcher.dispatch(event.path, payload)
            self.stats['events_dispatched'] += 1

        except asyncio.CancelledError:
            logger.warning(f"Processing cancelled for {event.path}")
            raise
        except Exception as e:
            self.stats['errors'] += 1
            logger.exception(f"Error processing event {event}: {e}")

    async def consume(self, events: AsyncIterable[FileEvent]):
        """Feed every event of `events` into the pipeline"""
        async for event in events:
            self.submit(event)
            # Opportunistic housekeeping so stale entries do not pile up
            self.registry.purge_expired()

    async def run(self):
        """
        Watch until stopped or the event source fails

        Raises:
            WatchDirectoryError: if the watch root is missing
            EventSourceError: if monitoring fails at runtime
        """
        await self.watcher.start()
        self.is_running = True
        logger.info("FileMonitor started successfully")

        try:
            await self.consume(self.watcher.events())
        finally:
            # No-op when stop() already ended the stream
            await self.stop()

    async def stop(self, timeout: Optional[float] = None):
        """
        Stop watching and let in-flight events finish

        Tasks still running after `timeout` (default: settle delay plus the
        HTTP timeout) are cancelled. Only the first call does anything.
        """
        if self._stopped:
            return
        self._stopped = True

        if self.is_running:
            self.is_running = False
            await self.watcher.stop()

        await self.drain(timeout)
        logger.info("FileMonitor stopped")

    async def drain(self, timeout: Optional[float] = None):
        """Wait for in-flight tasks, cancelling what is left after `timeout`"""
        if not self._tasks:
            return

        if timeout is None:
            timeout = self.config.settle_delay + self.config.http_timeout

        pending_tasks = list(self._tasks)
        logger.info(f"Waiting for {len(pending_tasks)} in-flight events")
        done, pending = await asyncio.wait(pending_tasks, timeout=timeout)

        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} events still in flight")
            await asyncio.gather(*pending, return_exceptions=True)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def get_status(self) -> Dict[str, Any]:
        """Get monitor status"""
        return {
            'is_running': self.is_running,
            'watch_dir': str(self.config.watch_dir),
            'extensions': list(self.path_filter.extensions),
            'in_flight': self.in_flight,
            'suppressed_paths': len(self.registry),
            'stats': self.stats.copy(),
            'debouncer': self.debouncer.get_stats(),
            'dispatcher': self.dispatcher.stats.copy(),
            'watcher': self.watcher.get_status(),
        }
