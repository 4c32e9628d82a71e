# xmlwatcher/watchdog/debounce.py

"""
Settle delay for file system events
"""
import asyncio
import logging
from typing import Any, Dict

from .events import FileEvent

logger = logging.getLogger(__name__)


class SettleDebouncer:
    """
    Hold each event for a fixed settle delay before it is processed

    This is a per-event delay, not a coalescing window: every event
    sleeps independently and concurrent events settle in parallel.
    Repeated events for the same path are all passed through.
    """

    def __init__(self, settle_delay: float = 0.5):
        """
        Initialize debouncer

        Args:
            settle_delay: Seconds to wait so writers can finish flushing
        """
        if settle_delay < 0:
            raise ValueError(f"settle_delay must not be negative, got {settle_delay}")
        self.settle_delay = settle_delay

        self.stats = {
            'settling': 0,
            'settled': 0,
        }

    async def settle(self, event: FileEvent) -> FileEvent:
        """Wait out the settle delay, then hand the event back"""
        self.stats['settling'] += 1
        try:
            if self.settle_delay > 0:
                await asyncio.sleep(self.settle_delay)
        finally:
            self.stats['settling'] -= 1

        self.stats['settled'] += 1
        logger.debug(f"Event settled after {self.settle_delay}s: {event}")
        return event

    def get_stats(self) -> Dict[str, Any]:
        """Get debouncer statistics"""
        return {
            **self.stats,
            'settle_delay': self.settle_delay,
        }
