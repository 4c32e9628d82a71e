# xmlwatcher/watchdog/__init__.py

"""
XML watcher filesystem monitoring

FileMonitor lives in `xmlwatcher.watchdog.monitor`; it is not re-exported
here because it depends on the webhook package, which imports from this one.
"""
from .events import FileEvent, EventType
from .patterns import PathFilter
from .suppression import SuppressionRegistry, SuppressionEntry
from .debounce import SettleDebouncer
from .handlers import FileEventHandler
from .watcher import DirectoryWatcher

__all__ = [
    'FileEvent',
    'EventType',
    'PathFilter',
    'SuppressionRegistry',
    'SuppressionEntry',
    'SettleDebouncer',
    'FileEventHandler',
    'DirectoryWatcher',
]
