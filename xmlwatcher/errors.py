# xmlwatcher/errors.py

"""
Exception types for the XML watcher
"""


class WatcherError(Exception):
    """Base class for all watcher errors"""


class ConfigError(WatcherError):
    """Invalid or missing configuration, fatal at startup"""


class WatchDirectoryError(ConfigError):
    """Watch root is missing or is not a directory"""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Watch directory '{path}' does not exist")


class EventSourceError(WatcherError):
    """Filesystem monitoring failed after startup"""
