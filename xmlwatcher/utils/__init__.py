# xmlwatcher/utils/__init__.py

"""
XML watcher utilities: configuration and logging
"""
from .config import WatchConfig, RetryPolicy, load_config, parse_bool, mask_url
from .logger import setup_logging, JsonFormatter, ColorFormatter

__all__ = [
    'WatchConfig', 'RetryPolicy', 'load_config', 'parse_bool', 'mask_url',
    'setup_logging', 'JsonFormatter', 'ColorFormatter',
]
