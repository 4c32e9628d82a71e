# xmlwatcher/watchdog/patterns.py

"""
Path filtering for file system events
"""
import logging
from pathlib import PurePath
from typing import Iterable, Tuple, Union

from ..utils.config import normalize_extensions

logger = logging.getLogger(__name__)


class PathFilter:
    """
    Decide whether a path is a watched file, by extension only

    The check never touches the filesystem, so it is safe to call for
    paths that have already been deleted.
    """

    def __init__(self, extensions: Union[str, Iterable[str]] = (".xml",)):
        """
        Initialize path filter

        Args:
            extensions: Extensions to accept, with or without the leading dot
        """
        self.extensions: Tuple[str, ...] = normalize_extensions(extensions)
        logger.debug(f"PathFilter initialized with extensions {self.extensions}")

    def matches(self, path: Union[str, PurePath]) -> bool:
        """
        Check if the final path segment ends with a watched extension

        Args:
            path: Path to check

        Returns:
            True if the name matches case-insensitively
        """
        name = PurePath(path).name.lower()
        if not name:
            return False
        return name.endswith(self.extensions)

    __call__ = matches

    def __repr__(self):
        return f"PathFilter(extensions={self.extensions!r})"
