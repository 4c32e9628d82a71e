"""
XML Watcher - webhook notifications for new XML files
"""

__version__ = "1.0.0"
