# xmlwatcher/webhook/payload.py

"""
Notification payload sent to the webhook
"""
import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from ..utils.config import WatchConfig
from ..watchdog.events import FileEvent

logger = logging.getLogger(__name__)

EVENT_NAME = "new_xml_file"


def iso_timestamp() -> str:
    """Current local time, ISO-8601 with UTC offset"""
    return datetime.now().astimezone().isoformat(timespec="seconds")


class NotificationPayload(BaseModel):
    """JSON body of a webhook call"""
    event: str = EVENT_NAME
    filepath: str
    filename: str
    content: Optional[str] = None
    timestamp: str

    def to_json(self) -> str:
        """Serialize, leaving out `content` when it was not captured"""
        return self.model_dump_json(exclude_none=True)


class PayloadBuilder:
    """Build a NotificationPayload for a settled event"""

    def __init__(self, config: WatchConfig):
        self.config = config

    def read_content(self, path: Path) -> Optional[str]:
        """
        Read the file as text, or None if it is gone or unreadable

        Bytes that are not valid UTF-8 are replaced rather than failing
        the read.
        """
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(
                f"Failed to read file content for {path}: {e}; sending without content",
                extra={'path': str(path)},
            )
            return None

    def build(self, event: FileEvent) -> NotificationPayload:
        """Read the file now, not at detection time, and stamp the payload"""
        path = event.path
        content = self.read_content(path) if self.config.include_content else None

        return NotificationPayload(
            filepath=str(path),
            filename=path.name,
            content=content,
            timestamp=iso_timestamp(),
        )

    async def build_async(self, event: FileEvent) -> NotificationPayload:
        """Run `build` in the default executor so file reads do not block the loop"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.build, event)
