from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path


class EventType(Enum):
    CREATED = "created"
    MOVED_IN = "moved_in"


@dataclass(frozen=True)
class FileEvent:
    path: Path
    kind: EventType = EventType.CREATED
    timestamp: datetime = field(default_factory=lambda: datetime.now().astimezone())

    def __str__(self):
        return f"{self.kind.value}: {self.path}"
