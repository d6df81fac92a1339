"""Append-only log of successful deliveries.

One JSON object per line. The service only ever appends; rotation and
retention belong to whoever operates the host.
"""

import asyncio
import json
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Union


@dataclass(frozen=True)
class DeliveryLogEntry:
    timestamp: datetime
    destination: str
    subject: str
    category: str
    relay_id: Optional[str] = None
    attempts: int = 1
    request_id: Optional[str] = None

    def to_json(self) -> str:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return json.dumps(data, ensure_ascii=False)


class DeliveryLog:
    """File sink for DeliveryLogEntry records."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def append(self, entry: DeliveryLogEntry) -> None:
        line = entry.to_json() + "\n"
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line)

    async def record(self, entry: DeliveryLogEntry) -> None:
        """Append without blocking the event loop."""
        await asyncio.to_thread(self.append, entry)
