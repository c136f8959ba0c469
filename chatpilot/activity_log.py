"""Operator-visible rolling log."""

from collections import deque
from datetime import datetime
from typing import Deque, List

from chatpilot.models import LogEntry


class ActivityLog:
    """Keeps only the most recent entries; everything is echoed to stdout too."""

    def __init__(self, limit: int = 10):
        self._entries: Deque[LogEntry] = deque(maxlen=max(1, limit))
        self._seq = 0

    def add(self, message: str) -> LogEntry:
        entry = LogEntry(time=datetime.now().strftime("%H:%M:%S"), message=message)
        print(f"[{entry.time}] {message}")
        self._entries.append(entry)
        self._seq += 1
        return entry

    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    @property
    def seq(self) -> int:
        """Total number of entries ever added (used by the SSE stream)."""
        return self._seq

    def since(self, seq: int) -> List[LogEntry]:
        """Entries added after the given sequence number that are still retained."""
        missed = self._seq - seq
        if missed <= 0:
            return []
        return list(self._entries)[-missed:]

    def clear(self):
        self._entries.clear()
