"""User-visible notices collected from the log stream."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime


@dataclass
class Notice:
    """A single notice shown in the status area."""

    timestamp: datetime
    level: str
    message: str


class NoticeBuffer(logging.Handler):
    """Logging handler that keeps recent WARNING+ records for the TUI.

    Membership rejections, fetch failures and disconnects surface here
    without writing to stderr underneath the full-screen UI.
    """

    def __init__(self, maxlen: int = 20, level: int = logging.WARNING) -> None:
        super().__init__(level)
        self._notices: deque[Notice] = deque(maxlen=maxlen)

    def emit(self, record: logging.LogRecord) -> None:
        self._notices.append(
            Notice(
                timestamp=datetime.fromtimestamp(record.created),
                level=record.levelname,
                message=record.getMessage(),
            )
        )

    def latest(self, count: int = 3) -> list[Notice]:
        """Most recent notices, oldest first."""
        if count <= 0:
            return []
        return list(self._notices)[-count:]

    def clear(self) -> None:
        self._notices.clear()
