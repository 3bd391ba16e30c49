"""
User-facing alerts.

Every failure, whether validation, network or authorization, ends up as a
blocking alert with a title and a message. The sink decides how that is shown.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Optional, Protocol, TextIO

logger = logging.getLogger(__name__)


class AlertSink(Protocol):
    def show(self, title: str, message: str = "") -> None:
        ...


@dataclass
class Alert:
    title: str
    message: str = ""


@dataclass
class RecordingAlertSink:
    """Keeps alerts in memory (tests)."""

    alerts: list[Alert] = field(default_factory=list)

    def show(self, title: str, message: str = "") -> None:
        self.alerts.append(Alert(title=title, message=message))

    @property
    def last(self) -> Optional[Alert]:
        return self.alerts[-1] if self.alerts else None


class LoggingAlertSink:
    def show(self, title: str, message: str = "") -> None:
        logger.warning("%s: %s", title, message)


@dataclass
class ConsoleAlertSink:
    stream: TextIO = sys.stderr

    def show(self, title: str, message: str = "") -> None:
        text = f"[{title}] {message}" if message else f"[{title}]"
        print(text, file=self.stream)
