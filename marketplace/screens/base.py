"""
Shared plumbing for screen controllers.
"""

from __future__ import annotations

import logging
from typing import Optional

from marketplace.alerts import AlertSink, LoggingAlertSink
from marketplace.config import Settings, get_settings
from marketplace.dependencies import Backend
from marketplace.session import AuthStateObserver

logger = logging.getLogger(__name__)


class Screen:
    def __init__(
        self,
        backend: Backend,
        session: AuthStateObserver,
        alerts: Optional[AlertSink] = None,
        settings: Optional[Settings] = None,
    ):
        self.backend = backend
        self.session = session
        self.alerts = alerts or LoggingAlertSink()
        self.settings = settings or get_settings()
        self.loading = False

    @property
    def current_user_id(self) -> Optional[str]:
        return self.session.user_id

    def fail(
        self, title: str, message: str, exc: Optional[BaseException] = None
    ) -> None:
        """Log the failure and surface it as a blocking alert."""
        if exc is not None:
            logger.error("%s: %s (%s)", type(self).__name__, message, exc)
        else:
            logger.warning("%s: %s", type(self).__name__, message)
        self.alerts.show(title, message)
