"""
Process-wide mirror of the auth session.

The observer subscribes to session changes, fetches the current session once,
and keeps ``user`` and ``is_loading`` up to date for every screen. Sign-in and
sign-out pass straight through to the auth client; there is no retry, token
refresh or offline queueing here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from marketplace.auth import AuthClient, AuthSubscription, AuthUser, Session
from marketplace.errors import AuthApiError, BackendError
from marketplace.types import AuthChangeEvent

logger = logging.getLogger(__name__)

Listener = Callable[["AuthStateObserver"], None]


@dataclass
class AuthResponse:
    """Result of a sign-in: either ``data`` or ``error`` is set."""

    data: Optional[Session] = None
    error: Optional[AuthApiError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AuthStateObserver:
    def __init__(self, auth: AuthClient):
        self.auth = auth
        self.user: Optional[AuthUser] = None
        self.is_loading = True
        self._subscription: Optional[AuthSubscription] = None
        self._listeners: list[Listener] = []

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a re-render callback; returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def start(self) -> "AuthStateObserver":
        self._subscription = self.auth.on_auth_state_change(self._handle_change)
        try:
            session = self.auth.get_session()
            if session:
                logger.info("Initial session user: %s", session.user.id)
                self.user = session.user
        except BackendError as exc:
            logger.error("Error fetching session: %s", exc.message)
        finally:
            self.is_loading = False
            self._notify()
        return self

    def stop(self) -> None:
        if self._subscription:
            self._subscription.unsubscribe()
            self._subscription = None

    def __enter__(self) -> "AuthStateObserver":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def _handle_change(
        self, event: AuthChangeEvent, session: Optional[Session]
    ) -> None:
        if session:
            logger.info("Session user (%s): %s", event, session.user.id)
            self.user = session.user
        else:
            logger.info("No user is logged in.")
            self.user = None
        self.is_loading = False
        self._notify()

    def sign_in(self, email: str, password: str) -> AuthResponse:
        self.is_loading = True
        try:
            session = self.auth.sign_in_with_password(email, password)
        except AuthApiError as exc:
            logger.error("Login error: %s", exc.message)
            return AuthResponse(error=exc)
        finally:
            self.is_loading = False
        logger.info("Login successful for user: %s", session.user.id)
        return AuthResponse(data=session)

    def sign_out(self) -> None:
        self.is_loading = True
        try:
            self.auth.sign_out()
        except BackendError as exc:
            logger.error("Logout error: %s", exc.message)
        finally:
            self.user = None
            self.is_loading = False
            self._notify()
