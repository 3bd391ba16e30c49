"""
Authentication clients.

GoTrueAuthClient speaks the platform's auth REST API; InMemoryAuthClient keeps
accounts in a dict for development and tests. Both hold the current session
client-side and notify listeners whenever it changes.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

import requests

from marketplace.errors import AuthApiError
from marketplace.types import AuthChangeEvent

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
SESSION_LIFETIME_SECONDS = 3600


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None
    user_metadata: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: dict) -> "AuthUser":
        return cls(
            id=payload["id"],
            email=payload.get("email"),
            user_metadata=payload.get("user_metadata") or {},
        )


@dataclass
class Session:
    access_token: str
    refresh_token: str
    user: AuthUser
    expires_at: Optional[float] = None

    @classmethod
    def from_dict(cls, payload: dict) -> "Session":
        expires_at = payload.get("expires_at")
        if expires_at is None and payload.get("expires_in") is not None:
            expires_at = time.time() + float(payload["expires_in"])
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token", ""),
            user=AuthUser.from_dict(payload["user"]),
            expires_at=expires_at,
        )


AuthStateCallback = Callable[[AuthChangeEvent, Optional[Session]], Any]


@dataclass
class AuthSubscription:
    listeners: list
    callback: AuthStateCallback

    def unsubscribe(self) -> None:
        if self.callback in self.listeners:
            self.listeners.remove(self.callback)


class AuthClient(Protocol):
    """Operations the screens need from the auth service."""

    def sign_up(self, email: str, password: str) -> AuthUser:
        ...

    def sign_in_with_password(self, email: str, password: str) -> Session:
        ...

    def sign_out(self) -> None:
        ...

    def get_session(self) -> Optional[Session]:
        ...

    def get_user(self) -> Optional[AuthUser]:
        ...

    def on_auth_state_change(self, callback: AuthStateCallback) -> AuthSubscription:
        ...


class _SessionHolder:
    """Client-side session mirror plus change listeners."""

    def __init__(self):
        self._session: Optional[Session] = None
        self._listeners: list[AuthStateCallback] = []

    def get_session(self) -> Optional[Session]:
        return self._session

    def on_auth_state_change(self, callback: AuthStateCallback) -> AuthSubscription:
        self._listeners.append(callback)
        return AuthSubscription(listeners=self._listeners, callback=callback)

    def _set_session(self, event: AuthChangeEvent, session: Optional[Session]) -> None:
        self._session = session
        for callback in list(self._listeners):
            callback(event, session)


class InMemoryAuthClient(_SessionHolder):
    """Simple in-memory auth service for development and tests."""

    def __init__(self):
        super().__init__()
        self.accounts: Dict[str, tuple[str, AuthUser]] = {}

    def sign_up(self, email: str, password: str) -> AuthUser:
        email = email.strip().lower()
        if email in self.accounts:
            raise AuthApiError(
                "User already registered", status=422, code="user_already_exists"
            )
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthApiError(
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters.",
                status=422,
                code="weak_password",
            )
        user = AuthUser(id=str(uuid.uuid4()), email=email)
        self.accounts[email] = (password, user)
        return user

    def sign_in_with_password(self, email: str, password: str) -> Session:
        account = self.accounts.get(email.strip().lower())
        if account is None or account[0] != password:
            raise AuthApiError(
                "Invalid login credentials", status=400, code="invalid_credentials"
            )
        session = Session(
            access_token=uuid.uuid4().hex,
            refresh_token=uuid.uuid4().hex,
            user=account[1],
            expires_at=time.time() + SESSION_LIFETIME_SECONDS,
        )
        self._set_session(AuthChangeEvent.SIGNED_IN, session)
        return session

    def sign_out(self) -> None:
        self._set_session(AuthChangeEvent.SIGNED_OUT, None)

    def get_user(self) -> Optional[AuthUser]:
        return self._session.user if self._session else None

    def reset(self) -> None:
        """Forget accounts, session and listeners (useful in tests)."""
        self.accounts.clear()
        self._session = None
        self._listeners.clear()


class GoTrueAuthClient(_SessionHolder):
    """
    REST client for the platform's GoTrue auth endpoints.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        *,
        http: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        if not url or not anon_key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY are required")
        super().__init__()
        self.base_url = f"{url.rstrip('/')}/auth/v1"
        self.anon_key = anon_key
        self.http = http or requests.Session()
        self.timeout = timeout

    def _headers(self, access_token: Optional[str] = None) -> dict:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token or self.anon_key}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        access_token: Optional[str] = None,
    ) -> dict:
        try:
            response = self.http.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                params=params,
                headers=self._headers(access_token),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AuthApiError(str(exc), code="network_error") from exc
        if response.status_code >= 400:
            raise self._error_from(response)
        if not response.content:
            return {}
        return response.json()

    @staticmethod
    def _error_from(response: requests.Response) -> AuthApiError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = (
            body.get("msg")
            or body.get("message")
            or body.get("error_description")
            or response.reason
            or "Auth request failed"
        )
        code = body.get("error_code") or body.get("code") or body.get("error")
        return AuthApiError(str(message), status=response.status_code, code=code)

    def sign_up(self, email: str, password: str) -> AuthUser:
        payload = self._request(
            "POST", "/signup", json={"email": email, "password": password}
        )
        # With email confirmation on, the user comes back alone; otherwise a
        # session is returned with the user nested inside it.
        if "access_token" in payload:
            session = Session.from_dict(payload)
            self._set_session(AuthChangeEvent.SIGNED_IN, session)
            return session.user
        return AuthUser.from_dict(payload.get("user") or payload)

    def sign_in_with_password(self, email: str, password: str) -> Session:
        payload = self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = Session.from_dict(payload)
        logger.info("Signed in user %s", session.user.id)
        self._set_session(AuthChangeEvent.SIGNED_IN, session)
        return session

    def sign_out(self) -> None:
        session = self._session
        try:
            if session:
                self._request("POST", "/logout", access_token=session.access_token)
        finally:
            self._set_session(AuthChangeEvent.SIGNED_OUT, None)

    def get_user(self) -> Optional[AuthUser]:
        if not self._session:
            return None
        payload = self._request(
            "GET", "/user", access_token=self._session.access_token
        )
        return AuthUser.from_dict(payload)
