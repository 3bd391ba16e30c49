"""
Errors raised by the backend clients.

Every failure coming back from the platform carries a human readable message;
screens show that message to the user and do not try to recover.
"""

from __future__ import annotations

from typing import Optional


class BackendError(Exception):
    """Base class for failures reported by the managed backend."""

    def __init__(self, message: str, *, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class AuthApiError(BackendError):
    """Sign-up, sign-in or session failures."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message, status=status)
        self.code = code


class StorageApiError(BackendError):
    pass


class DatabaseError(BackendError):
    pass


class NotFoundError(DatabaseError):
    """Raised when a single-row read finds nothing."""

    def __init__(self, table: str, key):
        super().__init__(f"No row in {table} matching {key!r}", status=406)
        self.table = table
        self.key = key
