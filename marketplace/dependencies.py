"""
Dependency wiring for the backend clients.
"""

from __future__ import annotations

from dataclasses import dataclass

from marketplace.auth import AuthClient, GoTrueAuthClient, InMemoryAuthClient
from marketplace.config import get_settings
from marketplace.db import DbClient, InMemoryDbClient, PostgresDbClient
from marketplace.realtime import (
    InMemoryRealtimeClient,
    RealtimeClient,
    RedisRealtimeClient,
)
from marketplace.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_auth_client: AuthClient | None = None
_storage_client: StorageClient | None = None
_db_client: DbClient | None = None
_realtime_client: RealtimeClient | None = None


@dataclass
class Backend:
    """The platform as the screens see it."""

    auth: AuthClient
    storage: StorageClient
    db: DbClient
    realtime: RealtimeClient


def get_auth_client() -> AuthClient:
    """
    Return a singleton auth client so the session is shared by every screen.
    """
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if (
        settings.use_in_memory_backends
        or not settings.supabase_url
        or not settings.supabase_anon_key
    ):
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = GoTrueAuthClient(
            settings.supabase_url, settings.supabase_anon_key
        )
    return _auth_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_s3_endpoint:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            endpoint=settings.storage_s3_endpoint,
            region=settings.storage_region,
            access_key_id=settings.storage_access_key_id or "",
            secret_access_key=settings.storage_secret_access_key or "",
            public_base_url=settings.supabase_url or "",
        )
    return _storage_client


def get_realtime_client() -> RealtimeClient:
    global _realtime_client
    if _realtime_client:
        return _realtime_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.redis_url:
        _realtime_client = InMemoryRealtimeClient()
    else:
        _realtime_client = RedisRealtimeClient(
            url=settings.redis_url,
            channel_prefix=settings.realtime_channel_prefix,
        )
    return _realtime_client


def get_db_client() -> DbClient:
    """
    Return a singleton DB client wired to the realtime change feed.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    changes = get_realtime_client()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient(changes=changes)
    else:
        _db_client = PostgresDbClient(settings.database_url, changes=changes)
    return _db_client


def get_backend() -> Backend:
    return Backend(
        auth=get_auth_client(),
        storage=get_storage_client(),
        db=get_db_client(),
        realtime=get_realtime_client(),
    )


def reset_clients() -> None:
    """Drop the cached singletons (tests and settings reloads)."""
    global _auth_client, _storage_client, _db_client, _realtime_client
    _auth_client = None
    _storage_client = None
    _db_client = None
    _realtime_client = None
