"""
Storage abstraction for the platform's S3-compatible buckets and in-memory testing.
"""

from __future__ import annotations

import mimetypes
import os
import time
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from marketplace.errors import StorageApiError


def public_object_url(base_url: str, bucket: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/storage/v1/object/public/{bucket}/{quote(path)}"


class StorageClient(Protocol):
    """Defines the operations the screens need from object storage."""

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        ...

    def get_public_url(self, bucket: str, path: str) -> str:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test"
    stored_objects: dict = field(default_factory=dict)

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        key = (bucket, path)
        if key in self.stored_objects:
            raise StorageApiError("The resource already exists", status=409)
        self.stored_objects[key] = (bytes(data), content_type)
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        return public_object_url(self.base_url, bucket, path)

    def get_bytes(self, bucket: str, path: str) -> bytes:
        stored = self.stored_objects.get((bucket, path))
        if stored is None:
            raise FileNotFoundError(f"{bucket}/{path}")
        return stored[0]


@dataclass
class S3StorageClient:
    """
    Client for the platform's S3 protocol endpoint (``<project>/storage/v1/s3``).
    Public URLs are built from the project URL, not from S3.
    """

    endpoint: str
    region: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str

    def __post_init__(self):
        # The storage gateway only understands path-style addressing.
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        try:
            self._client.put_object(
                Bucket=bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except ClientError as exc:
            error = exc.response.get("Error", {})
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            raise StorageApiError(
                error.get("Message") or str(exc), status=status
            ) from exc
        except BotoCoreError as exc:
            raise StorageApiError(str(exc)) from exc
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        return public_object_url(self.public_base_url, bucket, path)


@dataclass
class LocalFile:
    """A file picked on the device, ready to upload."""

    name: str
    data: bytes
    content_type: str = "application/octet-stream"

    @classmethod
    def from_path(cls, path: str) -> "LocalFile":
        with open(path, "rb") as f:
            data = f.read()
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        return cls(name=os.path.basename(path), data=data, content_type=content_type)


def timestamped_name(name: str) -> str:
    """``<epoch millis>_<basename>``, the naming used for picked images."""
    return f"{int(time.time() * 1000)}_{os.path.basename(name)}"
