"""Backblaze B2 storage backend.

B2 is reached through its S3-compatible API, so every provider call goes
through a boto3 S3 client. Connection strings look like
``b2://<bucket>.s3.<region>.backblazeb2.com``.
"""
from __future__ import annotations

import io
import logging
import shutil
import tempfile
import threading
from datetime import datetime
from typing import BinaryIO, Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import (
    AuthenticationError,
    ConfigurationError,
    NotFoundError,
    ProvisioningError,
    error_code,
    translate_error,
)
from .models import ObjectPage, StorageObject
from .settings import AppSettings
from .storage import MAX_LIST_KEYS, ObjectStorage, parse_endpoint, register

LOGGER = logging.getLogger(__name__)

SCHEME = "b2"
PRIVATE_ACL = "private"


class ClientPool:
    """Shares one S3 client per service URL and credential pair.

    boto3 clients are thread-safe, so adapters created from the same
    credentials reuse a single client.
    """

    def __init__(
        self,
        client_factory: Callable[..., object] | None = None,
        settings: AppSettings | None = None,
    ):
        self._client_factory = client_factory or boto3.client
        self._settings = settings or AppSettings()
        self._clients: dict[tuple[str, str, str], object] = {}
        self._lock = threading.Lock()

    def get(self, endpoint_url: str, access_key: str, secret_key: str):
        cache_key = (endpoint_url, access_key, secret_key)
        with self._lock:
            client = self._clients.get(cache_key)
            if client is None:
                client = self._create_client(endpoint_url, access_key, secret_key)
                self._clients[cache_key] = client
            return client

    def __len__(self) -> int:
        return len(self._clients)

    def _create_client(self, endpoint_url: str, access_key: str, secret_key: str):
        LOGGER.debug("Creating S3 client for %s", endpoint_url)
        return self._client_factory(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=self._settings.client_config(),
        )


def _to_object(key: str, size, modified_at: Optional[datetime]) -> StorageObject:
    return StorageObject(key=key, size=int(size or 0), modified_at=modified_at)


def _object_from_entry(entry: dict) -> StorageObject | None:
    if entry.get("Size") is None:
        return None
    try:
        return _to_object(entry["Key"], entry["Size"], entry.get("LastModified"))
    except (KeyError, TypeError, ValueError):
        return None


def _byte_range(off: int, limit: int) -> str | None:
    if limit < 0:
        return f"bytes={off}-" if off else None
    return f"bytes={off}-{off + limit - 1}"


class B2Storage(ObjectStorage):
    """Object storage on a single B2 bucket."""

    def __init__(self, client, bucket: str, *, spool_max_size: int = AppSettings.spool_max_size):
        self._client = client
        self._bucket = bucket
        self._spool_max_size = spool_max_size

    def __str__(self) -> str:
        return f"{SCHEME}://{self._bucket}/"

    def __repr__(self) -> str:
        return f"B2Storage(bucket={self._bucket!r})"

    @property
    def bucket(self) -> str:
        return self._bucket

    def create(self) -> None:
        try:
            self._client.head_bucket(Bucket=self._bucket)
            return
        except (ClientError, BotoCoreError) as exc:
            error = translate_error(exc, "head_bucket", self._bucket)
            if isinstance(error, AuthenticationError):
                raise error from exc
            if not isinstance(error, NotFoundError):
                raise ProvisioningError(
                    f"Failed to look up bucket '{self._bucket}': {exc}",
                    operation="head_bucket",
                    key=self._bucket,
                ) from exc

        LOGGER.info("Creating private bucket '%s'", self._bucket)
        try:
            self._client.create_bucket(Bucket=self._bucket, ACL=PRIVATE_ACL)
        except (ClientError, BotoCoreError) as exc:
            if isinstance(exc, ClientError) and error_code(exc) == "BucketAlreadyOwnedByYou":
                return
            error = translate_error(exc, "create_bucket", self._bucket)
            if isinstance(error, AuthenticationError):
                raise error from exc
            raise ProvisioningError(
                f"Failed to create bucket '{self._bucket}': {exc}",
                operation="create_bucket",
                key=self._bucket,
            ) from exc

    def head(self, key: str) -> StorageObject:
        response = self._call("head", key, self._client.head_object, Key=key)
        return _to_object(key, response.get("ContentLength"), response.get("LastModified"))

    def get(self, key: str, off: int = 0, limit: int = -1) -> BinaryIO:
        if off < 0:
            raise ValueError("offset cannot be negative")
        attrs = self.head(key)
        if limit == 0 or off >= attrs.size:
            return io.BytesIO(b"")
        params = {"Key": key}
        byte_range = _byte_range(off, limit)
        if byte_range:
            params["Range"] = byte_range
        response = self._call("get", key, self._client.get_object, **params)
        return response["Body"]

    def put(self, key: str, data: BinaryIO | bytes) -> None:
        if isinstance(data, (bytes, bytearray, memoryview)):
            data = io.BytesIO(bytes(data))
        # Nothing reaches the bucket unless the whole source was read.
        with tempfile.SpooledTemporaryFile(max_size=self._spool_max_size) as spool:
            shutil.copyfileobj(data, spool)
            size = spool.tell()
            spool.seek(0)
            self._call(
                "put",
                key,
                self._client.put_object,
                Key=key,
                Body=spool,
                ContentLength=size,
            )

    def delete(self, key: str) -> None:
        self._call("delete", key, self._client.delete_object, Key=key)

    def list(self, prefix: str = "", marker: str = "", limit: int = MAX_LIST_KEYS) -> ObjectPage:
        if limit < 1:
            raise ValueError("limit must be greater than zero")
        params = {"MaxKeys": min(limit, MAX_LIST_KEYS)}
        if prefix:
            params["Prefix"] = prefix
        token = marker or None

        while True:
            if token:
                params["ContinuationToken"] = token
            response = self._call("list", prefix, self._client.list_objects_v2, **params)
            entries = response.get("Contents", [])
            token = response.get("NextContinuationToken") if response.get("IsTruncated") else None
            # Empty truncated pages carry no information; keep going.
            if entries or not token:
                break

        items: list[StorageObject] = []
        for entry in entries:
            obj = _object_from_entry(entry)
            if obj is None:
                LOGGER.warning("Skipping unreadable listing entry in %s: %r", self, entry)
                continue
            items.append(obj)
        return ObjectPage(items=items, next_marker=token or "", done=token is None)

    def _call(self, operation: str, key: str, method, **params):
        LOGGER.debug("%s %s%s", operation, self, key)
        try:
            return method(Bucket=self._bucket, **params)
        except (ClientError, BotoCoreError) as exc:
            raise translate_error(exc, operation, key) from exc


def new_b2(
    endpoint: str,
    account: str,
    secret: str,
    *,
    clients: ClientPool | None = None,
    client_factory: Callable[..., object] | None = None,
    settings: AppSettings | None = None,
) -> B2Storage:
    """Connect to the bucket named by ``endpoint``, creating it when missing.

    Raises:
        ConfigurationError: the endpoint cannot be parsed.
        AuthenticationError: credentials are missing or rejected.
        ProvisioningError: the bucket cannot be looked up or created.
    """

    settings = settings or AppSettings()
    parsed = parse_endpoint(endpoint)
    if parsed.scheme != SCHEME:
        raise ConfigurationError(f"Endpoint {endpoint!r} is not a {SCHEME}:// URI")
    if not parsed.service_host:
        raise ConfigurationError(
            f"Endpoint {endpoint!r} is missing the service host "
            f"(expected {SCHEME}://<bucket>.s3.<region>.backblazeb2.com)"
        )
    if not account or not secret:
        raise AuthenticationError("An application key id and key are required for B2")

    protocol = "https" if settings.use_ssl else "http"
    endpoint_url = f"{protocol}://{parsed.service_host}"
    if clients is None:
        clients = ClientPool(client_factory=client_factory, settings=settings)
    try:
        client = clients.get(endpoint_url, account, secret)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid endpoint {endpoint!r}: {exc}") from exc

    storage = B2Storage(client, parsed.bucket, spool_max_size=settings.spool_max_size)
    storage.create()
    return storage


register(SCHEME, new_b2)
