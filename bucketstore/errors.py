"""Error taxonomy shared by every storage backend."""
from __future__ import annotations

from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectionError as SDKConnectionError,
    ConnectTimeoutError,
    EndpointConnectionError,
    HTTPClientError,
    NoCredentialsError,
    NoRegionError,
    PartialCredentialsError,
    ReadTimeoutError,
    ResponseStreamingError,
    UnknownEndpointError,
)

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound", "NoSuchBucket"})
AUTH_CODES = frozenset(
    {
        "401",
        "403",
        "AccessDenied",
        "ExpiredToken",
        "InvalidAccessKeyId",
        "InvalidToken",
        "SignatureDoesNotMatch",
        "Unauthorized",
    }
)
TRANSIENT_CODES = frozenset(
    {
        "InternalError",
        "RequestTimeout",
        "ServiceUnavailable",
        "SlowDown",
        "Throttling",
        "TooManyRequests",
    }
)
NETWORK_ERRORS = (
    SDKConnectionError,
    EndpointConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionClosedError,
    HTTPClientError,
    ResponseStreamingError,
    OSError,
)


class StorageError(RuntimeError):
    """Base class for failures reported by an object storage backend."""

    def __init__(self, message: str, *, operation: str = "", key: str = ""):
        super().__init__(message)
        self.operation = operation
        self.key = key


class NotFoundError(StorageError):
    """The requested key (or bucket) does not exist."""


class ConfigurationError(StorageError):
    """The endpoint or bucket name is malformed or unsupported."""


class AuthenticationError(StorageError):
    """The provider rejected the supplied credentials."""


class ProvisioningError(StorageError):
    """The bucket could not be looked up or created."""


class TransientError(StorageError):
    """Network or provider-side fault that may succeed when retried."""


def error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def http_status(exc: ClientError) -> int | None:
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    try:
        return int(status)
    except (TypeError, ValueError):
        return None


def translate_error(exc: Exception, operation: str, key: str = "") -> StorageError:
    """Map a botocore exception onto the storage error taxonomy.

    The returned error is meant to be raised ``from exc`` so the provider
    exception stays reachable through ``__cause__``.
    """

    target = f"{operation} {key}".strip()
    message = f"{target}: {exc}"
    if isinstance(exc, StorageError):
        return exc
    if isinstance(exc, ClientError):
        code = error_code(exc)
        status = http_status(exc)
        if code in NOT_FOUND_CODES or status == 404:
            return NotFoundError(message, operation=operation, key=key)
        if code in AUTH_CODES or status in (401, 403):
            return AuthenticationError(message, operation=operation, key=key)
        if code in TRANSIENT_CODES or (status is not None and status >= 500):
            return TransientError(message, operation=operation, key=key)
        return StorageError(message, operation=operation, key=key)
    if isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        return AuthenticationError(message, operation=operation, key=key)
    if isinstance(exc, (NoRegionError, UnknownEndpointError)):
        return ConfigurationError(message, operation=operation, key=key)
    if isinstance(exc, NETWORK_ERRORS):
        return TransientError(message, operation=operation, key=key)
    # Local SDK failures such as parameter validation are not retryable.
    return StorageError(message, operation=operation, key=key)
