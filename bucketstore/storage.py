from __future__ import annotations
"""Backend-independent storage interface and scheme registry."""
from abc import ABC, abstractmethod
from contextlib import closing
from dataclasses import dataclass
from importlib import import_module
import logging
import re
from typing import BinaryIO, Callable, Iterator
from urllib.parse import urlsplit

from .errors import ConfigurationError
from .models import ObjectPage, StorageObject

LOGGER = logging.getLogger(__name__)

MAX_LIST_KEYS = 1000
BUCKET_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]{1,61}[A-Za-z0-9]$")

# Constructors resolved on first use of their scheme.
BUILTIN_BACKENDS = {
    "b2": "bucketstore.b2:new_b2",
}


class ObjectStorage(ABC):
    """Capability set every storage backend provides.

    All operations block on network I/O. Errors are subclasses of
    :class:`bucketstore.errors.StorageError`; a missing key always raises
    :class:`bucketstore.errors.NotFoundError`.
    """

    def create(self) -> None:
        """Make sure the backing bucket exists. Safe to call repeatedly."""

    @abstractmethod
    def head(self, key: str) -> StorageObject:
        """Return the descriptor of ``key``."""

    @abstractmethod
    def get(self, key: str, off: int = 0, limit: int = -1) -> BinaryIO:
        """Open ``limit`` bytes of ``key`` starting at ``off``.

        A negative ``limit`` reads to the end of the object. The caller owns
        the returned stream and must close it.
        """

    @abstractmethod
    def put(self, key: str, data: BinaryIO | bytes) -> None:
        """Replace ``key`` with the whole content of ``data``."""

    def copy(self, dst: str, src: str) -> None:
        """Copy ``src`` to ``dst`` by streaming a full read into a write.

        The copy is not atomic. If the write fails, ``dst`` may be missing or
        left with partial content; verify with :meth:`head` when that matters.
        """

        with closing(self.get(src, 0, -1)) as reader:
            self.put(dst, reader)

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete ``key``. Deleting a missing key follows provider behaviour."""

    @abstractmethod
    def list(self, prefix: str = "", marker: str = "", limit: int = MAX_LIST_KEYS) -> ObjectPage:
        """Return one page of objects under ``prefix``.

        Pass an empty ``marker`` to start and the previous page's
        ``next_marker`` to continue.
        """

    def list_all(self, prefix: str = "", limit: int = MAX_LIST_KEYS) -> Iterator[StorageObject]:
        """Yield every object under ``prefix``, following continuation markers."""

        marker = ""
        while True:
            page = self.list(prefix, marker, limit)
            yield from page.items
            if page.done or not page.next_marker:
                return
            marker = page.next_marker


Constructor = Callable[..., ObjectStorage]

_constructors: dict[str, Constructor] = {}


@dataclass(frozen=True)
class Endpoint:
    """Parsed connection string ``scheme://bucket.service-host/``."""

    scheme: str
    bucket: str
    service_host: str


def parse_endpoint(endpoint: str) -> Endpoint:
    """Split a connection string into scheme, bucket and service host.

    The bucket is the first dot-separated label of the host.
    """

    try:
        parts = urlsplit(endpoint.strip())
        host = parts.netloc
    except (AttributeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid endpoint {endpoint!r}: {exc}") from exc
    if not parts.scheme or not host:
        raise ConfigurationError(f"Invalid endpoint {endpoint!r}: expected scheme://bucket.host/")
    bucket, _, service_host = host.partition(".")
    if not BUCKET_NAME_PATTERN.match(bucket):
        raise ConfigurationError(f"Invalid bucket name {bucket!r} in endpoint {endpoint!r}")
    return Endpoint(
        scheme=parts.scheme.lower(),
        bucket=bucket,
        service_host=service_host,
    )


def register(scheme: str, constructor: Constructor) -> None:
    """Register ``constructor`` for connection strings using ``scheme``."""

    normalized = scheme.strip().lower()
    if not normalized:
        raise ValueError("scheme cannot be empty")
    if normalized in _constructors:
        LOGGER.debug("Replacing storage constructor for scheme '%s'", normalized)
    _constructors[normalized] = constructor


def registered_schemes() -> list[str]:
    return sorted(set(_constructors) | set(BUILTIN_BACKENDS))


def create_storage(endpoint: str, account: str, secret: str, **options) -> ObjectStorage:
    """Build the storage for ``endpoint`` with the constructor of its scheme.

    Keyword ``options`` are passed through to the constructor.
    """

    scheme = urlsplit(endpoint.strip()).scheme.lower()
    if not scheme:
        raise ConfigurationError(f"Invalid endpoint {endpoint!r}: missing scheme")
    constructor = _constructors.get(scheme)
    if constructor is None and scheme in BUILTIN_BACKENDS:
        module_name, _, attribute = BUILTIN_BACKENDS[scheme].partition(":")
        constructor = getattr(import_module(module_name), attribute)
        register(scheme, constructor)
    if constructor is None:
        raise ConfigurationError(f"Unsupported storage scheme '{scheme}'")
    LOGGER.debug("Creating '%s' storage for %s", scheme, endpoint)
    return constructor(endpoint, account, secret, **options)
