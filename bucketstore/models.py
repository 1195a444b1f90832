from __future__ import annotations
"""Data models describing stored objects and listing pages."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

DIRECTORY_SUFFIX = "/"


def is_dir_key(key: str) -> bool:
    """Return True when ``key`` names a directory marker."""

    return key.endswith(DIRECTORY_SUFFIX)


@dataclass(frozen=True)
class StorageObject:
    """Descriptor of a single stored object.

    ``modified_at`` is the provider-reported upload time. It is advisory:
    B2 reports the upload timestamp rather than a true modification time, so
    nothing should order or expire objects based on it.
    """

    key: str
    size: int = 0
    modified_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("Object key cannot be empty")
        if self.size < 0:
            raise ValueError(f"Object size cannot be negative: {self.size}")

    @property
    def is_dir(self) -> bool:
        return is_dir_key(self.key)


@dataclass
class ObjectPage:
    """One page of a listing.

    Pass ``next_marker`` back to ``list`` to fetch the following page. When
    ``done`` is set there is nothing left to fetch.
    """

    items: list[StorageObject] = field(default_factory=list)
    next_marker: str = ""
    done: bool = True
