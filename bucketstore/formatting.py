from __future__ import annotations
"""Formatting helpers shared by the command-line interface."""
from dataclasses import dataclass
from datetime import datetime
from importlib.metadata import PackageNotFoundError, metadata, version
import re

from .models import StorageObject

DIST_NAME = "bucketstore"
SIZE_UNIT_FACTORS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024 * 1024,
    "GB": 1024 * 1024 * 1024,
}
_SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*([A-Za-z]*)\s*$")


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str
    summary: str


def load_package_info(dist_name: str = DIST_NAME) -> PackageInfo:
    try:
        distribution_metadata = metadata(dist_name)
        package_version = version(dist_name)
    except PackageNotFoundError:
        return PackageInfo(name=dist_name, version="unknown", summary="")
    return PackageInfo(
        name=distribution_metadata.get("Name") or dist_name,
        version=package_version,
        summary=distribution_metadata.get("Summary") or "",
    )


def parse_size(value: str) -> int | None:
    """Parse ``"512"``, ``"64KB"`` or ``"8 MB"`` into a byte count."""

    match = _SIZE_PATTERN.match(value or "")
    if not match:
        return None
    amount = int(match.group(1))
    unit = match.group(2).upper() or "B"
    factor = SIZE_UNIT_FACTORS.get(unit)
    if not factor or amount <= 0:
        return None
    return amount * factor


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    suffixes = ["B", "KB", "MB", "GB", "TB"]
    value = float(max(size, 0))
    for suffix in suffixes:
        if value < 1024 or suffix == suffixes[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"


def format_modified(modified_at: datetime | None) -> str:
    if not modified_at:
        return "-"
    return modified_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip() or modified_at.isoformat()


def format_object(obj: StorageObject, human: bool = False) -> str:
    size = format_size(obj.size) if human else str(obj.size)
    return f"{size:>12}  {format_modified(obj.modified_at):<23}  {obj.key}"


def compose_key(prefix: str, name: str) -> str:
    key_name = name.strip().lstrip("/")
    if not key_name:
        raise ValueError("Object name cannot be empty")
    cleaned_prefix = prefix.strip().lstrip("/")
    if cleaned_prefix and not cleaned_prefix.endswith("/"):
        cleaned_prefix += "/"
    return f"{cleaned_prefix}{key_name}"
