from __future__ import annotations
"""Application settings persistence helpers."""

from dataclasses import asdict, dataclass
import json
from pathlib import Path

from botocore.config import Config


@dataclass
class AppSettings:
    """Tunables applied to every storage connection."""

    list_limit: int = 1000
    connect_timeout: int = 10
    read_timeout: int = 60
    max_attempts: int = 3
    spool_max_size: int = 8 * 1024 * 1024
    use_ssl: bool = True

    def client_config(self) -> Config:
        """Return the botocore client configuration for these settings."""

        return Config(
            signature_version="s3v4",
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            retries={"max_attempts": self.max_attempts, "mode": "standard"},
        )


_POSITIVE_INT_FIELDS = (
    "list_limit",
    "connect_timeout",
    "read_timeout",
    "max_attempts",
    "spool_max_size",
)


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".bucketstore_settings.json"
        self._path = Path(storage_path)

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()
        values = {}
        for name in _POSITIVE_INT_FIELDS:
            default = getattr(AppSettings, name)
            try:
                value = int(data.get(name, default))
            except (TypeError, ValueError):
                value = default
            values[name] = value if value > 0 else default
        use_ssl = data.get("use_ssl", AppSettings.use_ssl)
        values["use_ssl"] = use_ssl if isinstance(use_ssl, bool) else AppSettings.use_ssl
        return AppSettings(**values)

    def save(self, settings: AppSettings) -> None:
        payload = asdict(settings)
        for name in _POSITIVE_INT_FIELDS:
            payload[name] = max(int(payload[name]), 1)
        payload["use_ssl"] = bool(payload["use_ssl"])
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
