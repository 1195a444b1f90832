"""Connection profiles and their persistence.

Profiles live in a JSON file; application keys are kept in the OS keychain.
"""
from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

LOGGER = logging.getLogger(__name__)


@dataclass
class ConnectionProfile:
    """A saved storage connection: endpoint URI plus credentials."""

    name: str
    endpoint: str
    access_key: str
    secret_key: str = ""

    def public_fields(self) -> dict[str, str]:
        return {
            "name": self.name,
            "endpoint": self.endpoint,
            "access_key": self.access_key,
        }


class KeychainStore:
    """Keeps application keys in the OS keychain, one entry per profile."""

    def __init__(self, service_name: str = "bucketstore"):
        self._service_name = service_name

    def get_secret(self, profile_name: str) -> str:
        if not profile_name:
            return ""
        try:
            return keyring.get_password(self._service_name, profile_name) or ""
        except KeyringError as exc:
            LOGGER.warning("Unable to read secret for profile '%s': %s", profile_name, exc)
            return ""

    def set_secret(self, profile_name: str, secret_key: str) -> None:
        if not profile_name:
            return
        if not secret_key:
            self.delete_secret(profile_name)
            return
        try:
            keyring.set_password(self._service_name, profile_name, secret_key)
        except KeyringError as exc:
            LOGGER.warning("Unable to store secret for profile '%s': %s", profile_name, exc)

    def delete_secret(self, profile_name: str) -> None:
        if not profile_name:
            return
        try:
            keyring.delete_password(self._service_name, profile_name)
        except PasswordDeleteError:
            return
        except KeyringError as exc:
            LOGGER.warning("Unable to delete secret for profile '%s': %s", profile_name, exc)


class ProfileStorage:
    """JSON file of profiles without secrets, backed by a :class:`KeychainStore`."""

    def __init__(
        self,
        storage_path: str | Path | None = None,
        keychain: KeychainStore | None = None,
    ):
        if storage_path is None:
            storage_path = Path.home() / ".bucketstore_connections.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    def load(self) -> list[ConnectionProfile]:
        data = self._read_entries()
        profiles: list[ConnectionProfile] = []
        migrated = False
        for entry in data:
            try:
                profile = ConnectionProfile(
                    name=entry["name"],
                    endpoint=entry["endpoint"],
                    access_key=entry["access_key"],
                )
            except (KeyError, TypeError):
                LOGGER.warning("Ignoring malformed profile entry in %s", self._path)
                continue
            plaintext = entry.get("secret_key", "")
            if plaintext:
                # Older files stored the key inline; move it to the keychain.
                migrated = True
                self._keychain.set_secret(profile.name, plaintext)
                profile.secret_key = plaintext
            else:
                profile.secret_key = self._keychain.get_secret(profile.name)
            profiles.append(profile)
        if migrated:
            self._write_data([profile.public_fields() for profile in profiles])
        return profiles

    def save(self, profiles: list[ConnectionProfile]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        for profile in profiles:
            self._keychain.set_secret(profile.name, profile.secret_key)
        current_names = {profile.name for profile in profiles}
        for name in self._load_profile_names() - current_names:
            self._keychain.delete_secret(name)
        self._write_data([profile.public_fields() for profile in profiles])

    def _read_entries(self) -> list[dict]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []
        if not isinstance(data, list):
            return []
        return [entry for entry in data if isinstance(entry, dict)]

    def _load_profile_names(self) -> set[str]:
        names = set()
        for entry in self._read_entries():
            name = entry.get("name")
            if isinstance(name, str) and name:
                names.add(name)
        return names

    def _write_data(self, data: list[dict[str, str]]) -> None:
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
