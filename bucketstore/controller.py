from __future__ import annotations
"""Opens storages for saved connection profiles."""

import logging
import threading
from typing import Callable

from .b2 import ClientPool
from .profiles import ConnectionProfile, ProfileStorage
from .settings import AppSettings, SettingsStorage
from .storage import ObjectStorage, create_storage, parse_endpoint

LOGGER = logging.getLogger(__name__)


class StorageController:
    """Coordinates profiles, settings and the shared client pool."""

    def __init__(
        self,
        storage: ProfileStorage | None = None,
        settings_storage: SettingsStorage | None = None,
        client_factory: Callable[..., object] | None = None,
    ):
        self._storage = storage or ProfileStorage()
        self._settings_storage = settings_storage or SettingsStorage()
        self._settings = self._settings_storage.load()
        self._client_factory = client_factory
        self._clients = ClientPool(client_factory=client_factory, settings=self._settings)
        self._profiles: list[ConnectionProfile] = self._storage.load()
        self._open: dict[str, ObjectStorage] = {}
        self._lock = threading.Lock()

    @property
    def settings(self) -> AppSettings:
        return self._settings

    def save_settings(self, settings: AppSettings) -> None:
        self._settings = settings
        self._settings_storage.save(settings)
        # Clients were configured from the old settings.
        with self._lock:
            self._clients = ClientPool(client_factory=self._client_factory, settings=self._settings)
            self._open.clear()

    def list_profiles(self) -> list[ConnectionProfile]:
        return list(self._profiles)

    def save_profile(self, profile: ConnectionProfile, *, original_name: str | None = None) -> None:
        parse_endpoint(profile.endpoint)
        if original_name and original_name != profile.name:
            self._profiles = [p for p in self._profiles if p.name != original_name]
            self._forget(original_name)
        self._upsert_profile(profile)
        self._forget(profile.name)
        self._persist_profiles()

    def delete_profile(self, name: str) -> None:
        before = len(self._profiles)
        self._profiles = [p for p in self._profiles if p.name != name]
        if len(self._profiles) == before:
            raise ValueError(f"Profile '{name}' does not exist")
        self._forget(name)
        self._persist_profiles()

    def get_profile(self, name: str) -> ConnectionProfile:
        for profile in self._profiles:
            if profile.name == name:
                return profile
        raise ValueError(f"Profile '{name}' does not exist")

    def open(self, name: str) -> ObjectStorage:
        """Return the storage for profile ``name``, connecting on first use."""

        profile = self.get_profile(name)
        with self._lock:
            storage = self._open.get(name)
            if storage is not None:
                return storage
            LOGGER.debug("Opening storage for profile '%s'", name)
            storage = create_storage(
                profile.endpoint,
                profile.access_key,
                profile.secret_key,
                clients=self._clients,
                settings=self._settings,
            )
            self._open[name] = storage
            return storage

    def _forget(self, name: str) -> None:
        with self._lock:
            self._open.pop(name, None)

    def _upsert_profile(self, profile: ConnectionProfile) -> None:
        for idx, existing in enumerate(self._profiles):
            if existing.name == profile.name:
                self._profiles[idx] = profile
                break
        else:
            self._profiles.append(profile)

    def _persist_profiles(self) -> None:
        self._storage.save(self._profiles)
