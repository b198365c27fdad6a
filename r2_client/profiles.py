"""Connection profile models and persistence."""
from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError

from .config import R2Configuration, RetryConfiguration
from .models import Credentials
from .settings import ClientSettings

LOGGER = logging.getLogger(__name__)


@dataclass
class ConnectionProfile:
    """Represents a saved R2 connection."""

    name: str
    endpoint_url: str
    access_key: str
    secret_key: str = field(repr=False)
    bucket: str = ""

    def to_configuration(
        self, settings: Optional[ClientSettings] = None, *, bucket: Optional[str] = None
    ) -> R2Configuration:
        settings = settings or ClientSettings()
        return R2Configuration(
            bucket=bucket or self.bucket,
            credentials=Credentials(access_key_id=self.access_key, secret_access_key=self.secret_key),
            endpoint=self.endpoint_url,
            region=settings.region,
            retry=RetryConfiguration(max_retries=settings.max_retries),
            max_upload_size_mb=settings.max_upload_size_mb or None,
            timeout=settings.timeout,
        )


class KeychainStore:
    """Encapsulates OS keychain access for secrets."""

    def __init__(self, service_name: str = "pyr2"):
        self._service_name = service_name

    def get_secret(self, profile_name: str) -> str:
        if not profile_name:
            return ""
        try:
            return keyring.get_password(self._service_name, profile_name) or ""
        except KeyringError:
            LOGGER.warning("Unable to read the secret for profile '%s' from the keychain", profile_name)
            return ""

    def set_secret(self, profile_name: str, secret_key: str) -> None:
        if not profile_name:
            return
        if not secret_key:
            self.delete_secret(profile_name)
            return
        try:
            keyring.set_password(self._service_name, profile_name, secret_key)
        except KeyringError:
            LOGGER.warning("Unable to store the secret for profile '%s' in the keychain", profile_name)

    def delete_secret(self, profile_name: str) -> None:
        if not profile_name:
            return
        try:
            keyring.delete_password(self._service_name, profile_name)
        except KeyringError:
            return


class ProfileStorage:
    """JSON-backed store for connection profiles; secrets stay in the keychain."""

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".pyr2_connections.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    def load(self) -> list[ConnectionProfile]:
        data = self._read_entries()
        profiles: list[ConnectionProfile] = []
        sanitized: list[dict[str, str]] = []
        saw_plaintext = False
        for entry in data:
            try:
                name = entry["name"]
                endpoint_url = entry["endpoint_url"]
                access_key = entry["access_key"]
            except (KeyError, TypeError):
                continue
            bucket = entry.get("bucket", "")
            secret_key = entry.get("secret_key", "")
            if secret_key:
                saw_plaintext = True
                self._keychain.set_secret(name, secret_key)
            else:
                secret_key = self._keychain.get_secret(name)
            profiles.append(
                ConnectionProfile(
                    name=name,
                    endpoint_url=endpoint_url,
                    access_key=access_key,
                    secret_key=secret_key,
                    bucket=bucket,
                )
            )
            sanitized.append(self._serialize(name, endpoint_url, access_key, bucket))
        if saw_plaintext:
            LOGGER.info("Moved plaintext secrets from %s into the keychain", self._path)
            self._write_data(sanitized)
        return profiles

    def get(self, name: str) -> ConnectionProfile:
        for profile in self.load():
            if profile.name == name:
                return profile
        raise ValueError(f"Profile '{name}' does not exist")

    def save(self, profiles: list[ConnectionProfile]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = []
        for profile in profiles:
            self._keychain.set_secret(profile.name, profile.secret_key)
            data.append(self._serialize(profile.name, profile.endpoint_url, profile.access_key, profile.bucket))
        existing_names = {entry.get("name") for entry in self._read_entries() if isinstance(entry, dict)}
        current_names = {profile.name for profile in profiles}
        for name in existing_names - current_names:
            if isinstance(name, str) and name:
                self._keychain.delete_secret(name)
        self._write_data(data)

    @staticmethod
    def _serialize(name: str, endpoint_url: str, access_key: str, bucket: str) -> dict[str, str]:
        entry = {"name": name, "endpoint_url": endpoint_url, "access_key": access_key}
        if bucket:
            entry["bucket"] = bucket
        return entry

    def _read_entries(self) -> list:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []
        return data if isinstance(data, list) else []

    def _write_data(self, data: list[dict[str, str]]) -> None:
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
