"""
Credential persistence.

The core only depends on the CredentialStore protocol. FileCredentialStore is
the bundled implementation: private JSON documents under one directory with
lock-based concurrency control and atomic writes.
"""

from __future__ import annotations

import fcntl
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Protocol

from .config import default_home
from .crypto import (
    export_private_key_pem,
    export_public_key_pem,
    import_private_key_pem,
    import_public_key_pem,
)
from .errors import KeyImportError, StaleCredentialsError
from .models import AuthorizationBundle, Balance, UserPreferences
from .storage import atomic_write_json, ensure_private_dir, ensure_private_file, read_json

logger = logging.getLogger(__name__)

AUTHORIZATION_FILE = "authorization.json"
PREFERENCES_FILE = "user-preferences.json"
BALANCE_FILE = "last-balance.json"

_AUTHORIZATION_FIELDS = ("private_key", "server_public_key", "installation_token", "api_key")


class CredentialStore(Protocol):
    """Key-value storage for the authorization bundle, preferences and cached balance."""

    def load_authorization(self) -> Optional[AuthorizationBundle]: ...

    def store_authorization(self, bundle: AuthorizationBundle) -> None: ...

    def load_user_preferences(self) -> Optional[UserPreferences]: ...

    def store_user_preferences(self, prefs: UserPreferences) -> None: ...

    def load_cached_balance(self) -> Optional[Balance]: ...

    def store_cached_balance(self, balance: Balance) -> None: ...

    def clear_cached_balance(self) -> None: ...

    def clear_all(self) -> None: ...


class FileCredentialStore:
    """File-backed credential store (0700 directory, 0600 files)."""

    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = base_dir or default_home()
        ensure_private_dir(self.base_dir)
        self._lock_path = self.base_dir / ".lock"
        ensure_private_file(self._lock_path)

    @contextmanager
    def _lock(self):
        with open(self._lock_path, "r+") as lockf:
            fcntl.flock(lockf.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lockf.fileno(), fcntl.LOCK_UN)

    def _path(self, name: str) -> Path:
        return self.base_dir / name

    def load_authorization(self) -> Optional[AuthorizationBundle]:
        """Load the stored identity; a partially written one is an error, not None."""
        with self._lock():
            try:
                raw = read_json(self._path(AUTHORIZATION_FILE))
            except ValueError as e:
                raise StaleCredentialsError(f"Stored authorization is unreadable: {e}") from e
        if raw is None:
            return None

        missing = [name for name in _AUTHORIZATION_FIELDS if not raw.get(name)]
        if missing:
            raise StaleCredentialsError(
                f"Stored authorization is incomplete (missing {', '.join(missing)}); run setup again"
            )
        try:
            return AuthorizationBundle(
                private_key=import_private_key_pem(raw["private_key"]),
                server_public_key=import_public_key_pem(raw["server_public_key"]),
                installation_token=raw["installation_token"],
                api_key=raw["api_key"],
            )
        except KeyImportError as e:
            raise StaleCredentialsError(f"Stored key material is unreadable: {e}") from e

    def store_authorization(self, bundle: AuthorizationBundle) -> None:
        """Persist a new identity. Refuses to overwrite an existing one."""
        payload = {
            "private_key": export_private_key_pem(bundle.private_key),
            "server_public_key": export_public_key_pem(bundle.server_public_key),
            "installation_token": bundle.installation_token,
            "api_key": bundle.api_key,
        }
        with self._lock():
            path = self._path(AUTHORIZATION_FILE)
            if path.exists():
                raise StaleCredentialsError(
                    "An authorization is already stored; clear all data before storing a new one"
                )
            atomic_write_json(path, payload)
        logger.info("Stored authorization in %s", self.base_dir)

    def load_user_preferences(self) -> Optional[UserPreferences]:
        try:
            with self._lock():
                raw = read_json(self._path(PREFERENCES_FILE))
            if raw is None:
                return None
            return UserPreferences.from_dict(raw)
        except (KeyError, ValueError):
            logger.warning("Ignoring incomplete user preferences in %s", self.base_dir)
            return None

    def store_user_preferences(self, prefs: UserPreferences) -> None:
        with self._lock():
            atomic_write_json(self._path(PREFERENCES_FILE), prefs.to_dict())

    def load_cached_balance(self) -> Optional[Balance]:
        try:
            with self._lock():
                raw = read_json(self._path(BALANCE_FILE))
            if raw is None:
                return None
            return Balance.from_dict(raw)
        except (KeyError, ValueError, TypeError):
            logger.warning("Ignoring unreadable cached balance in %s", self.base_dir)
            return None

    def store_cached_balance(self, balance: Balance) -> None:
        with self._lock():
            atomic_write_json(self._path(BALANCE_FILE), balance.to_dict())

    def clear_cached_balance(self) -> None:
        with self._lock():
            self._path(BALANCE_FILE).unlink(missing_ok=True)

    def clear_all(self) -> None:
        with self._lock():
            for name in (AUTHORIZATION_FILE, PREFERENCES_FILE, BALANCE_FILE):
                self._path(name).unlink(missing_ok=True)
        logger.info("Cleared stored credentials in %s", self.base_dir)
