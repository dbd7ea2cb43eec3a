"""
Firestore Client Factory.

Services take an explicit ``client`` argument; this module builds the
default one when none is injected. Clients are created from
``FirestoreSettings``, lazily, and shared per distinct settings value.

Unset settings fields fall back to the environment:
    FIREBASE_PROJECT_ID:            project
    FIRESTORE_EMULATOR_HOST:        emulator_host
    GOOGLE_APPLICATION_CREDENTIALS: credentials_path

Credentials, in order: the service account file at ``credentials_path`` if
it exists, none when talking to the emulator, otherwise application default
credentials.

Usage:
    >>> from firestore_datasync.backends import get_firestore_client
    >>> from firestore_datasync.settings import FirestoreSettings
    >>> client = get_firestore_client(FirestoreSettings(emulator_host="localhost:8080"))
    >>> client.collection("users").document("user123").get()
"""

import logging
import os
from threading import Lock
from typing import Any, Dict, Optional, Tuple

import firebase_admin
from firebase_admin import credentials, firestore

from ..settings import FirestoreSettings

logger = logging.getLogger(__name__)

_ENV_FALLBACKS = {
    "project": "FIREBASE_PROJECT_ID",
    "emulator_host": "FIRESTORE_EMULATOR_HOST",
    "credentials_path": "GOOGLE_APPLICATION_CREDENTIALS",
}

_client_cache: Dict[Tuple[Optional[str], ...], "FirestoreClientWrapper"] = {}
_cache_lock = Lock()


def resolve_settings(settings: Optional[FirestoreSettings] = None) -> FirestoreSettings:
    """Fill unset fields of ``settings`` from the environment."""
    settings = settings or FirestoreSettings()
    missing = {
        field: os.environ.get(env_var)
        for field, env_var in _ENV_FALLBACKS.items()
        if getattr(settings, field) is None
    }
    return settings.model_copy(update={k: v for k, v in missing.items() if v})


class FirestoreClientWrapper:
    """
    Firestore client that connects on first use.

    The services call ``collection()`` from executor threads, so the first
    connection is guarded by a lock. Each wrapper owns its own named
    Firebase app, deleted again by ``close()``.
    """

    def __init__(self, settings: Optional[FirestoreSettings] = None):
        self.settings = resolve_settings(settings)
        self._client = None
        self._app = None
        self._init_lock = Lock()

    @property
    def is_emulator(self) -> bool:
        return bool(self.settings.emulator_host)

    @property
    def app_name(self) -> str:
        return f"{self.settings.project or 'default'}_datasync_{id(self)}"

    def _credentials(self) -> Any:
        path = self.settings.credentials_path
        if path and os.path.exists(path):
            logger.debug(f"Using credentials from: {path}")
            return credentials.Certificate(path)
        if self.is_emulator:
            return None
        logger.debug("Using application default credentials")
        return credentials.ApplicationDefault()

    @property
    def client(self) -> Any:
        if self._client is not None:
            return self._client

        with self._init_lock:
            if self._client is not None:
                return self._client

            if self.is_emulator:
                # The SDK only reads the emulator address from the environment
                os.environ["FIRESTORE_EMULATOR_HOST"] = self.settings.emulator_host
                logger.info(f"Using Firestore emulator at: {self.settings.emulator_host}")

            options = {"projectId": self.settings.project} if self.settings.project else None
            self._app = firebase_admin.initialize_app(
                credential=self._credentials(), options=options, name=self.app_name
            )
            self._client = firestore.client(app=self._app)
            logger.info(f"Connected Firestore client {self.app_name}")
            return self._client

    def collection(self, path: str) -> Any:
        """CollectionReference for a (possibly nested) collection path."""
        return self.client.collection(path)

    def close(self) -> None:
        """Delete the Firebase app, if one was created. Safe to call repeatedly."""
        app, self._app, self._client = self._app, None, None
        if app is None:
            return
        try:
            firebase_admin.delete_app(app)
        except ValueError as e:
            logger.warning(f"Error closing Firebase app {self.app_name}: {e}")

    def __repr__(self) -> str:
        return (
            f"FirestoreClientWrapper(project={self.settings.project!r}, "
            f"emulator_host={self.settings.emulator_host!r})"
        )


def get_firestore_client(settings: Optional[FirestoreSettings] = None) -> FirestoreClientWrapper:
    """
    Get the shared client for ``settings`` (after environment fallback).

    Equal settings always return the same wrapper.
    """
    resolved = resolve_settings(settings)
    key = (resolved.project, resolved.emulator_host, resolved.credentials_path)

    with _cache_lock:
        wrapper = _client_cache.get(key)
        if wrapper is None:
            wrapper = _client_cache[key] = FirestoreClientWrapper(resolved)
            logger.debug(f"Created {wrapper!r}")
        return wrapper


def clear_firestore_cache() -> int:
    """
    Close and forget all cached clients.

    Returns:
        Number of clients cleared
    """
    with _cache_lock:
        count = len(_client_cache)
        for wrapper in _client_cache.values():
            wrapper.close()
        _client_cache.clear()
    logger.info(f"Cleared {count} cached Firestore clients")
    return count
