"""
Backend client factories.

Provides lazy-initialized, cached Firestore clients used as the default
backend when a service is built without an injected client.

Usage:
    >>> from firestore_datasync.backends import get_firestore_client
    >>> client = get_firestore_client()
    >>> doc = client.collection("users").document("user123").get()
"""

from .firestore_client import (
    get_firestore_client,
    FirestoreClientWrapper,
    clear_firestore_cache,
    resolve_settings,
)

__all__ = [
    "get_firestore_client",
    "FirestoreClientWrapper",
    "clear_firestore_cache",
    "resolve_settings",
]
