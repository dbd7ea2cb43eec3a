"""
Collection path resolution.

A path provider is either a fixed string or a zero-argument callable that
returns the path, or None while the path is not yet known:

    "products"                                   -> products/{documentId}
    lambda: f"users/{auth.uid}/favorites" if auth.uid else None

Providers are evaluated on every call and never cached, so a provider that
closes over mutable state (the signed-in user, a tenant id) always yields
the current path.
"""

import logging
from typing import Callable, Optional, Union

from .exceptions import PathUnavailable

logger = logging.getLogger(__name__)

PathProvider = Union[str, Callable[[], Optional[str]]]


def resolve_path(provider: PathProvider) -> str:
    """
    Evaluate a path provider.

    Args:
        provider: Fixed path string or callable returning an optional path.

    Returns:
        The resolved collection path, stripped of surrounding slashes.

    Raises:
        PathUnavailable: If the provider returned None or an empty path.
        TypeError: If the provider returned something other than a string.
    """
    path = provider() if callable(provider) else provider
    if not path:
        logger.debug("Path provider returned no value")
        raise PathUnavailable()
    if not isinstance(path, str):
        raise TypeError(f"Path provider must return a string, got {type(path).__name__}")
    return path.strip("/")


def is_collection_path(path: str) -> bool:
    """True if ``path`` addresses a collection (odd number of segments)."""
    segments = [s for s in path.split("/") if s]
    return len(segments) % 2 == 1


class CollectionPath:
    """
    Holds a path provider and resolves it on demand.

    Example:
        >>> path = CollectionPath(lambda: session.get("uid") and f"users/{session['uid']}/todos")
        >>> path.resolve()
        Traceback (most recent call last):
        ...
        PathUnavailable: Collection path is not available
    """

    def __init__(self, provider: PathProvider):
        if not callable(provider) and not isinstance(provider, str):
            raise TypeError(
                f"Path provider must be a string or a callable, got {type(provider).__name__}"
            )
        self._provider = provider

    @property
    def is_dynamic(self) -> bool:
        return callable(self._provider)

    def resolve(self) -> str:
        path = resolve_path(self._provider)
        if not is_collection_path(path):
            raise ValueError(
                f"'{path}' is a document path; collection paths have an odd number of segments"
            )
        return path

    def __repr__(self) -> str:
        if self.is_dynamic:
            return f"CollectionPath(<dynamic {self._provider!r}>)"
        return f"CollectionPath({self._provider!r})"
