"""
Exception Classes for firestore-datasync.

Every failure surfaced by the remote services is one of the classes below.
They live in their own module (zero dependencies) so that the query,
path and service modules can raise them without importing each other.

Taxonomy:
    DataSyncError (base)
        PathUnavailable       - the collection path provider returned no value
        NotFound              - the requested document does not exist
        SerializationFailure  - an entity could not be encoded or decoded
        BackendFailure        - any error raised by the Firestore SDK

Callers waiting for a dynamic path (e.g. one that depends on the signed-in
user) should branch on PathUnavailable explicitly: it means "not ready yet",
not "the backend is broken".

Example:
    >>> try:
    ...     user = await service.get_document("user123")
    ... except PathUnavailable:
    ...     pass  # not signed in yet
    ... except NotFound:
    ...     user = None
"""

from typing import Any, Dict, Optional


class DataSyncError(Exception):
    """
    Base class for all firestore-datasync errors.

    Attributes:
        message: Human-readable error message.
        path: Resolved collection path, if known.
        document_id: Document identifier, if applicable.
    """

    code = "INTERNAL"

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        document_id: Optional[str] = None,
    ):
        self.message = message
        self.path = path
        self.document_id = document_id
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a structured error dict (as printed by the CLI)."""
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.path:
            error["path"] = self.path
        if self.document_id:
            error["document"] = self.document_id
        return {"success": False, "error": error}


class PathUnavailable(DataSyncError):
    """The path provider returned None; no backend call was attempted."""

    code = "PATH_UNAVAILABLE"

    def __init__(self, message: str = "Collection path is not available"):
        super().__init__(message)


class NotFound(DataSyncError):
    """The requested document does not exist."""

    code = "NOT_FOUND"


class SerializationFailure(DataSyncError):
    """An entity could not be encoded to, or decoded from, a Firestore document."""

    code = "SERIALIZATION_FAILURE"


class BackendFailure(DataSyncError):
    """
    An error raised by the Firestore SDK (network, permission, quota,
    malformed query). The SDK exception is chained as ``__cause__``.
    """

    code = "BACKEND_FAILURE"
