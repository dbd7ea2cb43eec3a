"""
Firestore Remote Document Service.

Single-document CRUD and live streaming against ``{collection_path}/{id}``.

The collection path is a provider (fixed string or callable) resolved
immediately before every operation, so a path such as
``users/{uid}/settings`` follows the signed-in user without rebuilding the
service. While the provider returns None every operation raises
PathUnavailable without touching Firestore.

Blocking SDK calls run in the default executor; the operations of one
service instance are serialized with an asyncio.Lock.

Example:
    >>> service = FirestoreDocumentService(UserProfile, "users", client=db)
    >>> await service.save_document(UserProfile(id="u1", name="Ada"))
    >>> await service.get_document("u1")
    UserProfile(id='u1', name='Ada')
"""

import asyncio
import functools
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Mapping, Optional, Tuple, Type, TypeVar

from google.api_core import exceptions as api_exceptions

from ..backends import get_firestore_client
from ..exceptions import BackendFailure, DataSyncError, NotFound, SerializationFailure
from ..listeners import DocumentListener, StreamChannel
from ..models import encode_fields
from ..paths import CollectionPath, PathProvider
from ..settings import FirestoreSettings
from .base import RemoteDocumentService

logger = logging.getLogger(__name__)

T = TypeVar("T")


@contextmanager
def backend_errors(path: Optional[str], document_id: Optional[str] = None) -> Iterator[None]:
    """
    Translate Firestore SDK exceptions into the DataSyncError taxonomy.

    DataSyncError subclasses pass through unchanged.
    """
    try:
        yield
    except DataSyncError:
        raise
    except api_exceptions.NotFound as e:
        raise NotFound(
            f"Document not found: {path}/{document_id}", path=path, document_id=document_id
        ) from e
    except Exception as e:
        logger.error(f"Firestore call failed for {path}/{document_id or ''}: {e}")
        raise BackendFailure(
            f"Firestore call failed: {e}", path=path, document_id=document_id
        ) from e


class FirestoreDocumentService(RemoteDocumentService[T]):
    """
    RemoteDocumentService backed by a Firestore collection.

    Attributes:
        model: Entity class; must provide document_id(), to_document() and
               the from_document(document_id, data) classmethod.
    """

    def __init__(
        self,
        model: Type[T],
        collection_path: PathProvider,
        client: Any = None,
        settings: Optional[FirestoreSettings] = None,
    ):
        """
        Initialize the service.

        Args:
            model: Entity class (usually a SyncModel subclass).
            collection_path: Fixed collection path, or a callable returning
                the path or None while it is not yet available.
            client: Firestore client (or FirestoreClientWrapper). If None,
                a cached client is created from ``settings`` on first use.
            settings: Connection settings for the default client.
        """
        self.model = model
        self._path = CollectionPath(collection_path)
        self._client = client
        self._settings = settings
        self._lock = asyncio.Lock()

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_firestore_client(self._settings)
        return self._client

    # -- helpers ------------------------------------------------------------

    def _collection(self) -> Tuple[str, Any]:
        """Resolve the path now and return (path, CollectionReference)."""
        try:
            path = self._path.resolve()
        except (TypeError, ValueError) as e:
            raise BackendFailure(f"Invalid collection path: {e}") from e
        with backend_errors(path):
            return path, self.client.collection(path)

    @staticmethod
    def _document(collection: Any, id: str) -> Any:
        if not id:
            raise ValueError("Document ID is required")
        return collection.document(id)

    def _decode(self, document_id: str, data: Optional[Mapping[str, Any]], path: Optional[str] = None) -> T:
        try:
            return self.model.from_document(document_id, data or {})
        except SerializationFailure as e:
            e.path = e.path or path
            raise
        except Exception as e:
            raise SerializationFailure(
                f"Failed to decode {self.model.__name__}: {e}", path=path, document_id=document_id
            ) from e

    def _encode(self, model: T, path: Optional[str] = None) -> Tuple[str, dict]:
        try:
            return model.document_id(), model.to_document()
        except SerializationFailure as e:
            e.path = e.path or path
            raise
        except Exception as e:
            raise SerializationFailure(f"Failed to encode {type(model).__name__}: {e}", path=path) from e

    async def _call(self, fn: Callable, *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))

    # -- RemoteDocumentService ----------------------------------------------

    async def get_document(self, id: str) -> T:
        async with self._lock:
            path, collection = self._collection()
            with backend_errors(path, id):
                snapshot = await self._call(self._document(collection, id).get)

            if not snapshot.exists:
                logger.debug(f"Document not found: {path}/{id}")
                raise NotFound(f"Document not found: {path}/{id}", path=path, document_id=id)

            logger.debug(f"Retrieved document: {path}/{id}")
            return self._decode(id, snapshot.to_dict(), path)

    async def save_document(self, model: T) -> None:
        async with self._lock:
            path, collection = self._collection()
            document_id, data = self._encode(model, path)
            with backend_errors(path, document_id):
                await self._call(self._document(collection, document_id).set, data, merge=True)
            logger.debug(f"Saved document: {path}/{document_id} (merge=True)")

    async def update_document(self, id: str, data: Mapping[str, Any]) -> None:
        async with self._lock:
            path, collection = self._collection()
            if not isinstance(data, Mapping):
                raise SerializationFailure(
                    f"Update data must be a mapping, got {type(data).__name__}", path=path, document_id=id
                )
            fields = encode_fields(data, document_id=id)
            with backend_errors(path, id):
                await self._call(self._document(collection, id).update, fields)
            logger.debug(f"Updated document: {path}/{id} ({len(fields)} fields)")

    async def delete_document(self, id: str) -> None:
        async with self._lock:
            path, collection = self._collection()
            with backend_errors(path, id):
                await self._call(self._document(collection, id).delete)
            logger.debug(f"Deleted document: {path}/{id}")

    def stream_document(self, id: str) -> StreamChannel[Optional[T]]:
        try:
            path, collection = self._collection()
            with backend_errors(path, id):
                doc_ref = self._document(collection, id)
        except DataSyncError as e:
            return DocumentListener(self._decode, failure=e).values

        listener = DocumentListener(
            functools.partial(self._decode_with_path, path),
            open_watch=doc_ref.on_snapshot,
            description=f"document {path}/{id}",
        )
        return listener.values

    def _decode_with_path(self, path: str, document_id: str, data: Optional[Mapping[str, Any]]) -> T:
        return self._decode(document_id, data, path)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.model.__name__}, {self._path!r})"
