"""
Remote Service Abstract Base Classes.

The synchronization engine talks to remote storage through two contracts:

- RemoteDocumentService: one document at a time (a user profile, settings)
- RemoteCollectionService: a whole collection, including live change streams

Implementations must be safe to call from a single asyncio event loop;
one-shot operations are coroutines, stream operations return immediately
with a stream handle that starts its listener on first read.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, List, Mapping, Optional, TypeVar

from ..listeners import CollectionUpdates, StreamChannel
from ..query import QueryBuilder

T = TypeVar("T")


class RemoteDocumentService(ABC, Generic[T]):
    """
    Abstract base class for single-document remote storage.

    Implementations must provide get, save, update, delete and stream
    operations keyed by document id.
    """

    @abstractmethod
    async def get_document(self, id: str) -> T:
        """
        Fetch and decode one document.

        Raises:
            NotFound: If the document does not exist.
            SerializationFailure: If the stored fields cannot be decoded.
        """

    @abstractmethod
    async def save_document(self, model: T) -> None:
        """
        Upsert ``model`` under its own id with merge semantics: stored fields
        the model does not carry are left untouched.
        """

    @abstractmethod
    async def update_document(self, id: str, data: Mapping[str, Any]) -> None:
        """
        Apply a partial field update.

        Raises:
            NotFound: If the document does not exist.
            SerializationFailure: If a value cannot be stored.
        """

    @abstractmethod
    async def delete_document(self, id: str) -> None:
        """Delete a document. Deleting a missing document is not an error."""

    @abstractmethod
    def stream_document(self, id: str) -> StreamChannel[Optional[T]]:
        """
        Live view of one document.

        The first item is the current value (None when absent); a new item
        follows every backend change.
        """


class RemoteCollectionService(RemoteDocumentService[T]):
    """
    Abstract base class for collection remote storage.

    Adds bulk reads and collection-wide streams to the document contract.
    """

    @abstractmethod
    async def get_collection(self) -> List[T]:
        """Fetch every document in the collection."""

    @abstractmethod
    async def get_documents(self, query: QueryBuilder) -> List[T]:
        """Fetch every document matching ``query``."""

    @abstractmethod
    def stream_collection(self, query: Optional[QueryBuilder] = None) -> StreamChannel[List[T]]:
        """
        Live full-snapshot view of the (filtered) collection.

        Every backend change triggers a fresh bulk read and one emission of
        the complete result list.
        """

    @abstractmethod
    def stream_collection_updates(self, query: Optional[QueryBuilder] = None) -> CollectionUpdates:
        """
        Live incremental view of the (filtered) collection.

        Returns paired channels sharing one listener: ``updates`` carries
        added or modified entities, ``deletions`` carries removed ids.
        """
