"""
Firestore Remote Collection Service.

Adds bulk reads and collection-wide live streams to the document service:

- get_collection / get_documents(query): one-shot reads
- stream_collection(query): full result list re-fetched on every change
- stream_collection_updates(query): incremental updates/deletions channels

``stream_collection`` trades a re-fetch per change for the simplest
consumer contract (every item is a complete, consistent result set).
``stream_collection_updates`` is the high-frequency alternative: one
listener, change events split into added/modified entities and removed ids.

Example:
    >>> service = FirestoreCollectionService(
    ...     Favorite,
    ...     lambda: auth.uid and f"users/{auth.uid}/favorites",
    ...     client=db,
    ... )
    >>> updates, deletions = service.stream_collection_updates(
    ...     QueryBuilder().order_by("created_at", descending=True)
    ... )
"""

import functools
import logging
from typing import Any, List, Optional, TypeVar

from ..exceptions import DataSyncError
from ..listeners import ChangeListener, CollectionListener, CollectionUpdates, StreamChannel
from ..query import QueryBuilder, translate_query
from .base import RemoteCollectionService
from .document import FirestoreDocumentService, backend_errors

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FirestoreCollectionService(FirestoreDocumentService[T], RemoteCollectionService[T]):
    """
    RemoteCollectionService backed by a Firestore collection.

    The service keeps a handle to the listener of its most recent
    ``stream_collection_updates`` call; opening a new one stops the previous
    listener.
    """

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._listener: Optional[ChangeListener] = None

    # -- helpers ------------------------------------------------------------

    def _build_query(self, path: str, collection: Any, query: Optional[QueryBuilder]) -> Any:
        if query is None:
            return collection
        with backend_errors(path):
            return translate_query(collection, query)

    def _fetch_all(self, path: str, target: Any) -> List[T]:
        """
        Blocking bulk read of ``target``; runs in an executor thread.

        Uses get() rather than stream(): the SDK refuses to stream
        limit_to_last queries and only get() restores their order.
        """
        with backend_errors(path):
            snapshots = target.get()
            items = [self._decode(snapshot.id, snapshot.to_dict(), path) for snapshot in snapshots]
        logger.debug(f"Query on {path} returned {len(items)} documents")
        return items

    async def _get_all(self, query: Optional[QueryBuilder]) -> List[T]:
        async with self._lock:
            path, collection = self._collection()
            target = self._build_query(path, collection, query)
            return await self._call(self._fetch_all, path, target)

    # -- RemoteCollectionService --------------------------------------------

    async def get_collection(self) -> List[T]:
        return await self._get_all(None)

    async def get_documents(self, query: QueryBuilder) -> List[T]:
        return await self._get_all(query)

    def stream_collection(self, query: Optional[QueryBuilder] = None) -> StreamChannel[List[T]]:
        try:
            path, collection = self._collection()
            target = self._build_query(path, collection, query)
        except DataSyncError as e:
            return CollectionListener(list, failure=e).snapshots

        listener = CollectionListener(
            functools.partial(self._fetch_all, path, target),
            open_watch=target.on_snapshot,
            description=f"collection {path}",
        )
        return listener.snapshots

    def stream_collection_updates(self, query: Optional[QueryBuilder] = None) -> CollectionUpdates:
        if self._listener is not None and not self._listener.stopped:
            logger.debug(f"Stopping previous listener: {self._listener.description}")
            self._listener.stop()

        try:
            path, collection = self._collection()
            target = self._build_query(path, collection, query)
        except DataSyncError as e:
            self._listener = ChangeListener(self._decode, failure=e)
            return self._listener.outputs

        self._listener = ChangeListener(
            functools.partial(self._decode_with_path, path),
            open_watch=target.on_snapshot,
            description=f"collection changes {path}",
        )
        return self._listener.outputs
