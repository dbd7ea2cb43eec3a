"""
Live snapshot listeners as asyncio streams.

The Firestore SDK delivers ``on_snapshot`` callbacks on its own watch thread.
A ``SnapshotListener`` owns one such watch plus one asyncio task that
consumes the callbacks (marshalled onto the event loop with
``call_soon_threadsafe``) and pushes results into one or more
``StreamChannel`` outputs.

Lifecycle:
    - The task starts lazily, on the first ``__anext__`` of any channel.
    - Closing any channel (``aclose()`` or leaving ``async with``) cancels
      the task and unsubscribes the watch; every other channel of the same
      listener then ends with StopAsyncIteration.
    - Cancelling a task blocked in ``__anext__`` stops the listener the same way.
    - Unsubscribing runs in the default executor, like opening the watch.
    - A failure while handling a snapshot ends every channel with that error.
    - A listener created with ``failure=`` never opens a watch; its channels
      raise the failure on first read.

Example:
    >>> updates, deletions = service.stream_collection_updates()
    >>> async with updates:
    ...     async for product in updates:
    ...         cache[product.id] = product
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, NamedTuple, Optional, Sequence, TypeVar

from .exceptions import BackendFailure, DataSyncError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Opens a watch for the given callback and returns an object with unsubscribe()
WatchOpener = Callable[[Callable[..., None]], Any]

_END = object()


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: BaseException):
        self.error = error


class ChangeType(str, Enum):
    """Classification of one document change reported by a listener."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class DocumentChange:
    """One backend-reported mutation of a document in a watched collection."""

    document_id: str
    data: Optional[Dict[str, Any]]
    change_type: ChangeType

    @classmethod
    def from_firestore(cls, change: Any) -> "DocumentChange":
        """Build from a google.cloud.firestore_v1.watch.DocumentChange."""
        snapshot = change.document
        return cls(
            document_id=snapshot.id,
            data=snapshot.to_dict(),
            change_type=ChangeType[change.type.name],
        )


class StreamChannel(Generic[T]):
    """
    One consumable output of a SnapshotListener.

    An async iterator fed by the listener task. Items are delivered in the
    order the listener pushed them; the terminal marker (end or error) is
    delivered after every item pushed before it.
    """

    def __init__(self, name: str):
        self.name = name
        self._queue: asyncio.Queue = asyncio.Queue()
        self._listener: Optional["SnapshotListener"] = None
        self._finished = False
        self._exhausted = False

    def _push(self, item: T) -> None:
        if not self._finished:
            self._queue.put_nowait(item)

    def _finish(self, error: Optional[BaseException] = None) -> None:
        if self._finished:
            return
        self._finished = True
        self._queue.put_nowait(_END if error is None else _Failure(error))

    @property
    def finished(self) -> bool:
        """True once no further items will be pushed."""
        return self._finished

    def __aiter__(self) -> "StreamChannel[T]":
        return self

    async def __anext__(self) -> T:
        if self._exhausted:
            raise StopAsyncIteration
        if self._listener is not None:
            self._listener.start()
        try:
            item = await self._queue.get()
        except asyncio.CancelledError:
            # Consumer cancelled: tear down the shared listener
            self._exhausted = True
            if self._listener is not None:
                self._listener.stop()
            raise
        if item is _END:
            self._exhausted = True
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self._exhausted = True
            raise item.error
        return item

    async def aclose(self) -> None:
        """Stop consuming; cancels the listener shared by all sibling channels."""
        self._exhausted = True
        if self._listener is not None:
            await self._listener.cancel()

    async def __aenter__(self) -> "StreamChannel[T]":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"StreamChannel({self.name!r}, finished={self._finished})"


class SnapshotListener:
    """
    One Firestore watch, one consuming task, N output channels.

    Subclasses implement ``handle_snapshot(docs, changes, read_time)``, which
    runs on the event loop for every callback the watch delivers.
    """

    def __init__(
        self,
        channels: Sequence[StreamChannel],
        open_watch: Optional[WatchOpener] = None,
        failure: Optional[DataSyncError] = None,
        description: str = "",
    ):
        self.channels: List[StreamChannel] = list(channels)
        for channel in self.channels:
            channel._listener = self
        self._open_watch = open_watch
        self._failure = failure
        self.description = description
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self) -> None:
        """Start the listener task if it has not started yet. Idempotent."""
        if self._task is not None or self._stopped:
            return
        if self._failure is not None:
            self._stopped = True
            self._finish_all(self._failure)
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """Request cancellation without waiting for the task to unwind."""
        was_stopped, self._stopped = self._stopped, True
        if self._task is not None and not self._task.done():
            # A second cancel would interrupt the unsubscribe in progress
            if not was_stopped:
                self._task.cancel()
        else:
            self._finish_all()

    async def cancel(self) -> None:
        """Cancel the listener and wait until its watch is unsubscribed."""
        task = self._task
        self.stop()
        if task is not None and not task.done():
            await asyncio.wait([task])
        self._finish_all()

    def _finish_all(self, error: Optional[BaseException] = None) -> None:
        for channel in self.channels:
            channel._finish(error)

    async def handle_snapshot(self, docs: Any, changes: Any, read_time: Any) -> None:
        raise NotImplementedError

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        snapshots: asyncio.Queue = asyncio.Queue()

        def on_snapshot(*args: Any) -> None:
            # Runs on the SDK watch thread
            if not loop.is_closed():
                loop.call_soon_threadsafe(snapshots.put_nowait, args)

        opening = loop.run_in_executor(None, self._open_watch, on_snapshot)
        watch = None
        try:
            watch = await asyncio.shield(opening)
            logger.info(f"Listener started: {self.description}")
            while True:
                args = await snapshots.get()
                await self.handle_snapshot(*args)
        except DataSyncError as e:
            logger.error(f"Listener failed ({self.description}): {e}")
            self._finish_all(e)
        except Exception as e:
            logger.error(f"Listener failed ({self.description}): {e}")
            failure = BackendFailure(f"Listener failed: {e}")
            failure.__cause__ = e
            self._finish_all(failure)
        finally:
            self._stopped = True
            try:
                if watch is not None:
                    # Watch.close() joins the SDK consumer thread; keep it off the loop
                    await asyncio.shield(loop.run_in_executor(None, watch.unsubscribe))
                    logger.info(f"Listener stopped: {self.description}")
                else:
                    # Cancelled before the opened watch was handed back
                    opening.add_done_callback(_unsubscribe_when_open)
            finally:
                self._finish_all()


def _unsubscribe_when_open(opening: "asyncio.Future") -> None:
    if opening.cancelled() or opening.exception() is not None:
        return
    watch = opening.result()
    try:
        opening.get_loop().run_in_executor(None, watch.unsubscribe)
    except RuntimeError:
        # Executor already shut down with the loop
        watch.unsubscribe()


class DocumentListener(SnapshotListener):
    """Emits the decoded document (or None when absent) on every snapshot."""

    def __init__(self, decode: Callable[[str, Any], Any], **kwargs: Any):
        self.values: StreamChannel = StreamChannel("document")
        self._decode = decode
        super().__init__([self.values], **kwargs)

    async def handle_snapshot(self, docs: Any, changes: Any, read_time: Any) -> None:
        snapshot = docs[0] if docs else None
        if snapshot is None or not snapshot.exists:
            self.values._push(None)
        else:
            self.values._push(self._decode(snapshot.id, snapshot.to_dict()))


class CollectionListener(SnapshotListener):
    """
    Emits a complete, freshly fetched result list on every snapshot.

    ``fetch`` is a blocking bulk read and runs in the default executor.
    """

    def __init__(self, fetch: Callable[[], List[Any]], **kwargs: Any):
        self.snapshots: StreamChannel = StreamChannel("collection")
        self._fetch = fetch
        super().__init__([self.snapshots], **kwargs)

    async def handle_snapshot(self, docs: Any, changes: Any, read_time: Any) -> None:
        loop = asyncio.get_running_loop()
        items = await loop.run_in_executor(None, self._fetch)
        self.snapshots._push(items)


class CollectionUpdates(NamedTuple):
    """
    Paired outputs of a collection change listener.

    Unpacks like a tuple: ``updates, deletions = service.stream_collection_updates()``.
    Both channels share one listener; closing either one closes both.
    """

    updates: StreamChannel
    deletions: StreamChannel

    async def aclose(self) -> None:
        await self.updates.aclose()

    async def __aenter__(self) -> "CollectionUpdates":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class ChangeListener(SnapshotListener):
    """
    Splits document changes into two channels.

    added/modified -> ``updates`` (decoded entity)
    removed        -> ``deletions`` (document id only)
    """

    def __init__(self, decode: Callable[[str, Any], Any], **kwargs: Any):
        self.updates: StreamChannel = StreamChannel("updates")
        self.deletions: StreamChannel = StreamChannel("deletions")
        self._decode = decode
        super().__init__([self.updates, self.deletions], **kwargs)

    @property
    def outputs(self) -> CollectionUpdates:
        return CollectionUpdates(self.updates, self.deletions)

    async def handle_snapshot(self, docs: Any, changes: Any, read_time: Any) -> None:
        for change in changes or []:
            event = DocumentChange.from_firestore(change)
            if event.change_type is ChangeType.REMOVED:
                self.deletions._push(event.document_id)
            else:
                self.updates._push(self._decode(event.document_id, event.data))
