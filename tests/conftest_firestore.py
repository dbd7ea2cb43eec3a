"""
Shared fixtures for remote service tests.

Provides an in-memory stand-in for the subset of the google-cloud-firestore
client the services use:

- client.collection(path) -> query with where/order_by/limit/limit_to_last/cursors
- query.document(id) -> get / set(merge) / update / delete / on_snapshot
- query.get(), query.stream() and query.on_snapshot(callback); like the SDK,
  stream() refuses limit_to_last queries

Listeners fire synchronously on the writing thread, mirroring the SDK's
callback-on-another-thread contract closely enough for the asyncio bridge.
Every backend call is recorded in ``FakeFirestore.calls``.
"""

import asyncio
import copy
import threading
import time
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from google.api_core import exceptions as api_exceptions


# =============================================================================
# SNAPSHOTS AND CHANGES
# =============================================================================


class FakeSnapshot:
    """DocumentSnapshot lookalike."""

    def __init__(self, doc_id: str, data: Optional[Dict[str, Any]]):
        self.id = doc_id
        self.exists = data is not None
        self._data = copy.deepcopy(data)

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data) if self.exists else None


def make_change(type_name: str, doc_id: str, data: Optional[Dict[str, Any]] = None) -> Any:
    """DocumentChange lookalike: ``.type.name`` and ``.document``."""
    return SimpleNamespace(
        type=SimpleNamespace(name=type_name),
        document=FakeSnapshot(doc_id, data if data is not None else {}),
    )


class FakeWatch:
    """Watch lookalike returned by on_snapshot()."""

    def __init__(self, store: "FakeFirestore", target: Any, callback: Callable):
        self.store = store
        self.target = target
        self.callback = callback
        self.unsubscribed = False
        self.known: Dict[str, Dict[str, Any]] = {}

    def unsubscribe(self) -> None:
        self.unsubscribed = True
        self.store._remove_watch(self)


# =============================================================================
# QUERY EVALUATION
# =============================================================================

_MISSING = object()


def _compare(op: str, actual: Any, expected: Any) -> bool:
    try:
        if op == "==":
            return actual == expected
        if op == "!=":
            return actual != expected
        if op == "<":
            return actual < expected
        if op == "<=":
            return actual <= expected
        if op == ">":
            return actual > expected
        if op == ">=":
            return actual >= expected
        if op == "array_contains":
            return isinstance(actual, list) and expected in actual
        if op == "array_contains_any":
            return isinstance(actual, list) and any(item in actual for item in expected)
        if op == "in":
            return actual in expected
        if op == "not-in":
            return actual not in expected
    except TypeError:
        return False
    raise ValueError(f"Unsupported operator: {op}")


class FakeDocumentRef:
    def __init__(self, store: "FakeFirestore", path: str, doc_id: str):
        self._store = store
        self.path = path
        self.id = doc_id

    def get(self) -> FakeSnapshot:
        self._store._record("get", self.path, self.id)
        return FakeSnapshot(self.id, self._store._read(self.path, self.id))

    def set(self, data: Dict[str, Any], merge: bool = False) -> None:
        self._store._record("set", self.path, self.id)
        existing = self._store._read(self.path, self.id)
        if merge and existing is not None:
            new_data = _deep_merge(existing, data)
        else:
            new_data = copy.deepcopy(data)
        self._store._write(self.path, self.id, new_data)

    def update(self, data: Dict[str, Any]) -> None:
        self._store._record("update", self.path, self.id)
        existing = self._store._read(self.path, self.id)
        if existing is None:
            raise api_exceptions.NotFound(f"No document to update: {self.path}/{self.id}")
        existing.update(copy.deepcopy(data))
        self._store._write(self.path, self.id, existing)

    def delete(self) -> None:
        self._store._record("delete", self.path, self.id)
        self._store._write(self.path, self.id, None)

    def on_snapshot(self, callback: Callable) -> FakeWatch:
        self._store._record("listen", self.path, self.id)
        watch = FakeWatch(self._store, self, callback)
        self._store._add_watch(watch)
        callback([self._snapshot()], [], None)
        return watch

    def _snapshot(self) -> FakeSnapshot:
        return FakeSnapshot(self.id, self._store._read(self.path, self.id))


def _deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class FakeQuery:
    """CollectionReference / Query lookalike. Immutable: every builder call returns a copy."""

    def __init__(self, store: "FakeFirestore", path: str):
        self._store = store
        self.path = path
        self.filters: List[Tuple[str, str, Any]] = []
        self.orders: List[Tuple[str, str]] = []
        self.limit_count: Optional[int] = None
        self.limit_to_last_count: Optional[int] = None
        self.cursors: List[Tuple[str, List[Any]]] = []

    def _copy(self) -> "FakeQuery":
        clone = FakeQuery(self._store, self.path)
        clone.filters = list(self.filters)
        clone.orders = list(self.orders)
        clone.limit_count = self.limit_count
        clone.limit_to_last_count = self.limit_to_last_count
        clone.cursors = list(self.cursors)
        return clone

    def document(self, doc_id: str) -> FakeDocumentRef:
        if "/" in doc_id:
            raise ValueError(f"Invalid document id: {doc_id}")
        return FakeDocumentRef(self._store, self.path, doc_id)

    def where(self, filter=None) -> "FakeQuery":
        clone = self._copy()
        clone.filters.append((filter.field_path, filter.op_string, filter.value))
        return clone

    def order_by(self, field: str, direction: str = "ASCENDING") -> "FakeQuery":
        clone = self._copy()
        clone.orders.append((field, direction))
        return clone

    def limit(self, count: int) -> "FakeQuery":
        clone = self._copy()
        clone.limit_count, clone.limit_to_last_count = count, None
        return clone

    def limit_to_last(self, count: int) -> "FakeQuery":
        if not self.orders:
            raise ValueError("limit_to_last requires at least one order_by")
        clone = self._copy()
        clone.limit_to_last_count, clone.limit_count = count, None
        return clone

    def _cursor(self, kind: str, values: List[Any]) -> "FakeQuery":
        clone = self._copy()
        clone.cursors.append((kind, list(values)))
        return clone

    def start_at(self, values):
        return self._cursor("start_at", values)

    def start_after(self, values):
        return self._cursor("start_after", values)

    def end_at(self, values):
        return self._cursor("end_at", values)

    def end_before(self, values):
        return self._cursor("end_before", values)

    def _results(self) -> List[FakeSnapshot]:
        if self.cursors:
            raise NotImplementedError("FakeQuery does not evaluate cursors")
        docs = self._store._documents(self.path)
        matching = []
        for doc_id, data in docs.items():
            ok = all(
                data.get(field, _MISSING) is not _MISSING and _compare(op, data.get(field), value)
                for field, op, value in self.filters
            )
            ok = ok and all(field in data for field, _ in self.orders)
            if ok:
                matching.append((doc_id, data))
        for field, direction in reversed(self.orders):
            matching.sort(key=lambda item: item[1][field], reverse=direction == "DESCENDING")
        if self.limit_count is not None:
            matching = matching[: self.limit_count]
        if self.limit_to_last_count is not None:
            matching = matching[-self.limit_to_last_count :]
        return [FakeSnapshot(doc_id, data) for doc_id, data in matching]

    def stream(self):
        if self.limit_to_last_count is not None:
            raise ValueError(
                "Query results for queries that include limit_to_last() "
                "constraints cannot be streamed. Use Query.get() instead."
            )
        self._store._record("query", self.path, None)
        return iter(self._results())

    def get(self) -> List[FakeSnapshot]:
        self._store._record("query", self.path, None)
        return self._results()

    def on_snapshot(self, callback: Callable) -> FakeWatch:
        self._store._record("listen", self.path, None)
        watch = FakeWatch(self._store, self, callback)
        docs = self._results()
        watch.known = {snap.id: snap.to_dict() for snap in docs}
        self._store._add_watch(watch)
        callback(docs, [make_change("ADDED", snap.id, snap.to_dict()) for snap in docs], None)
        return watch


# =============================================================================
# CLIENT
# =============================================================================


class FakeFirestore:
    """
    In-memory Firestore client.

    Attributes:
        calls: (operation, path, document_id) for every backend call
        errors: operation name -> exception raised by the next such call
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._watches: List[FakeWatch] = []
        self._lock = threading.RLock()
        self.calls: List[Tuple[str, str, Optional[str]]] = []
        self.errors: Dict[str, Exception] = {}

    def collection(self, path: str) -> FakeQuery:
        if len(path.strip("/").split("/")) % 2 == 0:
            raise ValueError(f"A collection path needs an odd number of segments: {path}")
        self._record("collection", path, None)
        return FakeQuery(self, path)

    # -- test helpers -------------------------------------------------------

    def seed(self, path: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Store a document without recording a call."""
        self._write(path, doc_id, copy.deepcopy(data))

    def data(self, path: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self._read(path, doc_id)

    def push_changes(self, path: str, changes: List[Tuple[str, str, Optional[Dict[str, Any]]]]) -> None:
        """Deliver raw (type, id, data) change events to collection watches on ``path``."""
        events = [make_change(type_name, doc_id, data) for type_name, doc_id, data in changes]
        for watch in self.active_watches(path):
            if isinstance(watch.target, FakeQuery):
                watch.callback([], events, None)

    def active_watches(self, path: str) -> List[FakeWatch]:
        with self._lock:
            return [w for w in self._watches if w.target.path == path]

    def count_calls(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)

    # -- internals ----------------------------------------------------------

    def _record(self, operation: str, path: str, doc_id: Optional[str]) -> None:
        with self._lock:
            self.calls.append((operation, path, doc_id))
            error = self.errors.pop(operation, None)
        if error is not None:
            raise error

    def _documents(self, path: str) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._collections.get(path, {}))

    def _read(self, path: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._collections.get(path, {}).get(doc_id))

    def _write(self, path: str, doc_id: str, data: Optional[Dict[str, Any]]) -> None:
        with self._lock:
            collection = self._collections.setdefault(path, {})
            if data is None:
                collection.pop(doc_id, None)
            else:
                collection[doc_id] = data
            watches = [w for w in self._watches if w.target.path == path]
        for watch in watches:
            self._notify(watch, doc_id)

    def _notify(self, watch: FakeWatch, doc_id: str) -> None:
        target = watch.target
        if isinstance(target, FakeDocumentRef):
            if target.id == doc_id:
                watch.callback([target._snapshot()], [], None)
            return

        docs = target._results()
        current = {snap.id: snap.to_dict() for snap in docs}
        changes = []
        for snap in docs:
            if snap.id not in watch.known:
                changes.append(make_change("ADDED", snap.id, current[snap.id]))
            elif watch.known[snap.id] != current[snap.id]:
                changes.append(make_change("MODIFIED", snap.id, current[snap.id]))
        for known_id, known_data in watch.known.items():
            if known_id not in current:
                changes.append(make_change("REMOVED", known_id, known_data))
        watch.known = current
        if changes:
            watch.callback(docs, changes, None)

    def _add_watch(self, watch: FakeWatch) -> None:
        with self._lock:
            self._watches.append(watch)

    def _remove_watch(self, watch: FakeWatch) -> None:
        with self._lock:
            if watch in self._watches:
                self._watches.remove(watch)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def fake_firestore():
    """Fresh in-memory Firestore client."""
    return FakeFirestore()


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` from inside the event loop until it holds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.01)


async def next_item(stream, timeout: float = 2.0):
    """Await the next item of an async iterator with a timeout."""
    return await asyncio.wait_for(stream.__anext__(), timeout)
