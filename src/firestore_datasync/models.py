"""
Entity contract and Firestore codec.

Remote services are generic over an entity type that can:
- report its document identifier (``document_id()``)
- encode itself to a Firestore field map (``to_document()``)
- decode itself from a document id plus field map (``from_document()``)

``SyncModel`` implements all three on top of a pydantic model, which is
what most callers subclass:

    >>> class Product(SyncModel):
    ...     name: str
    ...     price: float = 0.0
    >>> Product(id="p1", name="Mug").to_document()
    {'id': 'p1', 'name': 'Mug', 'price': 0.0}
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Protocol, Type, TypeVar, runtime_checkable

from pydantic import BaseModel, ConfigDict, ValidationError

from .exceptions import SerializationFailure

_PRIMITIVES = (type(None), bool, int, float, str, bytes, datetime)


@runtime_checkable
class DataSyncModel(Protocol):
    """Structural type accepted by the remote services."""

    def document_id(self) -> str: ...

    def to_document(self) -> Dict[str, Any]: ...

    @classmethod
    def from_document(cls, document_id: str, data: Mapping[str, Any]) -> "DataSyncModel": ...


M = TypeVar("M", bound="SyncModel")


class SyncModel(BaseModel):
    """
    Base pydantic model for entities stored as Firestore documents.

    The ``id`` field is the document key. Fields whose value is None are
    omitted on encode so that merge writes leave the stored value alone.

    Attributes:
        id: Unique document identifier within the collection.
    """

    model_config = ConfigDict(populate_by_name=True)

    # Whether ``id`` is also written as a document field
    store_id_field: ClassVar[bool] = True

    id: str

    def document_id(self) -> str:
        return self.id

    def to_document(self) -> Dict[str, Any]:
        exclude = None if self.store_id_field else {"id"}
        data = self.model_dump(mode="python", by_alias=True, exclude_none=True, exclude=exclude)
        return encode_fields(data, document_id=self.id)

    @classmethod
    def from_document(cls: Type[M], document_id: str, data: Mapping[str, Any]) -> M:
        try:
            return cls.model_validate({**(data or {}), "id": document_id})
        except ValidationError as e:
            raise SerializationFailure(
                f"Failed to decode {cls.__name__}: {e}", document_id=document_id
            ) from e


class DocumentRecord(SyncModel):
    """Schemaless entity: keeps every stored field (used by the CLI)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)
    store_id_field: ClassVar[bool] = False


def _is_firestore_value(value: Any) -> bool:
    # GeoPoint, DocumentReference, SERVER_TIMESTAMP, Increment, ArrayUnion...
    return type(value).__module__.startswith("google.")


def encode_value(value: Any, field_path: str = "") -> Any:
    """
    Convert a Python value to something the Firestore SDK can store.

    Raises:
        SerializationFailure: If the value has no Firestore representation.
    """
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="python", by_alias=True, exclude_none=True)
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, _PRIMITIVES) or _is_firestore_value(value):
        return value
    if isinstance(value, Mapping):
        return {
            _field_key(key, field_path): encode_value(item, f"{field_path}.{key}" if field_path else str(key))
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [encode_value(item, f"{field_path}[{i}]") for i, item in enumerate(value)]
    raise SerializationFailure(
        f"Field '{field_path or '<root>'}' has unsupported type {type(value).__name__}"
    )


def _field_key(key: Any, field_path: str) -> str:
    if not isinstance(key, str):
        raise SerializationFailure(
            f"Field names must be strings, got {type(key).__name__} under '{field_path or '<root>'}'"
        )
    return key


def encode_fields(data: Mapping[str, Any], document_id: Optional[str] = None) -> Dict[str, Any]:
    """Encode a top-level field map, attaching ``document_id`` to any failure."""
    try:
        return encode_value(data)
    except SerializationFailure as e:
        e.document_id = e.document_id or document_id
        raise
