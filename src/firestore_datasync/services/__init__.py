"""
Firestore remote services for the synchronization engine.

Provides the two remote contracts and their Firestore implementations,
plus service bundles that pair a remote service with the key the caller's
local persistence uses to store its copy.

Example:
    >>> from firestore_datasync.services import create_collection_services
    >>>
    >>> # Static path
    >>> products = create_collection_services(Product, "products", manager_key="products")
    >>>
    >>> # Dynamic path, unavailable until sign-in
    >>> favorites = create_collection_services(
    ...     Favorite,
    ...     lambda: auth.uid and f"users/{auth.uid}/favorites",
    ...     manager_key="favorites",
    ... )
    >>> await favorites.remote.get_collection()
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from ..paths import PathProvider
from ..settings import DataSyncSettings, FirestoreSettings, ServiceKind
from .base import RemoteCollectionService, RemoteDocumentService
from .collection import FirestoreCollectionService
from .document import FirestoreDocumentService, backend_errors

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class DocumentServices(Generic[T]):
    """Remote document service plus the local persistence key (opaque here)."""

    remote: RemoteDocumentService[T]
    manager_key: Optional[str] = None


@dataclass(frozen=True)
class CollectionServices(Generic[T]):
    """Remote collection service plus the local persistence key (opaque here)."""

    remote: RemoteCollectionService[T]
    manager_key: Optional[str] = None


def create_document_services(
    model: Type[T],
    collection_path: PathProvider,
    manager_key: Optional[str] = None,
    client: Any = None,
    settings: Optional[FirestoreSettings] = None,
) -> DocumentServices[T]:
    """
    Build a DocumentServices bundle.

    Args:
        model: Entity class.
        collection_path: Fixed path (e.g. "users") or a callable returning
            the path, or None while unavailable.
        manager_key: Key for the caller's local persistence.
        client: Optional injected Firestore client.
        settings: Connection settings used when ``client`` is None.
    """
    remote = FirestoreDocumentService(model, collection_path, client=client, settings=settings)
    return DocumentServices(remote=remote, manager_key=manager_key)


def create_collection_services(
    model: Type[T],
    collection_path: PathProvider,
    manager_key: Optional[str] = None,
    client: Any = None,
    settings: Optional[FirestoreSettings] = None,
) -> CollectionServices[T]:
    """Build a CollectionServices bundle. Arguments as for create_document_services."""
    remote = FirestoreCollectionService(model, collection_path, client=client, settings=settings)
    return CollectionServices(remote=remote, manager_key=manager_key)


def create_services_from_settings(
    settings: DataSyncSettings,
    models: Dict[str, Type[Any]],
    client: Any = None,
) -> Dict[str, Any]:
    """
    Build every service declared in a settings file.

    Args:
        settings: Parsed settings (see settings.load_settings).
        models: Entity class per declared service name.
        client: Optional injected Firestore client shared by all services.

    Returns:
        Mapping of service name to DocumentServices / CollectionServices.

    Raises:
        KeyError: If a declared service has no entry in ``models``.
    """
    services: Dict[str, Any] = {}
    for name, service in settings.services.items():
        if name not in models:
            raise KeyError(f"No model registered for service '{name}'")
        factory = (
            create_document_services
            if service.kind == ServiceKind.DOCUMENT
            else create_collection_services
        )
        services[name] = factory(
            models[name],
            service.collection_path,
            manager_key=service.resolved_manager_key,
            client=client,
            settings=settings.firestore,
        )
        logger.debug(f"Created {service.kind.value} service '{name}' at {service.collection_path}")
    return services


__all__ = [
    # Contracts
    "RemoteDocumentService",
    "RemoteCollectionService",
    # Firestore implementations
    "FirestoreDocumentService",
    "FirestoreCollectionService",
    "backend_errors",
    # Bundles
    "DocumentServices",
    "CollectionServices",
    "create_document_services",
    "create_collection_services",
    "create_services_from_settings",
]
