__version__ = "0.3.1"

# Errors (zero dependencies)
from .exceptions import (
    DataSyncError,
    PathUnavailable,
    NotFound,
    SerializationFailure,
    BackendFailure,
)

# Entities
from .models import DataSyncModel, SyncModel, DocumentRecord

# Paths
from .paths import CollectionPath, PathProvider, resolve_path

# Queries
from .query import FilterOperator, QueryBuilder, translate_query

# Live streams
from .listeners import ChangeType, CollectionUpdates, DocumentChange, StreamChannel

# Settings
from .settings import DataSyncSettings, FirestoreSettings, ServiceSettings, load_settings

# Services
from .services import (
    RemoteDocumentService,
    RemoteCollectionService,
    FirestoreDocumentService,
    FirestoreCollectionService,
    DocumentServices,
    CollectionServices,
    create_document_services,
    create_collection_services,
    create_services_from_settings,
)

__all__ = [
    "__version__",
    "DataSyncError",
    "PathUnavailable",
    "NotFound",
    "SerializationFailure",
    "BackendFailure",
    "DataSyncModel",
    "SyncModel",
    "DocumentRecord",
    "CollectionPath",
    "PathProvider",
    "resolve_path",
    "FilterOperator",
    "QueryBuilder",
    "translate_query",
    "ChangeType",
    "CollectionUpdates",
    "DocumentChange",
    "StreamChannel",
    "DataSyncSettings",
    "FirestoreSettings",
    "ServiceSettings",
    "load_settings",
    "RemoteDocumentService",
    "RemoteCollectionService",
    "FirestoreDocumentService",
    "FirestoreCollectionService",
    "DocumentServices",
    "CollectionServices",
    "create_document_services",
    "create_collection_services",
    "create_services_from_settings",
]
