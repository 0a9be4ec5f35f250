"""
docaccess - Generic data access over a document store.

Keyset pagination, polymorphic identifiers, audited records and atomic
embedded-array CRUD behind one service per collection.
"""

from docaccess.adapters import FrozenClock, InMemoryStorage, MongoStorage, SystemClock
from docaccess.components.data_access import DataAccessService, ServiceConfig
from docaccess.components.pagination import Edge, Page, PageInfo
from docaccess.core.errors import (
    InvalidCursorError,
    NotFoundError,
    ParseError,
    ServiceConnectionError,
    ServiceError,
    UnknownServiceError,
)
from docaccess.datasources import DataSources
from docaccess.domain.identifier import Identifier, IdKind
from docaccess.domain.node import AuditedModel, EmbeddedModel, NodeDetails
from docaccess.domain.results import DeleteResponse

__all__ = [
    # Service
    "DataAccessService",
    "DataSources",
    "ServiceConfig",
    # Domain
    "AuditedModel",
    "DeleteResponse",
    "EmbeddedModel",
    "Identifier",
    "IdKind",
    "NodeDetails",
    # Pages
    "Edge",
    "Page",
    "PageInfo",
    # Adapters
    "FrozenClock",
    "InMemoryStorage",
    "MongoStorage",
    "SystemClock",
    # Errors
    "InvalidCursorError",
    "NotFoundError",
    "ParseError",
    "ServiceConnectionError",
    "ServiceError",
    "UnknownServiceError",
]
