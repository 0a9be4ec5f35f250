"""
Data access component - Audited CRUD, search and pagination for one collection.
"""

from ._impl import (
    DEFAULT_CONFIG,
    DataAccessService,
    ServiceConfig,
    build_search_filter,
    snake_case,
)

__all__ = [
    "DataAccessService",
    "ServiceConfig",
    "DEFAULT_CONFIG",
    "build_search_filter",
    "snake_case",
]
