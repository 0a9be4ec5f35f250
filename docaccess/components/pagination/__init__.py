"""
Pagination component - Keyset (cursor) pagination.
"""

from .component import (
    build_keyset_filter,
    combine_filters,
    get_path,
    run_paginate,
    sort_key_values,
)
from .models import (
    ASCENDING,
    DEFAULT_LIMIT,
    DESCENDING,
    Edge,
    Page,
    PageInfo,
    PageRequest,
    SortInput,
    SortKey,
    normalize_sort,
)

__all__ = [
    # Entry points
    "run_paginate",
    # Input models
    "PageRequest",
    "SortInput",
    "SortKey",
    "normalize_sort",
    # Output models
    "Edge",
    "Page",
    "PageInfo",
    # Helpers
    "build_keyset_filter",
    "combine_filters",
    "get_path",
    "sort_key_values",
    # Constants
    "ASCENDING",
    "DESCENDING",
    "DEFAULT_LIMIT",
]
