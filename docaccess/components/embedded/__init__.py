"""
Embedded component - Items stored in a parent document's array field.
"""

from .component import (
    run_delete_embedded,
    run_find_embedded,
    run_get_embedded,
    run_insert_embedded,
    run_update_embedded,
    validate_field_path,
)
from .models import (
    DEFAULT_FIELDS,
    DeleteEmbeddedInput,
    EmbeddedFields,
    FindEmbeddedInput,
    GetEmbeddedInput,
    InsertEmbeddedInput,
    UpdateEmbeddedInput,
)

__all__ = [
    # Entry points
    "run_delete_embedded",
    "run_find_embedded",
    "run_get_embedded",
    "run_insert_embedded",
    "run_update_embedded",
    # Input models
    "DeleteEmbeddedInput",
    "FindEmbeddedInput",
    "GetEmbeddedInput",
    "InsertEmbeddedInput",
    "UpdateEmbeddedInput",
    # Field layout
    "DEFAULT_FIELDS",
    "EmbeddedFields",
    "validate_field_path",
]
