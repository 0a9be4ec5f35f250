from docaccess.api.routes import (
    build_collection_router,
    datasource_dependency,
    parse_sort,
    to_http_error,
)

__all__ = [
    "build_collection_router",
    "datasource_dependency",
    "parse_sort",
    "to_http_error",
]
