"""
Collection API router.

Exposes one DataAccessService over HTTP. Routes only translate between
HTTP and service calls; all behavior lives in the service.

Routes:
- GET    /                                  keyset-paginated list
- GET    /search                            substring search
- GET    /{item_id}                         single record
- PATCH  /{item_id}                         partial update (actor from X-Actor-Id)
- DELETE /{item_id}                         delete record
- GET    /{item_id}/{field}                 slice of an embedded array
- DELETE /{item_id}/{field}/{embedded_id}   delete embedded item

Errors map to HTTP with body {"detail": {code, message}}:
NotFound 404, InvalidCursor 400, Parse 422, Connection 503, Unknown 500.

Path ids are text, or native when they carry the "$oid:" marker; text ids
that start with a marker are escaped with "$txt:".
"""

from collections.abc import Callable, Sequence
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, status

from docaccess.api.schemas import (
    DeleteResponseModel,
    ErrorResponse,
    PageResponse,
    to_wire_value,
)
from docaccess.components.data_access import DataAccessService
from docaccess.components.pagination import ASCENDING, DESCENDING
from docaccess.core.errors import (
    InvalidCursorError,
    NotFoundError,
    ParseError,
    ServiceConnectionError,
    ServiceError,
)
from docaccess.datasources import DataSources
from docaccess.domain.identifier import Identifier

STATUS_BY_ERROR: dict[type[ServiceError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidCursorError: status.HTTP_400_BAD_REQUEST,
    ParseError: 422,
    ServiceConnectionError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# --- Helper Functions ---


def to_http_error(error: ServiceError) -> HTTPException:
    """Convert a ServiceError to an HTTPException."""
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, mapped in STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            code = mapped
            break
    return HTTPException(
        status_code=code,
        detail={"code": error.code, "message": error.message},
    )


def parse_sort(items: Sequence[str]) -> list[tuple[str, int]] | None:
    """Parse `field:asc|desc` query items ('asc' when omitted)."""
    if not items:
        return None
    pairs: list[tuple[str, int]] = []
    for item in items:
        field, _, direction = item.partition(":")
        direction = direction.lower() or "asc"
        if not field or direction not in ("asc", "desc"):
            raise ParseError(f"Invalid sort item {item!r}; expected field:asc|desc")
        pairs.append((field, ASCENDING if direction == "asc" else DESCENDING))
    return pairs


def parse_path_id(raw: str) -> Identifier:
    return Identifier.from_wire(raw)


def datasource_dependency(
    sources: DataSources, name: str
) -> Callable[[], DataAccessService]:
    """Dependency resolving `name` from a registry; unknown names give 503."""

    def get_service() -> DataAccessService:
        try:
            return sources.get_service(name)
        except ServiceError as e:
            raise to_http_error(e) from e

    return get_service


# --- Router ---


def build_collection_router(
    get_service: Callable[..., DataAccessService],
    search_fields: Sequence[str] = (),
) -> APIRouter:
    """
    Build a router for one collection.

    Args:
        get_service: FastAPI dependency returning the collection's service.
        search_fields: Fields searched when a request names none.
    """
    router = APIRouter(
        responses={
            400: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            422: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        }
    )
    default_search_fields = list(search_fields)

    @router.get("/", response_model=PageResponse)
    def list_items(
        after: str | None = Query(None, description="Cursor to page forward from"),
        before: str | None = Query(None, description="Cursor to page backward from"),
        limit: int | None = Query(None, description="Page size"),
        skip: int | None = Query(None, description="Rows to skip"),
        sort: list[str] = Query([], description="field:asc|desc"),
        service: DataAccessService = Depends(get_service),
    ) -> PageResponse:
        try:
            page = service.find(
                sort=parse_sort(sort),
                limit=limit,
                after=after,
                before=before,
                skip=skip,
            )
        except ServiceError as e:
            raise to_http_error(e) from e
        return PageResponse.from_page(page)

    @router.get("/search", response_model=PageResponse)
    def search_items(
        q: str = Query(..., description="Search term"),
        fields: list[str] = Query([], description="Fields to search"),
        after: str | None = Query(None),
        before: str | None = Query(None),
        limit: int | None = Query(None),
        skip: int | None = Query(None),
        sort: list[str] = Query([]),
        service: DataAccessService = Depends(get_service),
    ) -> PageResponse:
        try:
            page = service.search(
                q,
                fields or default_search_fields,
                sort=parse_sort(sort),
                limit=limit,
                after=after,
                before=before,
                skip=skip,
            )
        except ServiceError as e:
            raise to_http_error(e) from e
        return PageResponse.from_page(page)

    @router.get("/{item_id}")
    def get_item(
        item_id: str,
        service: DataAccessService = Depends(get_service),
    ) -> dict[str, Any]:
        try:
            item = service.find_one_by_id(parse_path_id(item_id))
        except ServiceError as e:
            raise to_http_error(e) from e
        if item is None:
            raise to_http_error(NotFoundError(f"Unable to find item {item_id}"))
        return to_wire_value(item)

    @router.patch("/{item_id}")
    def update_item(
        item_id: str,
        changes: dict[str, Any] = Body(...),
        x_actor_id: str | None = Header(None),
        service: DataAccessService = Depends(get_service),
    ) -> dict[str, Any]:
        try:
            actor = Identifier.from_wire(x_actor_id) if x_actor_id else None
            item = service.update_one(parse_path_id(item_id), changes, actor_id=actor)
        except ServiceError as e:
            raise to_http_error(e) from e
        return to_wire_value(item)

    @router.delete("/{item_id}", response_model=DeleteResponseModel)
    def delete_item(
        item_id: str,
        service: DataAccessService = Depends(get_service),
    ) -> DeleteResponseModel:
        try:
            result = service.delete_one_by_id(parse_path_id(item_id))
        except ServiceError as e:
            raise to_http_error(e) from e
        return DeleteResponseModel.from_result(result)

    @router.get("/{item_id}/{field}")
    def get_embedded(
        item_id: str,
        field: str,
        limit: int | None = Query(None),
        skip: int | None = Query(None),
        service: DataAccessService = Depends(get_service),
    ) -> list[dict[str, Any]]:
        try:
            items = service.get_embedded_by_id(
                parse_path_id(item_id), field, limit=limit, skip=skip
            )
        except ServiceError as e:
            raise to_http_error(e) from e
        return [to_wire_value(item) for item in items]

    @router.delete("/{item_id}/{field}/{embedded_id}", response_model=DeleteResponseModel)
    def delete_embedded(
        item_id: str,
        field: str,
        embedded_id: str,
        service: DataAccessService = Depends(get_service),
    ) -> DeleteResponseModel:
        try:
            result = service.delete_embedded(
                parse_path_id(item_id), field, parse_path_id(embedded_id)
            )
        except ServiceError as e:
            raise to_http_error(e) from e
        return DeleteResponseModel.from_result(result)

    return router
