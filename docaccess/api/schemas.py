from collections.abc import Mapping
from datetime import datetime
from typing import Any

from bson import ObjectId
from pydantic import BaseModel

from docaccess.components.pagination import Page
from docaccess.domain.identifier import Identifier
from docaccess.domain.results import DeleteResponse


def to_wire_value(value: Any) -> Any:
    """Stored value -> JSON-friendly value (ids in their wire form)."""
    if isinstance(value, Identifier):
        return value.to_wire()
    if isinstance(value, ObjectId):
        return Identifier.native(value).to_wire()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, Mapping):
        return {str(k): to_wire_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire_value(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value


# --- Errors ---
class ErrorBody(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Body of every error response."""

    detail: ErrorBody


# --- Pages ---
class PageInfoResponse(BaseModel):
    has_next_page: bool
    has_previous_page: bool
    start_cursor: str | None = None
    end_cursor: str | None = None


class EdgeResponse(BaseModel):
    cursor: str
    node: dict[str, Any]


class PageResponse(BaseModel):
    edges: list[EdgeResponse]
    page_info: PageInfoResponse

    @classmethod
    def from_page(cls, page: Page[Any]) -> "PageResponse":
        info = page.page_info
        return cls(
            edges=[EdgeResponse(cursor=e.cursor, node=to_wire_value(e.node)) for e in page.edges],
            page_info=PageInfoResponse(
                has_next_page=info.has_next_page,
                has_previous_page=info.has_previous_page,
                start_cursor=info.start_cursor,
                end_cursor=info.end_cursor,
            ),
        )


# --- Deletes ---
class DeleteResponseModel(BaseModel):
    id: str | int
    success: bool

    @classmethod
    def from_result(cls, result: DeleteResponse) -> "DeleteResponseModel":
        return cls(id=result.id.to_wire(), success=result.success)
