from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SortField(BaseModel):
    field: str = Field(min_length=1)
    direction: Literal[1, -1] = 1

    @field_validator("direction", mode="before")
    @classmethod
    def _named_direction(cls, value: object) -> object:
        if isinstance(value, str):
            return {"asc": 1, "desc": -1}.get(value.lower(), value)
        return value


class CollectionSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    collection: str = Field(min_length=1)
    default_sort: list[SortField] = Field(default_factory=list)
    default_filter: dict[str, Any] | None = None
    default_limit: int = Field(default=25, ge=1)
    id_field: str = "_id"
    embedded_id_field: str = "id"
    search_fields: list[str] = Field(default_factory=list)

    def sort_pairs(self) -> tuple[tuple[str, int], ...]:
        if not self.default_sort:
            return ((self.id_field, 1),)
        return tuple((s.field, s.direction) for s in self.default_sort)


class DataAccessSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: int = 1
    collections: dict[str, CollectionSettings] = Field(default_factory=dict)

    @field_validator("collections")
    @classmethod
    def _names_not_blank(
        cls, value: dict[str, CollectionSettings]
    ) -> dict[str, CollectionSettings]:
        for name in value:
            if not name.strip():
                raise ValueError("collection names must not be blank")
        return value
