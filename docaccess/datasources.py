"""
DataSources - Named registry of data access services.

Applications register one DataAccessService per collection at startup and
resolve them by name at request time.

Key behaviors:
- Unknown names raise ServiceConnectionError
- Registering an existing name replaces the previous service
- from_settings builds MongoStorage-backed services for every configured
  collection of an already-open database handle
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pymongo.collection import Collection
from pymongo.database import Database

from docaccess.adapters.mongo_store import MongoStorage
from docaccess.components.data_access import DataAccessService, ServiceConfig
from docaccess.config.models import CollectionSettings, DataAccessSettings
from docaccess.core.errors import ServiceConnectionError
from docaccess.core.ports import ClockPort

logger = logging.getLogger(__name__)


def config_from_settings(settings: CollectionSettings) -> ServiceConfig:
    return ServiceConfig(
        default_limit=settings.default_limit,
        id_field=settings.id_field,
        embedded_id_field=settings.embedded_id_field,
        default_sort=settings.sort_pairs(),
        default_filter=settings.default_filter,
    )


class DataSources:
    """Registry of services keyed by name."""

    def __init__(self) -> None:
        self._services: dict[str, DataAccessService] = {}
        self._search_fields: dict[str, list[str]] = {}

    def register(
        self,
        name: str,
        service: DataAccessService,
        search_fields: Sequence[str] = (),
    ) -> DataAccessService:
        if name in self._services:
            logger.info("Replacing data source %s", name)
        self._services[name] = service
        self._search_fields[name] = list(search_fields)
        return service

    def create_mongo_service(
        self,
        name: str,
        collection: Collection[Any],
        default_sort: Mapping[str, int] | Sequence[tuple[str, int]] | None = None,
        clock: ClockPort | None = None,
    ) -> DataAccessService:
        """Register a service over a pymongo collection."""
        config = ServiceConfig()
        if default_sort:
            pairs = default_sort.items() if isinstance(default_sort, Mapping) else default_sort
            config = ServiceConfig(default_sort=tuple((f, d) for f, d in pairs))
        service = DataAccessService(MongoStorage(collection), clock=clock, config=config)
        return self.register(name, service)

    @classmethod
    def from_settings(
        cls,
        settings: DataAccessSettings,
        database: Database[Any],
        clock: ClockPort | None = None,
    ) -> DataSources:
        sources = cls()
        for name, entry in settings.collections.items():
            service = DataAccessService(
                MongoStorage(database[entry.collection]),
                clock=clock,
                config=config_from_settings(entry),
            )
            sources.register(name, service, search_fields=entry.search_fields)
        logger.info("Configured %d data source(s)", len(sources.names()))
        return sources

    def get_service(self, name: str) -> DataAccessService:
        """
        Resolve a service by name.

        Raises:
            ServiceConnectionError: no service registered under `name`
        """
        try:
            return self._services[name]
        except KeyError:
            raise ServiceConnectionError(f"Unable to connect to collection {name}") from None

    def search_fields(self, name: str) -> list[str]:
        """Configured default search fields for `name` ([] when none)."""
        self.get_service(name)
        return list(self._search_fields.get(name, []))

    def names(self) -> list[str]:
        return sorted(self._services)

    def __contains__(self, name: object) -> bool:
        return name in self._services
