from datetime import UTC, datetime

import pytest

from docaccess.adapters import FrozenClock, InMemoryStorage
from docaccess.components.data_access import DataAccessService

FROZEN_NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at FROZEN_NOW."""
    return FrozenClock(FROZEN_NOW)


@pytest.fixture
def storage() -> InMemoryStorage:
    """Empty in-memory collection."""
    return InMemoryStorage()


@pytest.fixture
def service(storage: InMemoryStorage, clock: FrozenClock) -> DataAccessService:
    """Service over the in-memory collection with a frozen clock."""
    return DataAccessService(storage, clock=clock)
