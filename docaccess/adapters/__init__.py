# docaccess - Adapters
# Concrete implementations of the ports

from docaccess.adapters.clock import FrozenClock, SystemClock
from docaccess.adapters.memory_store import InMemoryStorage
from docaccess.adapters.mongo_store import MongoStorage

__all__ = [
    "FrozenClock",
    "InMemoryStorage",
    "MongoStorage",
    "SystemClock",
]
