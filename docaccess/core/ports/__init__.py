# docaccess - Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from docaccess.core.ports.clock import ClockPort
from docaccess.core.ports.storage import (
    Document,
    Filter,
    SortSpec,
    StorageAccessorPort,
)

__all__ = [
    "ClockPort",
    "Document",
    "Filter",
    "SortSpec",
    "StorageAccessorPort",
]
