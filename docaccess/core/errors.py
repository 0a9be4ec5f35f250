"""
Data access error taxonomy.

Every failure surfaced by the service layer is a ServiceError subclass
carrying a stable machine-readable code.

Key behaviors:
- NotFoundError: target or parent record absent
- InvalidCursorError: malformed pagination token, raised before any query
- ParseError: value does not fit the store's document shape, raised before
  any mutation
- ServiceConnectionError: named collection unresolvable or backend unreachable
- UnknownServiceError: any other backend failure, original kept as the cause
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base data access error."""

    code = "service_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(ServiceError):
    """Target or parent record does not exist."""

    code = "not_found"


class InvalidCursorError(ServiceError):
    """Pagination token could not be decoded."""

    code = "invalid_cursor"

    def __init__(self, cursor: str, reason: str = "") -> None:
        self.cursor = cursor
        self.reason = reason
        msg = f"Invalid cursor - unable to parse: {cursor!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class ParseError(ServiceError):
    """Value could not be converted to or from a stored document."""

    code = "parse_error"


class ServiceConnectionError(ServiceError):
    """Named data source is not registered or cannot be reached."""

    code = "connection_error"


class UnknownServiceError(ServiceError):
    """Uncategorized backend failure."""

    code = "unknown"

    def __init__(self, message: str, original: BaseException | None = None) -> None:
        self.original = original
        super().__init__(message)

    @classmethod
    def wrap(cls, exc: BaseException) -> UnknownServiceError:
        err = cls(str(exc) or type(exc).__name__, original=exc)
        err.__cause__ = exc
        return err


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """
    Translate failures raised by a storage call.

    ServiceErrors pass through unchanged; anything else becomes an
    UnknownServiceError chained to the original exception.
    """
    try:
        yield
    except ServiceError:
        raise
    except Exception as e:
        logger.warning("Storage operation %s failed: %s", operation, e)
        raise UnknownServiceError.wrap(e) from e
