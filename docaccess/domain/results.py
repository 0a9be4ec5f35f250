"""
Operation result values.
"""

from __future__ import annotations

from dataclasses import dataclass

from docaccess.domain.identifier import Identifier


@dataclass(frozen=True)
class DeleteResponse:
    """
    Outcome of a delete.

    success=False is a valid negative result (nothing matched), not an error.
    """

    id: Identifier
    success: bool
