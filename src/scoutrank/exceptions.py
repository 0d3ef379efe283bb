"""Errors raised by the resolution, merge and rating services."""

from typing import Any


class NotFoundError(ValueError):
    """
    A referenced player, competition, conflict or review item does not exist.

    Subclasses ValueError so callers that already guard lookups with
    ``except ValueError`` keep working.
    """

    def __init__(self, entity: str, key: Any):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")
