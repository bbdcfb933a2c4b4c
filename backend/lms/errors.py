"""Error types raised by the service and repository layers."""

from typing import Any


class LMSError(Exception):
    """Base class for errors surfaced to callers of the service layer."""


class NotFoundError(LMSError):
    """A referenced record does not exist."""

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ValidationError(LMSError):
    """Input was rejected before any write happened."""


class StorageError(LMSError):
    """The persistence layer failed during a read or write."""
