# marketplace/errors.py
"""Error taxonomy shared by the task lifecycle, the stores and the HTTP layer.

Every error carries the HTTP status the API answers with and whether the
caller may retry the same request unchanged.
"""
from __future__ import annotations
from typing import Optional


class MarketplaceError(Exception):
    status_code = 500
    retryable = False

    def __init__(self, message: str, *, operation: Optional[str] = None, entity_id=None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.entity_id = entity_id

    def with_context(self, operation: str, entity_id=None) -> "MarketplaceError":
        # keep the innermost context, stores may already have filled it in
        if self.operation is None:
            self.operation = operation
        if self.entity_id is None:
            self.entity_id = entity_id
        return self

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}[{self.entity_id}]: {self.message}"
        return self.message


class InvalidArgument(MarketplaceError):
    """A required input was missing or malformed. Raised before any write."""
    status_code = 400


class Forbidden(MarketplaceError):
    status_code = 403


class NotFound(MarketplaceError):
    status_code = 404


class StateConflict(MarketplaceError):
    """The task is not in a state that allows the requested transition."""
    status_code = 409


class VersionConflict(MarketplaceError):
    """Somebody else committed a change to the same row first."""
    status_code = 409
    retryable = True


class Transient(MarketplaceError):
    """Store, timeout or infrastructure failure."""
    status_code = 503
    retryable = True
