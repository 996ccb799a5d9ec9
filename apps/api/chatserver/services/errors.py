"""Failures raised while handling realtime events.

Each error is turned into a directed ``error`` event for the originating
connection; none of them terminate the socket or the process.
"""
from __future__ import annotations


class RelayError(Exception):
    """Base class for failures reported back to the sender."""

    code = "internal_error"
    default_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class Unauthenticated(RelayError):
    """The connection acted before binding an identity with ``join``."""

    code = "unauthenticated"
    default_message = "User not authenticated"


class ValidationFailed(RelayError):
    code = "validation_error"
    default_message = "Invalid event payload"


class NotFound(RelayError):
    code = "not_found"
    default_message = "Target not found"


class PersistenceFailure(RelayError):
    """The store rejected or failed a read/write; nothing was broadcast."""

    code = "persistence_failure"
    default_message = "Failed to persist message"
