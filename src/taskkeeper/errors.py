# src/taskkeeper/errors.py

"""
Error hierarchy for taskkeeper.

Every failure the core raises derives from TaskKeeperError, so connectors can
catch one type, print the message and keep going.
"""

from __future__ import annotations

from typing import Any


class TaskKeeperError(Exception):
    """Base exception for all taskkeeper errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        return self.message


class ValidationError(TaskKeeperError):
    """Invalid input: missing/invalid field, bad id, duplicate name, unknown epic."""


class NotFoundError(TaskKeeperError):
    """The operation targets an id absent from the relevant collection."""


class ConflictError(TaskKeeperError):
    """A proposed time interval overlaps an existing reservation."""

    def __init__(
        self,
        message: str,
        conflicting_id: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context)
        self.conflicting_id = conflicting_id


class PersistenceError(TaskKeeperError):
    """Backing storage could not be read or written."""


class StorageFormatError(PersistenceError):
    """Stored data is malformed or violates task invariants."""
