"""
core/errors.py
--------------
Error taxonomy for schema edits.

Design Decisions:
    * Every rejected edit raises a subclass of :class:`SchemaEditError`.
      The graph is never modified when one is raised, so callers may
      simply correct the input and retry.
    * :class:`InvariantViolation` is not a
      ``SchemaEditError``: it signals a bug in the engine and aborts the
      operation instead of being reported as a user mistake.
"""
from __future__ import annotations

from typing import Any


class SchemaEditError(Exception):
    """Base class for all non-fatal schema edit rejections."""

    code = "SCHEMA_EDIT_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(SchemaEditError):
    """Bad identifier, duplicate name or order, malformed key arity."""

    code = "VALIDATION_ERROR"

    UNKNOWN_TABLE = "UNKNOWN_TABLE"
    UNKNOWN_COLUMN = "UNKNOWN_COLUMN"
    UNKNOWN_INDEX = "UNKNOWN_INDEX"
    UNKNOWN_FOREIGN_KEY = "UNKNOWN_FOREIGN_KEY"
    DUPLICATE_NAME = "DUPLICATE_NAME"
    INVALID_NAME = "INVALID_NAME"
    DUPLICATE_ORDER = "DUPLICATE_ORDER"
    DUPLICATE_COLUMN = "DUPLICATE_COLUMN"
    MALFORMED_FOREIGN_KEY = "MALFORMED_FOREIGN_KEY"
    EMPTY_KEY = "EMPTY_KEY"
    NOT_INTERLEAVED = "NOT_INTERLEAVED"
    INVALID_ON_DELETE = "INVALID_ON_DELETE"
    MALFORMED_REQUEST = "MALFORMED_REQUEST"


class PreconditionError(SchemaEditError):
    """
    The edit needs another relationship removed first.

    Attributes:
        blocking: Name of the table or constraint that blocks the edit.
    """

    code = "PRECONDITION_FAILED"

    def __init__(self, message: str, blocking: str) -> None:
        super().__init__(message)
        self.blocking = blocking

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["blocking"] = self.blocking
        return data


class ResolutionError(SchemaEditError):
    """The type resolver rejected the requested type or the source driver."""

    code = "RESOLUTION_ERROR"


class InvariantViolation(RuntimeError):
    """Raised when a mutation would leave the graph inconsistent (engine bug)."""

    def __init__(self, violations: list[str]) -> None:
        super().__init__("; ".join(violations))
        self.violations = violations
