"""
core/id_allocator.py
--------------------
Issues stable identifiers for tables, columns, foreign keys and indexes.

Design Decision:
    A single counter serves every kind, so an identifier is unique across
    the whole session regardless of its prefix.  The counter only moves
    forward: identifiers of deleted entities are never handed out again,
    which keeps stale cross-references from silently resolving to a new
    entity.
"""
from __future__ import annotations

from enum import Enum


class IdKind(str, Enum):
    TABLE = "t"
    COLUMN = "c"
    FOREIGN_KEY = "f"
    INDEX = "i"


class IdAllocator:
    """Monotonic, prefixed identifier source for one session."""

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError("Counter start must be non-negative.")
        self._counter = start

    @property
    def value(self) -> int:
        """Last issued counter value (0 when nothing was issued)."""
        return self._counter

    def new_id(self, kind: IdKind) -> str:
        self._counter += 1
        return f"{kind.value}{self._counter}"

    def table_id(self) -> str:
        return self.new_id(IdKind.TABLE)

    def column_id(self) -> str:
        return self.new_id(IdKind.COLUMN)

    def foreign_key_id(self) -> str:
        return self.new_id(IdKind.FOREIGN_KEY)

    def index_id(self) -> str:
        return self.new_id(IdKind.INDEX)

    def reset(self) -> None:
        """Start over; only valid when a brand new schema is loaded."""
        self._counter = 0

    def advance_to(self, value: int) -> None:
        """
        Move the counter forward to *value* (used on snapshot restore).

        Raises:
            ValueError: If *value* is behind the current counter.
        """
        if value < self._counter:
            raise ValueError(
                f"Identifier counter cannot move backwards ({self._counter} → {value})."
            )
        self._counter = value
