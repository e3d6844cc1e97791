"""
core/schema_graph.py
--------------------
The in-memory schema graph: source mirror, editable target tables, the
name cross-reference maps between them, synthetic key bookkeeping, the issue
registry and the identifier allocator.

Design Decisions:
    * Source and target tables share table ids; a target table is the
      converted form of the source table with the same id.
    * Column provenance goes through the name maps only.  Column ids are
      shared at import time, but an edited target column may have no
      counterpart at all.
    * The allocator lives inside the graph so that a rejected edit, which
      discards its working copy, also discards the ids it consumed.
"""
from __future__ import annotations

import re
from typing import Any, Iterator

from core.errors import ValidationError
from core.id_allocator import IdAllocator
from core.issue_registry import IssueRegistry
from models.schema import Column, ForeignKey, NameMapping, Table

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_MAX_NAME_LENGTH = 128


class SchemaGraph:
    """
    All tables of one conversion plus the bookkeeping that ties them together.

    Attributes:
        source_tables:  Table id → source :class:`Table` (read-only mirror).
        target_tables:  Table id → target :class:`Table` (edited by the user).
        to_target:      Source table id → forward :class:`NameMapping`.
        to_source:      Target table id → backward :class:`NameMapping`.
        synthetic_pks:  Table id → id of the generated key column.
        issues:         The :class:`IssueRegistry`.
        ids:            The :class:`IdAllocator` for this graph.
    """

    def __init__(self) -> None:
        self.source_tables: dict[str, Table] = {}
        self.target_tables: dict[str, Table] = {}
        self.to_target: dict[str, NameMapping] = {}
        self.to_source: dict[str, NameMapping] = {}
        self.synthetic_pks: dict[str, str] = {}
        self.issues = IssueRegistry()
        self.ids = IdAllocator()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def table(self, table_id: str) -> Table:
        """
        Return the target table *table_id*.

        Raises:
            ValidationError: (UNKNOWN_TABLE) if there is no such table.
        """
        table = self.target_tables.get(table_id)
        if table is None:
            raise ValidationError(f"Unknown table id '{table_id}'.", ValidationError.UNKNOWN_TABLE)
        return table

    def column(self, table: Table, column_id: str) -> Column:
        column = table.columns.get(column_id)
        if column is None:
            raise ValidationError(
                f"Unknown column id '{column_id}' in table '{table.name}'.",
                ValidationError.UNKNOWN_COLUMN,
            )
        return column

    def tables(self) -> Iterator[Table]:
        """Target tables in id order."""
        for table_id in sorted(self.target_tables, key=_id_sort_key):
            yield self.target_tables[table_id]

    def parent_of(self, table: Table) -> Table | None:
        if not table.parent_id:
            return None
        return self.target_tables.get(table.parent_id)

    def children_of(self, table_id: str) -> list[Table]:
        return [t for t in self.tables() if t.parent_id == table_id]

    def referencing_foreign_keys(self, table_id: str) -> list[tuple[Table, ForeignKey]]:
        """Every (table, foreign key) pair whose foreign key points at *table_id*."""
        return [
            (t, fk)
            for t in self.tables()
            for fk in t.foreign_keys
            if fk.refer_table_id == table_id
        ]

    def source_column_for(self, table_id: str, column_id: str) -> Column | None:
        """The source column a target column was derived from, if any."""
        table = self.target_tables.get(table_id)
        mapping = self.to_source.get(table_id)
        source = self.source_tables.get(table_id)
        if table is None or mapping is None or source is None:
            return None
        column = table.columns.get(column_id)
        if column is None:
            return None
        source_name = mapping.columns.get(column.name)
        if source_name is None:
            return None
        source_id = source.column_id_by_name(source_name)
        return source.columns.get(source_id) if source_id else None

    def unmapped_source_column(self, table_id: str, name: str) -> Column | None:
        """A source column named *name* that currently has no target counterpart."""
        source = self.source_tables.get(table_id)
        mapping = self.to_target.get(table_id)
        if source is None:
            return None
        source_id = source.column_id_by_name(name)
        if source_id is None:
            return None
        if mapping is not None and name in mapping.columns:
            return None
        return source.columns[source_id]

    # ------------------------------------------------------------------
    # Names
    # ------------------------------------------------------------------

    def used_names(self, table_id: str | None = None, exclude_column: str | None = None) -> set[str]:
        """
        Lower-cased names that a new table, index, foreign key or column
        would collide with.  Column names are only included for *table_id*.
        """
        names: set[str] = set()
        for table in self.target_tables.values():
            names.add(table.name.lower())
            names.update(i.name.lower() for i in table.indexes)
            names.update(fk.name.lower() for fk in table.foreign_keys if fk.name)
        if table_id is not None and table_id in self.target_tables:
            table = self.target_tables[table_id]
            names.update(
                c.name.lower() for cid, c in table.columns.items() if cid != exclude_column
            )
        return names

    def check_new_name(
        self, name: str, table_id: str | None = None, exclude_column: str | None = None
    ) -> None:
        """
        Raises:
            ValidationError: INVALID_NAME or DUPLICATE_NAME.
        """
        if not name or len(name) > _MAX_NAME_LENGTH or not _NAME_RE.match(name):
            raise ValidationError(f"'{name}' is not a valid name.", ValidationError.INVALID_NAME)
        if name.lower() in self.used_names(table_id, exclude_column):
            raise ValidationError(
                f"The name '{name}' is already in use.", ValidationError.DUPLICATE_NAME
            )

    def unique_name(self, base: str) -> str:
        """*base*, or *base* with a numeric suffix, not colliding with any used name."""
        used = self.used_names()
        candidate = base
        n = 1
        while candidate.lower() in used:
            candidate = f"{base}_{n}"
            n += 1
        return candidate

    # ------------------------------------------------------------------
    # Cross-reference maintenance
    # ------------------------------------------------------------------

    def add_column_xref(self, table_id: str, source_name: str, target_name: str) -> None:
        forward = self.to_target.setdefault(
            table_id, NameMapping(name=self.target_tables[table_id].name)
        )
        backward = self.to_source.setdefault(
            table_id, NameMapping(name=self.source_tables[table_id].name)
        )
        forward.columns[source_name] = target_name
        backward.columns[target_name] = source_name

    def rename_column_xref(self, table_id: str, old_name: str, new_name: str) -> None:
        backward = self.to_source.get(table_id)
        if backward is None or old_name not in backward.columns:
            return
        source_name = backward.columns.pop(old_name)
        backward.columns[new_name] = source_name
        self.to_target[table_id].columns[source_name] = new_name

    def drop_column_xref(self, table_id: str, target_name: str) -> None:
        backward = self.to_source.get(table_id)
        if backward is None or target_name not in backward.columns:
            return
        source_name = backward.columns.pop(target_name)
        forward = self.to_target.get(table_id)
        if forward is not None:
            forward.columns.pop(source_name, None)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_tables": {tid: t.to_dict() for tid, t in self.source_tables.items()},
            "target_tables": {tid: t.to_dict() for tid, t in self.target_tables.items()},
            "to_target": {tid: m.to_dict() for tid, m in self.to_target.items()},
            "to_source": {tid: m.to_dict() for tid, m in self.to_source.items()},
            "synthetic_pks": dict(self.synthetic_pks),
            "issues": self.issues.to_dict(),
            "id_counter": self.ids.value,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "SchemaGraph":
        graph = SchemaGraph()
        graph.source_tables = {
            tid: Table.from_dict(t) for tid, t in data.get("source_tables", {}).items()
        }
        graph.target_tables = {
            tid: Table.from_dict(t) for tid, t in data.get("target_tables", {}).items()
        }
        graph.to_target = {
            tid: NameMapping.from_dict(m) for tid, m in data.get("to_target", {}).items()
        }
        graph.to_source = {
            tid: NameMapping.from_dict(m) for tid, m in data.get("to_source", {}).items()
        }
        graph.synthetic_pks = dict(data.get("synthetic_pks", {}))
        graph.issues = IssueRegistry.from_dict(data.get("issues", {}))
        graph.ids = IdAllocator(int(data.get("id_counter", 0)))
        return graph


def _id_sort_key(entity_id: str) -> tuple[str, int]:
    """Sort ``t2`` before ``t10``."""
    digits = entity_id.lstrip("tcfi")
    return (entity_id[: len(entity_id) - len(digits)], int(digits) if digits.isdigit() else 0)
