"""
core/issue_registry.py
----------------------
Per-table, per-column record of schema issues.

Design Decision:
    Issues are keyed by (table id, column id).  Ids never change, so a
    rename needs no registry update at all.  Table-level issues live under
    the empty column key.
"""
from __future__ import annotations

from typing import Any, Iterable

from models.issues import ISSUE_INFO, SchemaIssue, Severity

_TABLE_KEY = ""


class IssueRegistry:
    """
    Ordered, duplicate-free issue lists.

    Attributes:
        _data: {table_id: {column_id or "": [SchemaIssue, ...]}}
    """

    def __init__(self) -> None:
        self._data: dict[str, dict[str, list[SchemaIssue]]] = {}

    def add(self, table_id: str, column_id: str | None, issue: SchemaIssue) -> None:
        """Attach *issue*; adding an issue that is already present is a no-op."""
        issues = self._data.setdefault(table_id, {}).setdefault(column_id or _TABLE_KEY, [])
        if issue not in issues:
            issues.append(issue)

    def add_all(self, table_id: str, column_id: str | None, issues: Iterable[SchemaIssue]) -> None:
        for issue in issues:
            self.add(table_id, column_id, issue)

    def remove(self, table_id: str, column_id: str | None, issue: SchemaIssue) -> bool:
        """Remove *issue*. Returns True if it was present."""
        columns = self._data.get(table_id)
        if not columns:
            return False
        key = column_id or _TABLE_KEY
        issues = columns.get(key)
        if not issues or issue not in issues:
            return False
        issues.remove(issue)
        if not issues:
            del columns[key]
        if not columns:
            del self._data[table_id]
        return True

    def remove_all(self, table_id: str, column_id: str | None, issues: Iterable[SchemaIssue]) -> None:
        for issue in issues:
            self.remove(table_id, column_id, issue)

    def has(self, table_id: str, column_id: str | None, issue: SchemaIssue) -> bool:
        return issue in self._data.get(table_id, {}).get(column_id or _TABLE_KEY, [])

    def issues_for(self, table_id: str, column_id: str | None = None) -> list[SchemaIssue]:
        return list(self._data.get(table_id, {}).get(column_id or _TABLE_KEY, []))

    def columns_with_issues(self, table_id: str) -> list[str]:
        return [k for k in self._data.get(table_id, {}) if k != _TABLE_KEY]

    def drop_column(self, table_id: str, column_id: str) -> None:
        columns = self._data.get(table_id)
        if columns is None:
            return
        columns.pop(column_id, None)
        if not columns:
            del self._data[table_id]

    def drop_table(self, table_id: str) -> None:
        self._data.pop(table_id, None)

    def table_ids(self) -> list[str]:
        return list(self._data)

    def summary(self) -> dict[str, dict[str, int]]:
        """
        Count issues per table and severity.

        Example::

            registry.summary()
            # {"t1": {"warning": 1, "note": 2}}
        """
        result: dict[str, dict[str, int]] = {}
        for table_id, columns in self._data.items():
            counts = {Severity.WARNING.value: 0, Severity.NOTE.value: 0}
            for issues in columns.values():
                for issue in issues:
                    counts[ISSUE_INFO[issue].severity.value] += 1
            result[table_id] = counts
        return result

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            table_id: {key: [i.value for i in issues] for key, issues in columns.items()}
            for table_id, columns in self._data.items()
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "IssueRegistry":
        registry = IssueRegistry()
        for table_id, columns in data.items():
            for key, issues in columns.items():
                registry.add_all(table_id, key, (SchemaIssue(i) for i in issues))
        return registry
