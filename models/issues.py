"""
models/issues.py
----------------
Catalogue of schema issues the engine can attach to a table or column.

Each issue carries a short description and a severity.  ``warning`` issues
describe something that will behave differently after migration;
``note`` issues are suggestions (hotspots, interleaving opportunities).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Severity(str, Enum):
    WARNING = "warning"
    NOTE = "note"


class SchemaIssue(str, Enum):
    """Discriminator for every issue tracked by the issue registry."""
    HOTSPOT_TIMESTAMP = "hotspot_timestamp"
    HOTSPOT_AUTO_INCREMENT = "hotspot_auto_increment"
    REDUNDANT_INDEX = "redundant_index"
    INTERLEAVE_INDEX = "interleave_index"
    AUTO_INCREMENT_INDEX = "auto_increment_index"
    INTERLEAVE_ELIGIBLE = "interleave_eligible"
    INTERLEAVE_ORDER_MISMATCH = "interleave_order_mismatch"
    INTERLEAVE_ADD_COLUMN = "interleave_add_column"
    INTERLEAVE_RENAME_COLUMN = "interleave_rename_column"
    INTERLEAVE_CHANGE_COLUMN_SIZE = "interleave_change_column_size"
    TYPE_WIDENED = "type_widened"
    MULTI_DIMENSIONAL_ARRAY = "multi_dimensional_array"
    DEFAULT_VALUE_DROPPED = "default_value_dropped"
    AUTO_INCREMENT_DROPPED = "auto_increment_dropped"
    NO_GOOD_TYPE = "no_good_type"
    PRECISION_LOSS = "precision_loss"
    TIMESTAMP_SEMANTICS = "timestamp_semantics"
    FOREIGN_KEY_DROPPED = "foreign_key_dropped"
    MISSING_PRIMARY_KEY = "missing_primary_key"


@dataclass(frozen=True)
class IssueInfo:
    brief: str
    severity: Severity


ISSUE_INFO: dict[SchemaIssue, IssueInfo] = {
    SchemaIssue.HOTSPOT_TIMESTAMP: IssueInfo(
        "Timestamp key column may cause write hotspots", Severity.NOTE),
    SchemaIssue.HOTSPOT_AUTO_INCREMENT: IssueInfo(
        "Auto-increment key column may cause write hotspots", Severity.NOTE),
    SchemaIssue.REDUNDANT_INDEX: IssueInfo(
        "Index is redundant with the primary key", Severity.NOTE),
    SchemaIssue.INTERLEAVE_INDEX: IssueInfo(
        "Index can be converted to an interleaved index", Severity.NOTE),
    SchemaIssue.AUTO_INCREMENT_INDEX: IssueInfo(
        "Auto-increment or timestamp column leading an index can create a hotspot",
        Severity.WARNING),
    SchemaIssue.INTERLEAVE_ELIGIBLE: IssueInfo(
        "Table can be converted to an interleaved table", Severity.NOTE),
    SchemaIssue.INTERLEAVE_ORDER_MISMATCH: IssueInfo(
        "Table can be interleaved if the primary key order of this column changes",
        Severity.NOTE),
    SchemaIssue.INTERLEAVE_ADD_COLUMN: IssueInfo(
        "Table can be interleaved if this column is added to the primary key",
        Severity.NOTE),
    SchemaIssue.INTERLEAVE_RENAME_COLUMN: IssueInfo(
        "Table can be interleaved if this column is renamed to match the parent key",
        Severity.NOTE),
    SchemaIssue.INTERLEAVE_CHANGE_COLUMN_SIZE: IssueInfo(
        "Table can be interleaved if this column's type or size matches the parent key",
        Severity.NOTE),
    SchemaIssue.TYPE_WIDENED: IssueInfo(
        "Column will consume more storage after conversion", Severity.NOTE),
    SchemaIssue.MULTI_DIMENSIONAL_ARRAY: IssueInfo(
        "Multi-dimensional arrays are not supported", Severity.WARNING),
    SchemaIssue.DEFAULT_VALUE_DROPPED: IssueInfo(
        "Column default value is not carried over", Severity.WARNING),
    SchemaIssue.AUTO_INCREMENT_DROPPED: IssueInfo(
        "Auto-increment attribute is not supported", Severity.WARNING),
    SchemaIssue.NO_GOOD_TYPE: IssueInfo(
        "No appropriate target type", Severity.WARNING),
    SchemaIssue.PRECISION_LOSS: IssueInfo(
        "Type mapping could lose precision", Severity.WARNING),
    SchemaIssue.TIMESTAMP_SEMANTICS: IssueInfo(
        "Target timestamp semantics differ from the source type", Severity.NOTE),
    SchemaIssue.FOREIGN_KEY_DROPPED: IssueInfo(
        "Foreign key could not be converted", Severity.WARNING),
    SchemaIssue.MISSING_PRIMARY_KEY: IssueInfo(
        "Table has no primary key; a synthetic key column was added", Severity.WARNING),
}

HOTSPOT_ISSUES = frozenset(
    {SchemaIssue.HOTSPOT_TIMESTAMP, SchemaIssue.HOTSPOT_AUTO_INCREMENT}
)

# Issues raised on the lead column of a secondary index.
INDEX_ISSUES = frozenset({
    SchemaIssue.REDUNDANT_INDEX,
    SchemaIssue.INTERLEAVE_INDEX,
    SchemaIssue.AUTO_INCREMENT_INDEX,
})

INTERLEAVE_ISSUES = frozenset({
    SchemaIssue.INTERLEAVE_ELIGIBLE,
    SchemaIssue.INTERLEAVE_ORDER_MISMATCH,
    SchemaIssue.INTERLEAVE_ADD_COLUMN,
    SchemaIssue.INTERLEAVE_RENAME_COLUMN,
    SchemaIssue.INTERLEAVE_CHANGE_COLUMN_SIZE,
})

# Issues produced by the type resolver; replaced wholesale on a type change.
TYPE_ISSUES = frozenset({
    SchemaIssue.TYPE_WIDENED,
    SchemaIssue.MULTI_DIMENSIONAL_ARRAY,
    SchemaIssue.DEFAULT_VALUE_DROPPED,
    SchemaIssue.AUTO_INCREMENT_DROPPED,
    SchemaIssue.NO_GOOD_TYPE,
    SchemaIssue.PRECISION_LOSS,
    SchemaIssue.TIMESTAMP_SEMANTICS,
})
