"""models/__init__.py"""
from models.issues import (
    ISSUE_INFO,
    HOTSPOT_ISSUES,
    INTERLEAVE_ISSUES,
    TYPE_ISSUES,
    IssueInfo,
    SchemaIssue,
    Severity,
)
from models.schema import (
    Column,
    ColumnType,
    ForeignKey,
    IndexKey,
    NameMapping,
    SecondaryIndex,
    Table,
)

__all__ = [
    "ISSUE_INFO",
    "HOTSPOT_ISSUES",
    "INTERLEAVE_ISSUES",
    "TYPE_ISSUES",
    "IssueInfo",
    "SchemaIssue",
    "Severity",
    "Column",
    "ColumnType",
    "ForeignKey",
    "IndexKey",
    "NameMapping",
    "SecondaryIndex",
    "Table",
]
