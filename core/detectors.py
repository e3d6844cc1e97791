"""
core/detectors.py
-----------------
Issue detectors re-run after key and index changes.

Every detector is idempotent: running one twice in a row leaves the issue
registry unchanged.
"""
from __future__ import annotations

from core.schema_graph import SchemaGraph
from logger import get_logger
from models.issues import HOTSPOT_ISSUES, INDEX_ISSUES, SchemaIssue
from models.schema import Table

log = get_logger(__name__)

_TIMESTAMP_TYPES = frozenset({"TIMESTAMP"})


def detect_hotspots(graph: SchemaGraph, table: Table) -> None:
    """
    Flag primary key columns that lead to monotonically increasing keys.

    A timestamp typed key column gets ``HOTSPOT_TIMESTAMP``; a key column
    whose source column was auto-increment gets ``HOTSPOT_AUTO_INCREMENT``.
    """
    for pk in table.primary_keys:
        column = table.columns.get(pk.column_id)
        if column is None:
            continue
        if column.type.base_name in _TIMESTAMP_TYPES:
            graph.issues.add(table.id, column.id, SchemaIssue.HOTSPOT_TIMESTAMP)
        source = graph.source_column_for(table.id, column.id)
        if source is not None and source.auto_increment:
            graph.issues.add(table.id, column.id, SchemaIssue.HOTSPOT_AUTO_INCREMENT)


def clear_hotspots(graph: SchemaGraph, table_id: str, column_id: str) -> None:
    graph.issues.remove_all(table_id, column_id, HOTSPOT_ISSUES)


def detect_redundant_indexes(graph: SchemaGraph, table: Table) -> None:
    """
    Re-evaluate the issues carried by the lead column of every index.

    An index that starts with the table's first-order key column is
    ``REDUNDANT_INDEX``.  Any other index whose lead column starts a foreign
    key could become an interleaved index (``INTERLEAVE_INDEX``), and one
    led by an auto-increment or timestamp column gets
    ``AUTO_INCREMENT_INDEX``.  Stale index issues on the table are cleared
    first.
    """
    for column_id in table.column_ids:
        graph.issues.remove_all(table.id, column_id, INDEX_ISSUES)

    first = table.first_pk()
    fk_leads = {fk.column_ids[0] for fk in table.foreign_keys if fk.column_ids}
    for index in table.indexes:
        if not index.keys:
            continue
        lead = min(index.keys, key=lambda k: k.order)
        if first is not None and lead.column_id == first.column_id:
            log.debug("Index '%s' on '%s' is redundant with the primary key.", index.name, table.name)
            graph.issues.add(table.id, lead.column_id, SchemaIssue.REDUNDANT_INDEX)
            continue
        if lead.column_id in fk_leads:
            graph.issues.add(table.id, lead.column_id, SchemaIssue.INTERLEAVE_INDEX)
        column = table.columns.get(lead.column_id)
        source = graph.source_column_for(table.id, lead.column_id)
        if (source is not None and source.auto_increment) or (
            column is not None and column.type.base_name in _TIMESTAMP_TYPES
        ):
            graph.issues.add(table.id, lead.column_id, SchemaIssue.AUTO_INCREMENT_INDEX)
