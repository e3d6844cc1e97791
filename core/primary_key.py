"""
core/primary_key.py
-------------------
Full-replacement primary key edits.

The caller sends the complete desired key.  The engine works out which
columns enter the key, which leave it and which only change direction or
position, then clears and re-runs the detectors that depend on the key.
Sending the same key twice changes nothing the second time.
"""
from __future__ import annotations

from typing import Iterable

from core import column_ops, detectors, interleave
from core.errors import PreconditionError, ValidationError
from core.schema_graph import SchemaGraph
from logger import get_logger
from models.issues import INTERLEAVE_ISSUES, SchemaIssue
from models.requests import KeyPartSpec
from models.schema import IndexKey, Table

log = get_logger(__name__)


def _validate(table: Table, keys: list[IndexKey]) -> None:
    if not keys:
        raise ValidationError(
            f"Primary key of '{table.name}' cannot be empty.", ValidationError.EMPTY_KEY
        )
    seen_columns: set[str] = set()
    seen_orders: set[int] = set()
    for key in keys:
        if key.column_id not in table.columns:
            raise ValidationError(
                f"Unknown column id '{key.column_id}' in table '{table.name}'.",
                ValidationError.UNKNOWN_COLUMN,
            )
        if key.column_id in seen_columns:
            raise ValidationError(
                f"Column '{table.columns[key.column_id].name}' appears twice in the key.",
                ValidationError.DUPLICATE_COLUMN,
            )
        if key.order in seen_orders:
            raise ValidationError(
                f"Two key columns share order {key.order}.", ValidationError.DUPLICATE_ORDER
            )
        seen_columns.add(key.column_id)
        seen_orders.add(key.order)


def _key_shape(keys: Iterable[IndexKey]) -> list[tuple[str, bool]]:
    return [(k.column_id, k.desc) for k in sorted(keys, key=lambda k: k.order)]


def _check_interleave(graph: SchemaGraph, table: Table, keys: list[IndexKey]) -> None:
    """
    A parent shares its whole key with its children, so no part of it may
    change.  A child may only change the key columns after the ones it
    inherits from its parent.
    """
    children = graph.children_of(table.id)
    if children:
        raise PreconditionError(
            f"Table '{table.name}' is the interleave parent of '{children[0].name}'; "
            "its primary key cannot change.",
            children[0].name,
        )
    parent = graph.parent_of(table)
    if parent is None:
        return
    inherited = len(parent.primary_keys)
    if _key_shape(table.primary_keys)[:inherited] != _key_shape(keys)[:inherited]:
        raise PreconditionError(
            f"Table '{table.name}' is interleaved in '{parent.name}'; its first "
            f"{inherited} key column(s) are inherited and cannot change.",
            parent.name,
        )


def replace_primary_key(graph: SchemaGraph, table_id: str, spec: Iterable[KeyPartSpec]) -> bool:
    """
    Replace the primary key of *table_id* with *spec*.

    Returns:
        True when the key changed, False for a no-op.

    Raises:
        ValidationError: EMPTY_KEY, UNKNOWN_COLUMN, DUPLICATE_COLUMN or DUPLICATE_ORDER.
        PreconditionError: The change touches key columns shared through interleaving.
    """
    table = graph.table(table_id)
    keys = [IndexKey(column_id=k.column_id, desc=k.desc, order=k.order) for k in spec]
    _validate(table, keys)
    keys.sort(key=lambda k: k.order)

    current = {k.column_id: (k.desc, k.order) for k in table.primary_keys}
    desired = {k.column_id: (k.desc, k.order) for k in keys}
    if current == desired:
        return False

    _check_interleave(graph, table, keys)

    added = desired.keys() - current.keys()
    removed = current.keys() - desired.keys()
    for column_id in added:
        detectors.clear_hotspots(graph, table_id, column_id)
        graph.issues.remove_all(table_id, column_id, INTERLEAVE_ISSUES)
    for column_id in removed:
        detectors.clear_hotspots(graph, table_id, column_id)

    table.primary_keys = keys

    synthetic = graph.synthetic_pks.get(table_id)
    if synthetic is not None and synthetic not in desired:
        graph.issues.remove(table_id, None, SchemaIssue.MISSING_PRIMARY_KEY)
        column_ops.remove_column(graph, table_id, synthetic)
        log.debug("Table '%s' no longer uses its synthetic key.", table.name)

    detectors.detect_hotspots(graph, table)
    detectors.detect_redundant_indexes(graph, table)
    interleave.analyze_related(graph, table_id)
    log.info(
        "Replaced primary key of '%s': %d added, %d removed, %d kept.",
        table.name, len(added), len(removed), len(desired) - len(added),
    )
    return True
