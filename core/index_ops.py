"""
core/index_ops.py
-----------------
Secondary index creation, rename and removal.
"""
from __future__ import annotations

from core import detectors
from core.errors import ValidationError
from core.schema_graph import SchemaGraph
from logger import get_logger
from models.issues import INDEX_ISSUES
from models.requests import IndexRequest
from models.schema import IndexKey, SecondaryIndex, Table

log = get_logger(__name__)


def _index(table: Table, index_id: str) -> SecondaryIndex:
    index = table.index_by_id(index_id)
    if index is None:
        raise ValidationError(
            f"Unknown index id '{index_id}' in table '{table.name}'.",
            ValidationError.UNKNOWN_INDEX,
        )
    return index


def add_index(graph: SchemaGraph, table_id: str, request: IndexRequest) -> str:
    """
    Create a secondary index and return its id.

    Raises:
        ValidationError: Unknown table or column, invalid or duplicate name,
            repeated column or order.
    """
    table = graph.table(table_id)
    graph.check_new_name(request.name)
    if not request.keys:
        raise ValidationError("An index needs at least one key.", ValidationError.EMPTY_KEY)

    columns: set[str] = set()
    orders: set[int] = set()
    for key in request.keys:
        graph.column(table, key.column_id)
        if key.column_id in columns:
            raise ValidationError(
                f"Column '{table.columns[key.column_id].name}' appears twice in the index.",
                ValidationError.DUPLICATE_COLUMN,
            )
        if key.order in orders:
            raise ValidationError(
                f"Two index keys share order {key.order}.", ValidationError.DUPLICATE_ORDER
            )
        columns.add(key.column_id)
        orders.add(key.order)

    index = SecondaryIndex(
        id=graph.ids.index_id(),
        name=request.name,
        unique=request.unique,
        keys=sorted(
            (IndexKey(column_id=k.column_id, desc=k.desc, order=k.order) for k in request.keys),
            key=lambda k: k.order,
        ),
    )
    table.indexes.append(index)
    detectors.detect_redundant_indexes(graph, table)
    log.info("Added index '%s' (%s) on '%s'.", index.name, index.id, table.name)
    return index.id


def rename_index(graph: SchemaGraph, table_id: str, index_id: str, new_name: str) -> None:
    table = graph.table(table_id)
    index = _index(table, index_id)
    if new_name == index.name:
        return
    if new_name.lower() != index.name.lower():
        graph.check_new_name(new_name)
    log.info("Renamed index '%s' on '%s' to '%s'.", index.name, table.name, new_name)
    index.name = new_name


def drop_index(graph: SchemaGraph, table_id: str, index_id: str) -> None:
    """
    Remove an index; the issues it raised on its lead column go with it.

    Raises:
        ValidationError: Unknown table or index.
    """
    table = graph.table(table_id)
    index = _index(table, index_id)
    table.indexes = [i for i in table.indexes if i.id != index_id]
    for key in index.keys:
        graph.issues.remove_all(table_id, key.column_id, INDEX_ISSUES)
    detectors.detect_redundant_indexes(graph, table)
    log.info("Dropped index '%s' (%s) from '%s'.", index.name, index_id, table.name)
