"""
core/foreign_key_ops.py
-----------------------
Foreign key creation, rename and removal.

Every change re-runs interleave analysis for the owning table: a foreign key
is the only route through which a table becomes an interleave candidate.
"""
from __future__ import annotations

from core import detectors, interleave
from core.errors import ValidationError
from core.schema_graph import SchemaGraph
from logger import get_logger
from models.issues import INTERLEAVE_ISSUES
from models.requests import ForeignKeyRequest
from models.schema import ForeignKey, Table

log = get_logger(__name__)


def _foreign_key(table: Table, fk_id: str) -> ForeignKey:
    fk = table.foreign_key_by_id(fk_id)
    if fk is None:
        raise ValidationError(
            f"Unknown foreign key id '{fk_id}' in table '{table.name}'.",
            ValidationError.UNKNOWN_FOREIGN_KEY,
        )
    return fk


def add_foreign_key(graph: SchemaGraph, table_id: str, request: ForeignKeyRequest) -> str:
    """
    Create a foreign key and return its id.

    Raises:
        ValidationError: Unknown ids, invalid or duplicate name, mismatched
            column counts (MALFORMED_FOREIGN_KEY) or an invalid delete action.
    """
    table = graph.table(table_id)
    graph.check_new_name(request.name)
    if len(request.column_ids) != len(request.refer_column_ids) or not request.column_ids:
        raise ValidationError(
            f"Foreign key '{request.name}' has {len(request.column_ids)} column(s) but "
            f"references {len(request.refer_column_ids)}.",
            ValidationError.MALFORMED_FOREIGN_KEY,
        )
    refer_table = graph.table(request.refer_table_id)
    for column_id in request.column_ids:
        graph.column(table, column_id)
    for column_id in request.refer_column_ids:
        graph.column(refer_table, column_id)
    if len(set(request.column_ids)) != len(request.column_ids):
        raise ValidationError(
            f"Foreign key '{request.name}' lists a column twice.", ValidationError.DUPLICATE_COLUMN
        )
    on_delete = request.on_delete.upper()
    if on_delete not in interleave.ON_DELETE_ACTIONS:
        raise ValidationError(
            f"'{request.on_delete}' is not a valid delete action.", ValidationError.INVALID_ON_DELETE
        )

    fk = ForeignKey(
        id=graph.ids.foreign_key_id(),
        name=request.name,
        column_ids=list(request.column_ids),
        refer_table_id=refer_table.id,
        refer_column_ids=list(request.refer_column_ids),
        on_delete=on_delete,
    )
    table.foreign_keys.append(fk)
    detectors.detect_redundant_indexes(graph, table)
    interleave.analyze(graph, table)
    log.info("Added foreign key '%s' (%s) from '%s' to '%s'.", fk.name, fk.id, table.name, refer_table.name)
    return fk.id


def rename_foreign_key(graph: SchemaGraph, table_id: str, fk_id: str, new_name: str) -> None:
    table = graph.table(table_id)
    fk = _foreign_key(table, fk_id)
    if new_name == fk.name:
        return
    if new_name.lower() != fk.name.lower():
        graph.check_new_name(new_name)
    log.info("Renamed foreign key '%s' on '%s' to '%s'.", fk.name, table.name, new_name)
    fk.name = new_name


def drop_foreign_key(graph: SchemaGraph, table_id: str, fk_id: str) -> None:
    """
    Raises:
        ValidationError: Unknown table or foreign key.
    """
    table = graph.table(table_id)
    fk = _foreign_key(table, fk_id)
    table.foreign_keys = [f for f in table.foreign_keys if f.id != fk_id]
    if fk.column_ids:
        graph.issues.remove_all(table_id, fk.column_ids[0], INTERLEAVE_ISSUES)
    detectors.detect_redundant_indexes(graph, table)
    interleave.analyze(graph, table)
    log.info("Dropped foreign key '%s' (%s) from '%s'.", fk.name, fk_id, table.name)
