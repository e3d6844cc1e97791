"""
core/column_ops.py
------------------
Column edits on target tables: add, remove, rename, retype, nullability
and size changes.

Type and size changes cascade to every column linked to the edited one,
either through a foreign key pair (in both directions) or through
interleaving (the parent or child column of the same name).  Renames only
follow linked columns that carry the same name, so a foreign key between
differently named columns keeps both names.  The linked set is computed
transitively before anything is modified and every linked column is
validated first, so a rejected edit leaves no trace.

Design Decision:
    Functions operate on a :class:`SchemaGraph` directly and assume they
    run on a private working copy (see :mod:`core.session`).  They validate
    before mutating anyway, so they are safe to call on a live graph in
    tests.
"""
from __future__ import annotations

from collections import deque

from core import detectors, interleave
from core.errors import ValidationError
from core.schema_graph import SchemaGraph
from core.type_resolver import ResolvedType, TypeResolver
from logger import get_logger
from models.issues import SchemaIssue, TYPE_ISSUES
from models.requests import AddColumnRequest
from models.schema import Column, ForeignKey, Table

log = get_logger(__name__)

_SIZED_TYPES = frozenset({"STRING", "BYTES"})


# ---------------------------------------------------------------------------
# Cascade discovery
# ---------------------------------------------------------------------------

def _direct_links(
    graph: SchemaGraph, table: Table, column_id: str, same_name: bool
) -> list[tuple[str, str]]:
    name = table.columns[column_id].name
    links: list[tuple[str, str]] = []
    for fk in table.foreign_keys:
        for local, referred in zip(fk.column_ids, fk.refer_column_ids):
            if local == column_id:
                links.append((fk.refer_table_id, referred))
    for other, fk in graph.referencing_foreign_keys(table.id):
        for local, referred in zip(fk.column_ids, fk.refer_column_ids):
            if referred == column_id:
                links.append((other.id, local))

    related = list(graph.children_of(table.id))
    parent = graph.parent_of(table)
    if parent is not None:
        related.append(parent)
    for other in related:
        other_col = other.column_id_by_name(name)
        if other_col is not None:
            links.append((other.id, other_col))

    if same_name:
        links = [
            (tid, cid) for tid, cid in links
            if tid in graph.target_tables
            and cid in graph.target_tables[tid].columns
            and graph.target_tables[tid].columns[cid].name == name
        ]
    return links


def linked_columns(
    graph: SchemaGraph, table_id: str, column_id: str, same_name: bool = False
) -> list[tuple[str, str]]:
    """
    Every (table id, column id) reachable from the given column through
    foreign keys and interleaving, starting with the column itself.

    With *same_name* only columns carrying the same name as the one they
    are reached from are followed (the rename cascade).
    """
    start = (table_id, column_id)
    seen = {start}
    ordered = [start]
    queue = deque([start])
    while queue:
        tid, cid = queue.popleft()
        table = graph.target_tables.get(tid)
        if table is None or cid not in table.columns:
            continue
        for link in _direct_links(graph, table, cid, same_name):
            if link in seen:
                continue
            linked_table = graph.target_tables.get(link[0])
            if linked_table is None or link[1] not in linked_table.columns:
                continue
            seen.add(link)
            ordered.append(link)
            queue.append(link)
    return ordered


def _refresh(graph: SchemaGraph, table_ids: set[str]) -> None:
    for tid in sorted(table_ids):
        table = graph.target_tables.get(tid)
        if table is None:
            continue
        detectors.detect_hotspots(graph, table)
        detectors.detect_redundant_indexes(graph, table)
        interleave.analyze_related(graph, tid)


# ---------------------------------------------------------------------------
# Add / remove
# ---------------------------------------------------------------------------

def add_column(
    graph: SchemaGraph,
    table_id: str,
    request: AddColumnRequest,
    resolver: TypeResolver,
    dialect: str,
    driver: str,
) -> str:
    """
    Append a new column to *table_id* and return its id.

    When a source column of the same name exists and has no target
    counterpart (it was removed earlier), the new column is mapped back to
    it and its type is resolved against it.

    Raises:
        ValidationError: Unknown table, invalid or duplicate name.
        ResolutionError: The resolver rejected the requested type.
    """
    table = graph.table(table_id)
    graph.check_new_name(request.name, table_id)
    source = graph.unmapped_source_column(table_id, request.name)
    resolved = resolver.resolve(source, request.type, dialect, driver, request.length or None)

    column = Column(
        id=graph.ids.column_id(),
        name=request.name,
        type=resolved.type,
        not_null=not request.nullable,
        options=dict(resolved.options),
    )
    table.columns[column.id] = column
    table.column_ids.append(column.id)
    if source is not None:
        graph.add_column_xref(table_id, source.name, column.name)
    graph.issues.add_all(table_id, column.id, resolved.issues)
    log.info("Added column '%s' (%s) to '%s'.", column.name, column.id, table.name)
    return column.id


def remove_column(graph: SchemaGraph, table_id: str, column_id: str) -> None:
    """
    Remove a column together with every key part, index key and foreign
    key pair that mentions it.

    Raises:
        ValidationError: Unknown table or column.
        PreconditionError: The column is a key column shared through interleaving.
    """
    table = graph.table(table_id)
    column = graph.column(table, column_id)
    interleave.check_key_change(graph, table, column_id)

    touched = {table_id}
    table.column_ids.remove(column_id)
    del table.columns[column_id]
    table.primary_keys = [k for k in table.primary_keys if k.column_id != column_id]

    kept_indexes = []
    for index in table.indexes:
        index.keys = [k for k in index.keys if k.column_id != column_id]
        if index.keys:
            kept_indexes.append(index)
        else:
            log.debug("Dropped index '%s' left without keys.", index.name)
    table.indexes = kept_indexes

    table.foreign_keys = _strip_fk_pairs(table.foreign_keys, local=column_id)
    for other, _ in graph.referencing_foreign_keys(table_id):
        other.foreign_keys = _strip_fk_pairs(
            other.foreign_keys, refer_table_id=table_id, referred=column_id
        )
        touched.add(other.id)

    if graph.synthetic_pks.get(table_id) == column_id:
        del graph.synthetic_pks[table_id]
    graph.issues.drop_column(table_id, column_id)
    graph.drop_column_xref(table_id, column.name)
    _refresh(graph, touched)
    log.info("Removed column '%s' (%s) from '%s'.", column.name, column_id, table.name)


def _strip_fk_pairs(
    fks: list[ForeignKey],
    local: str | None = None,
    refer_table_id: str | None = None,
    referred: str | None = None,
) -> list[ForeignKey]:
    kept: list[ForeignKey] = []
    for fk in fks:
        pairs = [
            (c, r)
            for c, r in zip(fk.column_ids, fk.refer_column_ids)
            if c != local and not (fk.refer_table_id == refer_table_id and r == referred)
        ]
        if not pairs:
            log.debug("Dropped foreign key '%s' left without columns.", fk.name)
            continue
        fk.column_ids = [c for c, _ in pairs]
        fk.refer_column_ids = [r for _, r in pairs]
        kept.append(fk)
    return kept


# ---------------------------------------------------------------------------
# Rename / retype / nullability / size
# ---------------------------------------------------------------------------

def rename_column(graph: SchemaGraph, table_id: str, column_id: str, new_name: str) -> list[tuple[str, str]]:
    """
    Rename a column and every linked column that carries the same name.

    Foreign key partners with a different name keep theirs.

    Returns:
        The renamed (table id, column id) pairs.

    Raises:
        ValidationError: Unknown ids, invalid or duplicate name in any affected table.
    """
    table = graph.table(table_id)
    column = graph.column(table, column_id)
    if new_name == column.name:
        return []

    linked = linked_columns(graph, table_id, column_id, same_name=True)
    per_table: dict[str, int] = {}
    for tid, cid in linked:
        graph.check_new_name(new_name, tid, exclude_column=cid)
        per_table[tid] = per_table.get(tid, 0) + 1
        if per_table[tid] > 1:
            raise ValidationError(
                f"Renaming would give two columns of '{graph.target_tables[tid].name}' "
                f"the name '{new_name}'.",
                ValidationError.DUPLICATE_NAME,
            )

    for tid, cid in linked:
        target = graph.target_tables[tid].columns[cid]
        old_name = target.name
        target.name = new_name
        graph.rename_column_xref(tid, old_name, new_name)
        log.debug("Renamed '%s.%s' to '%s'.", graph.target_tables[tid].name, old_name, new_name)

    _refresh(graph, {tid for tid, _ in linked})
    log.info("Renamed column %s of '%s' to '%s' (%d column(s)).", column_id, table.name, new_name, len(linked))
    return linked


def change_column_type(
    graph: SchemaGraph,
    table_id: str,
    column_id: str,
    requested: str,
    resolver: TypeResolver,
    dialect: str,
    driver: str,
) -> list[tuple[str, str]]:
    """
    Change a column's type, cascading to linked columns.

    Returns:
        The changed (table id, column id) pairs; empty when nothing changed.

    Raises:
        ValidationError: Unknown ids.
        PreconditionError: A key column shared through interleaving would change.
        ResolutionError: The resolver rejected the type for any affected column.
    """
    table = graph.table(table_id)
    column = graph.column(table, column_id)

    linked = linked_columns(graph, table_id, column_id)
    resolved: dict[tuple[str, str], ResolvedType] = {}
    for tid, cid in linked:
        source = graph.source_column_for(tid, cid)
        current = graph.target_tables[tid].columns[cid]
        length = current.type.length if source is None and current.type.base_name in _SIZED_TYPES else None
        resolved[(tid, cid)] = resolver.resolve(source, requested, dialect, driver, length)

    if _same_type(column, resolved[(table_id, column_id)]):
        return []

    for tid, cid in linked:
        interleave.check_key_change(graph, graph.target_tables[tid], cid)

    for tid, cid in linked:
        result = resolved[(tid, cid)]
        target = graph.target_tables[tid].columns[cid]
        target.type = result.type
        target.options.update(result.options)
        graph.issues.remove_all(tid, cid, TYPE_ISSUES)
        graph.issues.remove(tid, cid, SchemaIssue.HOTSPOT_TIMESTAMP)
        graph.issues.add_all(tid, cid, result.issues)

    _refresh(graph, {tid for tid, _ in linked})
    log.info(
        "Changed type of column '%s' in '%s' to %s (%d column(s)).",
        column.name, table.name, column.type.name, len(linked),
    )
    return linked


def _same_type(column: Column, result: ResolvedType) -> bool:
    return column.type.same_shape(result.type) and column.type.is_array == result.type.is_array


def update_nullability(graph: SchemaGraph, table_id: str, column_id: str, not_null: bool) -> None:
    """
    Raises:
        ValidationError: Unknown ids.
        PreconditionError: The column is a key column shared through interleaving.
    """
    table = graph.table(table_id)
    column = graph.column(table, column_id)
    if column.not_null == not_null:
        return
    interleave.check_key_change(graph, table, column_id)
    column.not_null = not_null
    log.info("Set NOT NULL=%s on '%s.%s'.", not_null, table.name, column.name)


def update_column_size(graph: SchemaGraph, table_id: str, column_id: str, length: int) -> list[tuple[str, str]]:
    """
    Change the length of a STRING or BYTES column and of every linked column,
    keeping foreign key and interleaved columns the same size.

    Raises:
        ValidationError: Unknown ids, non-positive length or an unsized type.
        PreconditionError: A key column shared through interleaving would change.
    """
    table = graph.table(table_id)
    column = graph.column(table, column_id)
    if length <= 0:
        raise ValidationError("Column length must be positive.", ValidationError.MALFORMED_REQUEST)
    if column.type.length == length:
        return []

    linked = linked_columns(graph, table_id, column_id)
    for tid, cid in linked:
        target = graph.target_tables[tid].columns[cid]
        if target.type.base_name not in _SIZED_TYPES:
            raise ValidationError(
                f"Column '{graph.target_tables[tid].name}.{target.name}' of type "
                f"{target.type.name} has no length.",
                ValidationError.MALFORMED_REQUEST,
            )
    for tid, cid in linked:
        interleave.check_key_change(graph, graph.target_tables[tid], cid)

    for tid, cid in linked:
        graph.target_tables[tid].columns[cid].type.length = length

    _refresh(graph, {tid for tid, _ in linked})
    log.info("Set length of '%s.%s' to %d (%d column(s)).", table.name, column.name, length, len(linked))
    return linked
