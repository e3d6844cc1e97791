"""
core/invariants.py
------------------
Structural consistency checks run on a working copy before it is committed.

An empty result means the graph is consistent.  Anything else is an engine
bug: edits validate their input, so a violation here is never the user's
fault.
"""
from __future__ import annotations

from typing import Iterator

from core.schema_graph import SchemaGraph
from models.schema import Table


def _check_table_refs(label: str, table: Table, graph: SchemaGraph) -> list[str]:
    problems: list[str] = []
    if len(set(table.column_ids)) != len(table.column_ids):
        problems.append(f"{label} '{table.id}': duplicate entries in column order")
    if set(table.column_ids) != set(table.columns):
        problems.append(f"{label} '{table.id}': column order and column defs differ")
    names = [c.name.lower() for c in table.columns.values()]
    if len(set(names)) != len(names):
        problems.append(f"{label} '{table.id}': duplicate column name")

    orders = [k.order for k in table.primary_keys]
    if len(set(orders)) != len(orders):
        problems.append(f"{label} '{table.id}': duplicate primary key order")
    for key in table.primary_keys:
        if key.column_id not in table.columns:
            problems.append(f"{label} '{table.id}': key column '{key.column_id}' missing")

    for index in table.indexes:
        if not index.keys:
            problems.append(f"{label} '{table.id}': index '{index.id}' has no keys")
        for key in index.keys:
            if key.column_id not in table.columns:
                problems.append(
                    f"{label} '{table.id}': index '{index.id}' column '{key.column_id}' missing"
                )
    return problems


def _check_foreign_keys(table: Table, graph: SchemaGraph) -> list[str]:
    problems: list[str] = []
    for fk in table.foreign_keys:
        if len(fk.column_ids) != len(fk.refer_column_ids):
            problems.append(f"table '{table.id}': foreign key '{fk.id}' column count mismatch")
        refer = graph.target_tables.get(fk.refer_table_id)
        if refer is None:
            problems.append(f"table '{table.id}': foreign key '{fk.id}' refers to missing table")
            continue
        for column_id in fk.column_ids:
            if column_id not in table.columns:
                problems.append(f"table '{table.id}': foreign key '{fk.id}' column '{column_id}' missing")
        for column_id in fk.refer_column_ids:
            if column_id not in refer.columns:
                problems.append(
                    f"table '{table.id}': foreign key '{fk.id}' referenced column '{column_id}' missing"
                )
    return problems


def _check_interleave(table: Table, graph: SchemaGraph) -> list[str]:
    if not table.parent_id:
        return []
    parent = graph.target_tables.get(table.parent_id)
    if parent is None:
        return [f"table '{table.id}': parent '{table.parent_id}' missing"]
    child_first = table.first_pk_column()
    parent_first = parent.first_pk_column()
    if child_first is None or parent_first is None:
        return [f"table '{table.id}': interleaved without a primary key on both sides"]
    if child_first.name != parent_first.name or not child_first.type.same_shape(parent_first.type):
        return [
            f"table '{table.id}': first key column '{child_first.name}' does not match "
            f"parent key column '{parent_first.name}'"
        ]
    return []


def _check_cross_references(graph: SchemaGraph) -> list[str]:
    problems: list[str] = []
    for table_id, forward in graph.to_target.items():
        source = graph.source_tables.get(table_id)
        backward = graph.to_source.get(table_id)
        target = graph.target_tables.get(table_id)
        if source is None or target is None or backward is None:
            problems.append(f"cross reference '{table_id}': missing table or backward map")
            continue
        targets = list(forward.columns.values())
        if len(set(targets)) != len(targets):
            problems.append(f"cross reference '{table_id}': two source columns map to one target name")
        if len(forward.columns) != len(backward.columns):
            problems.append(f"cross reference '{table_id}': forward and backward maps differ in size")
        inverse = {t: s for s, t in forward.columns.items()}
        if inverse != backward.columns:
            problems.append(f"cross reference '{table_id}': forward and backward maps differ")

        source_names = {c.name for c in source.columns.values()}
        target_names = {c.name for c in target.columns.values()}
        for source_name, target_name in forward.columns.items():
            if source_name not in source_names:
                problems.append(f"cross reference '{table_id}': unknown source column '{source_name}'")
            if target_name not in target_names:
                problems.append(f"cross reference '{table_id}': unknown target column '{target_name}'")
    for table_id in graph.to_source:
        if table_id not in graph.to_target:
            problems.append(f"cross reference '{table_id}': backward map without forward map")
    return problems


def _issued_ids(graph: SchemaGraph) -> Iterator[str]:
    for tables in (graph.source_tables, graph.target_tables):
        for table in tables.values():
            yield table.id
            yield from table.column_ids
            yield from (i.id for i in table.indexes)
            yield from (fk.id for fk in table.foreign_keys)


def _check_counter(graph: SchemaGraph) -> list[str]:
    highest = max((int(i[1:]) for i in _issued_ids(graph) if i[1:].isdigit()), default=0)
    if highest > graph.ids.value:
        return [f"id counter {graph.ids.value} is behind issued id {highest}"]
    return []


def check_invariants(graph: SchemaGraph) -> list[str]:
    """Return a description of every consistency problem found in *graph*."""
    problems = _check_counter(graph)
    for table in graph.source_tables.values():
        problems.extend(_check_table_refs("source table", table, graph))
    for table in graph.target_tables.values():
        problems.extend(_check_table_refs("table", table, graph))
        problems.extend(_check_foreign_keys(table, graph))
        problems.extend(_check_interleave(table, graph))
    problems.extend(_check_cross_references(graph))

    for table_id, column_id in graph.synthetic_pks.items():
        table = graph.target_tables.get(table_id)
        if table is None or column_id not in table.columns:
            problems.append(f"synthetic key '{table_id}': column '{column_id}' missing")
    for table_id in graph.issues.table_ids():
        table = graph.target_tables.get(table_id)
        if table is None:
            problems.append(f"issues recorded for missing table '{table_id}'")
            continue
        for column_id in graph.issues.columns_with_issues(table_id):
            if column_id not in table.columns:
                problems.append(f"issues recorded for missing column '{table_id}.{column_id}'")
    return problems
