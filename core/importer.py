"""
core/importer.py
----------------
Builds a fresh :class:`SchemaGraph` from source table descriptions.

Steps:
    1. Assign ids: tables in name order, then per table its columns (in
       declaration order), key, indexes, and finally all foreign keys.
    2. Mirror every source table and derive its target table through the
       type resolver, attaching the resolver's issues.
    3. Give tables without a primary key a synthetic key column.
    4. Record the name cross references and run the detectors and
       interleave analysis once over the whole graph.

Foreign keys that reference a table missing from the input are dropped and
reported with ``FOREIGN_KEY_DROPPED`` on the owning table.
"""
from __future__ import annotations

from typing import Iterable

from config import CONFIG
from core import detectors, interleave
from core.errors import ValidationError
from core.schema_graph import SchemaGraph
from core.type_resolver import TargetType, TypeResolver
from logger import get_logger
from models.issues import SchemaIssue
from models.requests import SourceKeyPartSpec, SourceTableSpec
from models.schema import (
    Column,
    ColumnType,
    ForeignKey,
    IndexKey,
    NameMapping,
    SecondaryIndex,
    Table,
)

log = get_logger(__name__)

_SYNTHETIC_PK_LENGTH = 50


def _key_parts(table: Table, parts: Iterable[SourceKeyPartSpec], what: str) -> list[IndexKey]:
    keys: list[IndexKey] = []
    for order, part in enumerate(parts, start=1):
        column_id = table.column_id_by_name(part.column)
        if column_id is None:
            raise ValidationError(
                f"{what} of table '{table.name}' references unknown column '{part.column}'.",
                ValidationError.UNKNOWN_COLUMN,
            )
        keys.append(IndexKey(column_id=column_id, desc=part.desc, order=order))
    return keys


def _source_table(graph: SchemaGraph, table_id: str, spec: SourceTableSpec) -> Table:
    table = Table(id=table_id, name=spec.name)
    for col in spec.columns:
        if table.column_id_by_name(col.name) is not None:
            raise ValidationError(
                f"Table '{spec.name}' declares column '{col.name}' twice.",
                ValidationError.DUPLICATE_NAME,
            )
        column = Column(
            id=graph.ids.column_id(),
            name=col.name,
            type=ColumnType(
                name=col.type,
                modifiers=list(col.modifiers),
                array_bounds=list(col.array_bounds),
            ),
            not_null=col.not_null,
            comment=col.comment,
            auto_increment=col.auto_increment,
            has_default=col.has_default,
        )
        table.columns[column.id] = column
        table.column_ids.append(column.id)
    table.primary_keys = _key_parts(table, spec.primary_key, "Primary key")
    for idx in spec.indexes:
        table.indexes.append(
            SecondaryIndex(
                id=graph.ids.index_id(),
                name=idx.name,
                unique=idx.unique,
                keys=_key_parts(table, idx.keys, f"Index '{idx.name}'"),
            )
        )
    return table


def _target_table(
    graph: SchemaGraph, source: Table, resolver: TypeResolver, dialect: str, driver: str
) -> Table:
    table = Table(id=source.id, name=source.name)
    for src_col in source.ordered_columns():
        resolved = resolver.resolve(src_col, "", dialect, driver)
        table.columns[src_col.id] = Column(
            id=src_col.id,
            name=src_col.name,
            type=resolved.type,
            not_null=src_col.not_null,
            comment=src_col.comment,
            options=dict(resolved.options),
        )
        table.column_ids.append(src_col.id)
        graph.issues.add_all(table.id, src_col.id, resolved.issues)

    table.primary_keys = [IndexKey(k.column_id, k.desc, k.order) for k in source.primary_keys]
    return table


def _add_synthetic_key(graph: SchemaGraph, table: Table, name: str) -> None:
    used = {c.name.lower() for c in table.columns.values()}
    candidate = name
    n = 1
    while candidate.lower() in used:
        candidate = f"{name}_{n}"
        n += 1
    column = Column(
        id=graph.ids.column_id(),
        name=candidate,
        type=ColumnType(name=TargetType.STRING, length=_SYNTHETIC_PK_LENGTH),
        not_null=True,
    )
    table.columns[column.id] = column
    table.column_ids.append(column.id)
    table.primary_keys = [IndexKey(column_id=column.id, order=1)]
    graph.synthetic_pks[table.id] = column.id
    graph.issues.add(table.id, None, SchemaIssue.MISSING_PRIMARY_KEY)
    log.debug("Added synthetic key '%s' to '%s'.", candidate, table.name)


def import_schema(
    specs: Iterable[SourceTableSpec],
    resolver: TypeResolver,
    dialect: str,
    driver: str,
    synthetic_pk_name: str | None = None,
) -> SchemaGraph:
    """
    Build a new graph (with a fresh allocator) from *specs*.

    Raises:
        ValidationError: Duplicate table or column names, unknown key columns.
        ResolutionError: The resolver rejected the driver or a column type.
    """
    synthetic_pk_name = synthetic_pk_name or CONFIG.session.synthetic_pk_name
    ordered = sorted(specs, key=lambda s: s.name)
    seen: set[str] = set()
    for spec in ordered:
        if spec.name.lower() in seen:
            raise ValidationError(
                f"Table '{spec.name}' is declared twice.", ValidationError.DUPLICATE_NAME
            )
        seen.add(spec.name.lower())

    graph = SchemaGraph()
    table_ids = {spec.name: graph.ids.table_id() for spec in ordered}

    for spec in ordered:
        table_id = table_ids[spec.name]
        source = _source_table(graph, table_id, spec)
        graph.source_tables[table_id] = source
        target = _target_table(graph, source, resolver, dialect, driver)
        graph.target_tables[table_id] = target
        mapping = {c.name: c.name for c in source.ordered_columns()}
        graph.to_target[table_id] = NameMapping(name=target.name, columns=dict(mapping))
        graph.to_source[table_id] = NameMapping(name=source.name, columns=dict(mapping))

    for spec in ordered:
        source = graph.source_tables[table_ids[spec.name]]
        target = graph.target_tables[source.id]
        for index in source.indexes:
            target.indexes.append(
                SecondaryIndex(
                    id=index.id,
                    name=graph.unique_name(index.name),
                    unique=index.unique,
                    keys=[IndexKey(k.column_id, k.desc, k.order) for k in index.keys],
                )
            )
        if not target.primary_keys:
            _add_synthetic_key(graph, target, synthetic_pk_name)

    for spec in ordered:
        source = graph.source_tables[table_ids[spec.name]]
        target = graph.target_tables[source.id]
        for fk_spec in spec.foreign_keys:
            refer_id = table_ids.get(fk_spec.refer_table)
            if refer_id is None or len(fk_spec.columns) != len(fk_spec.refer_columns):
                log.warning(
                    "Dropping foreign key '%s' of '%s': cannot resolve '%s'.",
                    fk_spec.name, spec.name, fk_spec.refer_table,
                )
                graph.issues.add(source.id, None, SchemaIssue.FOREIGN_KEY_DROPPED)
                continue
            refer = graph.source_tables[refer_id]
            column_ids = [source.column_id_by_name(c) for c in fk_spec.columns]
            refer_column_ids = [refer.column_id_by_name(c) for c in fk_spec.refer_columns]
            if None in column_ids or None in refer_column_ids:
                log.warning("Dropping foreign key '%s' of '%s': unknown column.", fk_spec.name, spec.name)
                graph.issues.add(source.id, None, SchemaIssue.FOREIGN_KEY_DROPPED)
                continue
            fk_id = graph.ids.foreign_key_id()
            source.foreign_keys.append(
                ForeignKey(fk_id, fk_spec.name, column_ids, refer_id, refer_column_ids, fk_spec.on_delete)
            )
            target.foreign_keys.append(
                ForeignKey(
                    fk_id,
                    graph.unique_name(fk_spec.name) if fk_spec.name else "",
                    list(column_ids),
                    refer_id,
                    list(refer_column_ids),
                    fk_spec.on_delete.upper(),
                )
            )

    for table in graph.tables():
        detectors.detect_hotspots(graph, table)
        detectors.detect_redundant_indexes(graph, table)
    for table in graph.tables():
        interleave.analyze(graph, table)

    log.info(
        "Imported %d table(s) from %s (%s dialect); id counter at %d.",
        len(graph.target_tables), driver, dialect, graph.ids.value,
    )
    return graph
