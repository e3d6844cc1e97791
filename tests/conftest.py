"""
tests/conftest.py
-----------------
Shared schema fixtures.

Two source schemas are used throughout:

* ``shop``: customers / orders / audit_log (MySQL types) with an
  auto-increment key, a foreign key and a table without a primary key.
* ``pair``: the classic interleave pair
  ``t1(a, b, c; PK a, b; FK a → t2.a)`` and ``t2(a, b, c; PK a)``.
"""
from __future__ import annotations

from typing import Any

import pytest

from core.importer import import_schema
from core.interleave import set_parent
from core.schema_graph import SchemaGraph
from core.session import Session
from core.type_resolver import DefaultTypeResolver
from models.requests import SourceTableSpec

DIALECT = "google_standard_sql"
DRIVER = "mysql"


def shop_tables() -> list[dict[str, Any]]:
    return [
        {
            "name": "customers",
            "columns": [
                {"name": "id", "type": "int", "not_null": True, "auto_increment": True},
                {"name": "name", "type": "varchar", "modifiers": [100]},
                {"name": "created_at", "type": "datetime", "has_default": True},
            ],
            "primary_key": [{"column": "id"}],
            "indexes": [{"name": "idx_customers_name", "keys": [{"column": "name"}]}],
        },
        {
            "name": "orders",
            "columns": [
                {"name": "id", "type": "bigint", "not_null": True},
                {"name": "customer_id", "type": "int"},
                {"name": "placed_at", "type": "timestamp"},
                {"name": "note", "type": "text"},
            ],
            "primary_key": [{"column": "id"}],
            "foreign_keys": [
                {
                    "name": "fk_orders_customer",
                    "columns": ["customer_id"],
                    "refer_table": "customers",
                    "refer_columns": ["id"],
                }
            ],
        },
        {
            "name": "audit_log",
            "columns": [
                {"name": "event", "type": "varchar", "modifiers": [50]},
                {"name": "at", "type": "datetime"},
            ],
        },
    ]


def pair_tables() -> list[dict[str, Any]]:
    columns = [
        {"name": "a", "type": "bigint", "not_null": True},
        {"name": "b", "type": "bigint"},
        {"name": "c", "type": "varchar", "modifiers": [20]},
    ]
    return [
        {
            "name": "t1",
            "columns": columns,
            "primary_key": [{"column": "a"}, {"column": "b"}],
            "foreign_keys": [
                {"name": "fk_t1_t2", "columns": ["a"], "refer_table": "t2", "refer_columns": ["a"]}
            ],
        },
        {"name": "t2", "columns": columns, "primary_key": [{"column": "a"}]},
    ]


def build_graph(tables: list[dict[str, Any]]) -> SchemaGraph:
    specs = [SourceTableSpec(**t) for t in tables]
    return import_schema(specs, DefaultTypeResolver(), DIALECT, DRIVER, "synth_id")


def table_id(graph: SchemaGraph, name: str) -> str:
    for table in graph.target_tables.values():
        if table.name == name:
            return table.id
    raise KeyError(name)


def column_id(graph: SchemaGraph, table_name: str, column_name: str) -> str:
    table = graph.target_tables[table_id(graph, table_name)]
    cid = table.column_id_by_name(column_name)
    if cid is None:
        raise KeyError(f"{table_name}.{column_name}")
    return cid


@pytest.fixture
def resolver() -> DefaultTypeResolver:
    return DefaultTypeResolver()


@pytest.fixture
def shop() -> SchemaGraph:
    return build_graph(shop_tables())


@pytest.fixture
def pair() -> SchemaGraph:
    """The t1/t2 pair, not yet interleaved (t1 is a candidate)."""
    return build_graph(pair_tables())


@pytest.fixture
def interleaved(pair: SchemaGraph) -> SchemaGraph:
    """The t1/t2 pair with t1 interleaved in t2."""
    set_parent(pair, table_id(pair, "t1"), table_id(pair, "t2"), "CASCADE")
    return pair


@pytest.fixture
def session() -> Session:
    s = Session(resolver=DefaultTypeResolver())
    s.load_schema(shop_tables())
    return s
