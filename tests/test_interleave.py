"""
tests/test_interleave.py
------------------------
Unit tests for core/interleave.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import pytest

from core import interleave
from core.errors import PreconditionError, ValidationError
from core.interleave import InterleaveState
from core.invariants import check_invariants
from core.schema_graph import SchemaGraph
from models.issues import INTERLEAVE_ISSUES, SchemaIssue
from models.schema import ForeignKey, IndexKey, SecondaryIndex

from tests.conftest import build_graph, column_id, pair_tables, table_id


def interleave_issues(graph: SchemaGraph, table: str, column: str) -> list[SchemaIssue]:
    return [
        i for i in graph.issues.issues_for(table_id(graph, table), column_id(graph, table, column))
        if i in INTERLEAVE_ISSUES
    ]


def with_child(columns: list[dict], primary_key: list[str], fk_column: str = "a") -> SchemaGraph:
    """The t1/t2 pair plus a table t3 pointing at t2.a through *fk_column*."""
    tables = pair_tables()
    tables.append(
        {
            "name": "t3",
            "columns": columns,
            "primary_key": [{"column": c} for c in primary_key],
            "foreign_keys": [
                {"name": "fk_t3_t2", "columns": [fk_column], "refer_table": "t2", "refer_columns": ["a"]}
            ],
        }
    )
    return build_graph(tables)


class TestAnalysis:
    def test_candidate_after_import(self, pair: SchemaGraph) -> None:
        status = interleave.status(pair, table_id(pair, "t1"))
        assert status.state == InterleaveState.CANDIDATE_PARENT.value
        assert status.parent == table_id(pair, "t2")
        assert interleave_issues(pair, "t1", "a") == [SchemaIssue.INTERLEAVE_ELIGIBLE]

    def test_parent_is_not_a_candidate(self, pair: SchemaGraph) -> None:
        status = interleave.status(pair, table_id(pair, "t2"))
        assert status.state == InterleaveState.NOT_INTERLEAVED.value
        assert not status.possible

    def test_order_mismatch(self) -> None:
        graph = with_child(
            [{"name": "x", "type": "bigint"}, {"name": "a", "type": "bigint"}], ["x", "a"]
        )
        assert interleave_issues(graph, "t3", "a") == [SchemaIssue.INTERLEAVE_ORDER_MISMATCH]

    def test_add_column(self) -> None:
        graph = with_child(
            [{"name": "x", "type": "bigint"}, {"name": "a", "type": "bigint"}], ["x"]
        )
        assert interleave_issues(graph, "t3", "a") == [SchemaIssue.INTERLEAVE_ADD_COLUMN]

    def test_rename_column(self) -> None:
        graph = with_child([{"name": "parent_a", "type": "bigint"}], ["parent_a"], fk_column="parent_a")
        assert interleave_issues(graph, "t3", "parent_a") == [SchemaIssue.INTERLEAVE_RENAME_COLUMN]

    def test_change_column_size(self) -> None:
        graph = with_child([{"name": "a", "type": "varchar", "modifiers": [10]}], ["a"])
        assert interleave_issues(graph, "t3", "a") == [SchemaIssue.INTERLEAVE_CHANGE_COLUMN_SIZE]

    def test_synthetic_key_never_eligible(self) -> None:
        graph = with_child([{"name": "a", "type": "bigint"}], [])
        t3 = table_id(graph, "t3")
        assert t3 in graph.synthetic_pks
        assert not interleave.can_interleave(graph, t3, table_id(graph, "t2"))
        assert interleave.status(graph, t3).comment == "Has synthetic pk"

    def test_analysis_is_idempotent(self, pair: SchemaGraph) -> None:
        before = pair.issues.to_dict()
        interleave.analyze(pair, pair.target_tables[table_id(pair, "t1")])
        assert pair.issues.to_dict() == before


class TestSetParent:
    def test_promotes_foreign_key(self, pair: SchemaGraph) -> None:
        t1 = table_id(pair, "t1")
        t2 = table_id(pair, "t2")
        status = interleave.set_parent(pair, t1, t2, "cascade")
        table = pair.target_tables[t1]
        assert status.state == InterleaveState.INTERLEAVED.value
        assert status.parent == t2
        assert table.parent_id == t2
        assert table.on_delete == "CASCADE"
        assert table.foreign_keys == []
        assert interleave_issues(pair, "t1", "a") == []
        assert check_invariants(pair) == []

    def test_picks_first_candidate(self, pair: SchemaGraph) -> None:
        status = interleave.set_parent(pair, table_id(pair, "t1"))
        assert status.parent == table_id(pair, "t2")

    def test_releases_foreign_key_name(self, pair: SchemaGraph) -> None:
        interleave.set_parent(pair, table_id(pair, "t1"), table_id(pair, "t2"))
        assert "fk_t1_t2" not in pair.used_names()

    def test_not_eligible(self, pair: SchemaGraph) -> None:
        t2 = table_id(pair, "t2")
        with pytest.raises(PreconditionError) as exc_info:
            interleave.set_parent(pair, t2, table_id(pair, "t1"))
        assert exc_info.value.blocking == "t1"

    def test_already_interleaved(self, interleaved: SchemaGraph) -> None:
        with pytest.raises(PreconditionError) as exc_info:
            interleave.set_parent(interleaved, table_id(interleaved, "t1"), table_id(interleaved, "t2"))
        assert exc_info.value.blocking == "t2"

    def test_invalid_on_delete(self, pair: SchemaGraph) -> None:
        with pytest.raises(ValidationError) as exc_info:
            interleave.set_parent(pair, table_id(pair, "t1"), table_id(pair, "t2"), "SET NULL")
        assert exc_info.value.code == ValidationError.INVALID_ON_DELETE

    def test_cycle_rejected(self, interleaved: SchemaGraph) -> None:
        t1 = table_id(interleaved, "t1")
        t2 = table_id(interleaved, "t2")
        interleaved.target_tables[t2].foreign_keys.append(
            ForeignKey(
                id=interleaved.ids.foreign_key_id(),
                name="fk_t2_t1",
                column_ids=[column_id(interleaved, "t2", "a")],
                refer_table_id=t1,
                refer_column_ids=[column_id(interleaved, "t1", "a")],
            )
        )
        assert not interleave.can_interleave(interleaved, t2, t1)

    def test_reruns_index_detectors(self, pair: SchemaGraph) -> None:
        t1 = table_id(pair, "t1")
        c = column_id(pair, "t1", "c")
        pair.issues.add(t1, c, SchemaIssue.REDUNDANT_INDEX)
        interleave.set_parent(pair, t1, table_id(pair, "t2"))
        assert not pair.issues.has(t1, c, SchemaIssue.REDUNDANT_INDEX)
        assert check_invariants(pair) == []


class TestRemoveParent:
    def test_demotes_to_foreign_key(self, interleaved: SchemaGraph) -> None:
        t1 = table_id(interleaved, "t1")
        t2 = table_id(interleaved, "t2")
        status = interleave.remove_parent(interleaved, t1)
        table = interleaved.target_tables[t1]
        assert table.parent_id == ""
        assert len(table.foreign_keys) == 1
        fk = table.foreign_keys[0]
        assert fk.name == "fk_t1_t2"
        assert fk.id.startswith("f")
        assert fk.refer_table_id == t2
        assert fk.column_ids == [column_id(interleaved, "t1", "a")]
        assert fk.refer_column_ids == [column_id(interleaved, "t2", "a")]
        assert fk.on_delete == "CASCADE"
        assert status.state == InterleaveState.CANDIDATE_PARENT.value
        assert interleave_issues(interleaved, "t1", "a") == [SchemaIssue.INTERLEAVE_ELIGIBLE]
        assert check_invariants(interleaved) == []

    def test_generated_name_is_unique(self, interleaved: SchemaGraph) -> None:
        t2 = interleaved.target_tables[table_id(interleaved, "t2")]
        t2.indexes.append(
            SecondaryIndex(id=interleaved.ids.index_id(), name="fk_t1_t2",
                           keys=[IndexKey(column_id=column_id(interleaved, "t2", "b"))])
        )
        interleave.remove_parent(interleaved, table_id(interleaved, "t1"))
        fk = interleaved.target_tables[table_id(interleaved, "t1")].foreign_keys[0]
        assert fk.name == "fk_t1_t2_1"

    def test_not_interleaved(self, pair: SchemaGraph) -> None:
        with pytest.raises(ValidationError) as exc_info:
            interleave.remove_parent(pair, table_id(pair, "t1"))
        assert exc_info.value.code == ValidationError.NOT_INTERLEAVED

    def test_reruns_detectors(self, interleaved: SchemaGraph) -> None:
        t1 = table_id(interleaved, "t1")
        table = interleaved.target_tables[t1]
        a = column_id(interleaved, "t1", "a")
        c = column_id(interleaved, "t1", "c")
        table.indexes.append(
            SecondaryIndex(id=interleaved.ids.index_id(), name="idx_t1_a", keys=[IndexKey(column_id=a)])
        )
        interleaved.issues.add(t1, c, SchemaIssue.REDUNDANT_INDEX)
        interleave.remove_parent(interleaved, t1)
        assert interleaved.issues.has(t1, a, SchemaIssue.REDUNDANT_INDEX)
        assert not interleaved.issues.has(t1, c, SchemaIssue.REDUNDANT_INDEX)


class TestKeyChangeGuard:
    def test_parent_key_names_child(self, interleaved: SchemaGraph) -> None:
        t2 = interleaved.target_tables[table_id(interleaved, "t2")]
        with pytest.raises(PreconditionError) as exc_info:
            interleave.check_key_change(interleaved, t2, column_id(interleaved, "t2", "a"))
        assert exc_info.value.blocking == "t1"

    def test_non_key_column_free(self, interleaved: SchemaGraph) -> None:
        t2 = interleaved.target_tables[table_id(interleaved, "t2")]
        interleave.check_key_change(interleaved, t2, column_id(interleaved, "t2", "c"))

    def test_uninterleaved_table_free(self, pair: SchemaGraph) -> None:
        t2 = pair.target_tables[table_id(pair, "t2")]
        interleave.check_key_change(pair, t2, column_id(pair, "t2", "a"))
