"""
tests/test_index_fk.py
----------------------
Unit tests for core/index_ops.py and core/foreign_key_ops.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import pytest

from core import foreign_key_ops, index_ops
from core.errors import ValidationError
from core.invariants import check_invariants
from core.primary_key import replace_primary_key
from core.schema_graph import SchemaGraph
from models.issues import SchemaIssue
from models.requests import ForeignKeyRequest, IndexRequest, KeyPartSpec

from tests.conftest import build_graph, column_id, table_id


def index_request(name: str, *column_ids: str, unique: bool = False) -> IndexRequest:
    return IndexRequest(
        name=name,
        unique=unique,
        keys=[KeyPartSpec(column_id=cid, order=n) for n, cid in enumerate(column_ids, start=1)],
    )


class TestAddIndex:
    def test_allocates_index_id(self, shop: SchemaGraph) -> None:
        tid = table_id(shop, "orders")
        iid = index_ops.add_index(shop, tid, index_request("idx_orders_placed", column_id(shop, "orders", "placed_at")))
        assert iid.startswith("i")
        assert shop.target_tables[tid].index_by_id(iid).name == "idx_orders_placed"
        assert check_invariants(shop) == []

    def test_redundant_with_primary_key(self, shop: SchemaGraph) -> None:
        tid = table_id(shop, "orders")
        id_col = column_id(shop, "orders", "id")
        index_ops.add_index(
            shop, tid, index_request("idx_orders_id_note", id_col, column_id(shop, "orders", "note"))
        )
        assert shop.issues.has(tid, id_col, SchemaIssue.REDUNDANT_INDEX)

    def test_name_collides_with_table(self, shop: SchemaGraph) -> None:
        with pytest.raises(ValidationError) as exc_info:
            index_ops.add_index(
                shop, table_id(shop, "orders"), index_request("Customers", column_id(shop, "orders", "note"))
            )
        assert exc_info.value.code == ValidationError.DUPLICATE_NAME

    def test_unknown_column(self, shop: SchemaGraph) -> None:
        with pytest.raises(ValidationError) as exc_info:
            index_ops.add_index(shop, table_id(shop, "orders"), index_request("idx_x", "c999"))
        assert exc_info.value.code == ValidationError.UNKNOWN_COLUMN

    def test_duplicate_order(self, shop: SchemaGraph) -> None:
        request = IndexRequest(
            name="idx_dup",
            keys=[
                KeyPartSpec(column_id=column_id(shop, "orders", "note"), order=1),
                KeyPartSpec(column_id=column_id(shop, "orders", "placed_at"), order=1),
            ],
        )
        with pytest.raises(ValidationError) as exc_info:
            index_ops.add_index(shop, table_id(shop, "orders"), request)
        assert exc_info.value.code == ValidationError.DUPLICATE_ORDER


class TestRenameAndDropIndex:
    def test_rename(self, shop: SchemaGraph) -> None:
        tid = table_id(shop, "customers")
        index = shop.target_tables[tid].indexes[0]
        index_ops.rename_index(shop, tid, index.id, "idx_customer_names")
        assert shop.target_tables[tid].indexes[0].name == "idx_customer_names"

    def test_rename_to_used_name(self, shop: SchemaGraph) -> None:
        tid = table_id(shop, "customers")
        index = shop.target_tables[tid].indexes[0]
        with pytest.raises(ValidationError):
            index_ops.rename_index(shop, tid, index.id, "fk_orders_customer")

    def test_drop_clears_redundancy(self, shop: SchemaGraph) -> None:
        tid = table_id(shop, "orders")
        id_col = column_id(shop, "orders", "id")
        iid = index_ops.add_index(shop, tid, index_request("idx_orders_id", id_col))
        index_ops.drop_index(shop, tid, iid)
        assert shop.target_tables[tid].index_by_id(iid) is None
        assert not shop.issues.has(tid, id_col, SchemaIssue.REDUNDANT_INDEX)

    def test_drop_unknown(self, shop: SchemaGraph) -> None:
        with pytest.raises(ValidationError) as exc_info:
            index_ops.drop_index(shop, table_id(shop, "orders"), "i999")
        assert exc_info.value.code == ValidationError.UNKNOWN_INDEX


class TestIndexSuggestions:
    def test_foreign_key_lead_suggests_interleaved_index(self, shop: SchemaGraph) -> None:
        tid = table_id(shop, "orders")
        customer_id = column_id(shop, "orders", "customer_id")
        iid = index_ops.add_index(shop, tid, index_request("idx_orders_customer", customer_id))
        assert shop.issues.has(tid, customer_id, SchemaIssue.INTERLEAVE_INDEX)
        assert not shop.issues.has(tid, customer_id, SchemaIssue.AUTO_INCREMENT_INDEX)

        index_ops.drop_index(shop, tid, iid)
        assert not shop.issues.has(tid, customer_id, SchemaIssue.INTERLEAVE_INDEX)

    def test_timestamp_lead_flagged(self, shop: SchemaGraph) -> None:
        tid = table_id(shop, "orders")
        placed = column_id(shop, "orders", "placed_at")
        iid = index_ops.add_index(shop, tid, index_request("idx_orders_placed", placed))
        assert shop.issues.has(tid, placed, SchemaIssue.AUTO_INCREMENT_INDEX)
        assert not shop.issues.has(tid, placed, SchemaIssue.INTERLEAVE_INDEX)

        index_ops.drop_index(shop, tid, iid)
        assert not shop.issues.has(tid, placed, SchemaIssue.AUTO_INCREMENT_INDEX)

    def test_auto_increment_lead_flagged(self) -> None:
        graph = build_graph([
            {
                "name": "events",
                "columns": [
                    {"name": "id", "type": "bigint", "not_null": True},
                    {"name": "seq", "type": "int", "auto_increment": True},
                ],
                "primary_key": [{"column": "id"}],
                "indexes": [{"name": "idx_events_seq", "keys": [{"column": "seq"}]}],
            }
        ])
        tid = table_id(graph, "events")
        assert graph.issues.has(tid, column_id(graph, "events", "seq"), SchemaIssue.AUTO_INCREMENT_INDEX)

    def test_redundant_index_gets_no_other_suggestion(self, shop: SchemaGraph) -> None:
        tid = table_id(shop, "customers")
        id_col = column_id(shop, "customers", "id")
        index_ops.add_index(shop, tid, index_request("idx_customers_id", id_col))
        assert shop.issues.has(tid, id_col, SchemaIssue.REDUNDANT_INDEX)
        assert not shop.issues.has(tid, id_col, SchemaIssue.AUTO_INCREMENT_INDEX)

    def test_follows_foreign_key_changes(self, shop: SchemaGraph) -> None:
        tid = table_id(shop, "orders")
        customer_id = column_id(shop, "orders", "customer_id")
        index_ops.add_index(shop, tid, index_request("idx_orders_customer", customer_id))
        fk = shop.target_tables[tid].foreign_keys[0]

        foreign_key_ops.drop_foreign_key(shop, tid, fk.id)
        assert not shop.issues.has(tid, customer_id, SchemaIssue.INTERLEAVE_INDEX)

        foreign_key_ops.add_foreign_key(
            shop, tid,
            ForeignKeyRequest(
                name="fk_orders_customer",
                column_ids=[customer_id],
                refer_table_id=table_id(shop, "customers"),
                refer_column_ids=[column_id(shop, "customers", "id")],
            ),
        )
        assert shop.issues.has(tid, customer_id, SchemaIssue.INTERLEAVE_INDEX)

    def test_follows_primary_key_changes(self, shop: SchemaGraph) -> None:
        tid = table_id(shop, "orders")
        customer_id = column_id(shop, "orders", "customer_id")
        index_ops.add_index(shop, tid, index_request("idx_orders_customer", customer_id))

        replace_primary_key(
            shop, tid,
            [KeyPartSpec(column_id=customer_id, order=1),
             KeyPartSpec(column_id=column_id(shop, "orders", "id"), order=2)],
        )
        assert shop.issues.has(tid, customer_id, SchemaIssue.REDUNDANT_INDEX)
        assert not shop.issues.has(tid, customer_id, SchemaIssue.INTERLEAVE_INDEX)
        assert check_invariants(shop) == []


class TestForeignKeys:
    def _orders_fk(self, shop: SchemaGraph):
        return shop.target_tables[table_id(shop, "orders")].foreign_keys[0]

    def test_arity_mismatch(self, shop: SchemaGraph) -> None:
        request = ForeignKeyRequest(
            name="fk_bad",
            column_ids=[column_id(shop, "orders", "customer_id"), column_id(shop, "orders", "note")],
            refer_table_id=table_id(shop, "customers"),
            refer_column_ids=[column_id(shop, "customers", "id")],
        )
        with pytest.raises(ValidationError) as exc_info:
            foreign_key_ops.add_foreign_key(shop, table_id(shop, "orders"), request)
        assert exc_info.value.code == ValidationError.MALFORMED_FOREIGN_KEY

    def test_unknown_referenced_table(self, shop: SchemaGraph) -> None:
        request = ForeignKeyRequest(
            name="fk_ghost",
            column_ids=[column_id(shop, "orders", "customer_id")],
            refer_table_id="t999",
            refer_column_ids=["c1"],
        )
        with pytest.raises(ValidationError) as exc_info:
            foreign_key_ops.add_foreign_key(shop, table_id(shop, "orders"), request)
        assert exc_info.value.code == ValidationError.UNKNOWN_TABLE

    def test_drop_removes_guidance_and_add_restores_it(self, shop: SchemaGraph) -> None:
        tid = table_id(shop, "orders")
        customer_id = column_id(shop, "orders", "customer_id")
        fk = self._orders_fk(shop)

        foreign_key_ops.drop_foreign_key(shop, tid, fk.id)
        assert shop.target_tables[tid].foreign_keys == []
        assert not shop.issues.has(tid, customer_id, SchemaIssue.INTERLEAVE_ADD_COLUMN)

        new_id = foreign_key_ops.add_foreign_key(
            shop, tid,
            ForeignKeyRequest(
                name="fk_orders_customer",
                column_ids=[customer_id],
                refer_table_id=table_id(shop, "customers"),
                refer_column_ids=[column_id(shop, "customers", "id")],
                on_delete="no action",
            ),
        )
        assert new_id != fk.id
        assert self._orders_fk(shop).on_delete == "NO ACTION"
        assert shop.issues.has(tid, customer_id, SchemaIssue.INTERLEAVE_ADD_COLUMN)
        assert check_invariants(shop) == []

    def test_duplicate_name(self, shop: SchemaGraph) -> None:
        request = ForeignKeyRequest(
            name="FK_ORDERS_CUSTOMER",
            column_ids=[column_id(shop, "orders", "customer_id")],
            refer_table_id=table_id(shop, "customers"),
            refer_column_ids=[column_id(shop, "customers", "id")],
        )
        with pytest.raises(ValidationError) as exc_info:
            foreign_key_ops.add_foreign_key(shop, table_id(shop, "orders"), request)
        assert exc_info.value.code == ValidationError.DUPLICATE_NAME

    def test_rename(self, shop: SchemaGraph) -> None:
        tid = table_id(shop, "orders")
        fk = self._orders_fk(shop)
        foreign_key_ops.rename_foreign_key(shop, tid, fk.id, "fk_customer")
        assert self._orders_fk(shop).name == "fk_customer"
        assert "fk_orders_customer" not in shop.used_names()

    def test_drop_unknown(self, shop: SchemaGraph) -> None:
        with pytest.raises(ValidationError) as exc_info:
            foreign_key_ops.drop_foreign_key(shop, table_id(shop, "orders"), "f999")
        assert exc_info.value.code == ValidationError.UNKNOWN_FOREIGN_KEY
