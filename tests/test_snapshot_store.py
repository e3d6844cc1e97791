"""
tests/test_snapshot_store.py
----------------------------
Unit tests for core/snapshot_store.py and snapshot restore.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from core.schema_graph import SchemaGraph
from core.session import Session
from core.snapshot_store import SnapshotStore, validate_document

from tests.conftest import column_id, table_id


@pytest.fixture
def tmp_store(tmp_path: Path) -> SnapshotStore:
    """Returns a SnapshotStore backed by a temp file."""
    return SnapshotStore(tmp_path / "snapshots" / "session.json")


class TestSnapshotStore:
    def test_missing_file_loads_none(self, tmp_store: SnapshotStore) -> None:
        assert tmp_store.load() is None

    def test_save_and_reload(self, tmp_store: SnapshotStore, session: Session) -> None:
        document = session.save_to(tmp_store)
        assert tmp_store.exists()
        assert tmp_store.load() == document

    def test_no_temp_file_left(self, tmp_store: SnapshotStore, session: Session) -> None:
        session.save_to(tmp_store)
        assert not tmp_store.path.with_suffix(".tmp").exists()

    def test_corrupt_json(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            SnapshotStore(path).load()

    def test_unknown_version(self, tmp_path: Path, session: Session) -> None:
        document = session.snapshot()
        document["version"] = 99
        path = tmp_path / "future.json"
        path.write_text(json.dumps(document), encoding="utf-8")
        with pytest.raises(ValueError):
            SnapshotStore(path).load()

    def test_missing_counter_rejected(self, session: Session) -> None:
        document = session.snapshot()
        del document["id_counter"]
        with pytest.raises(ValueError):
            validate_document(document)


class TestRestore:
    def test_round_trip_reproduces_graph(self, tmp_store: SnapshotStore, session: Session) -> None:
        graph = SchemaGraph.from_dict(session.snapshot())
        tid = table_id(graph, "orders")
        session.rename_column(tid, column_id(graph, "orders", "note"), "remark")
        saved = session.save_to(tmp_store)

        fresh = Session()
        restored = fresh.load_from(tmp_store)
        assert restored == saved
        assert fresh.snapshot() == saved

    def test_graph_dict_round_trip(self, shop: SchemaGraph) -> None:
        assert SchemaGraph.from_dict(shop.to_dict()).to_dict() == shop.to_dict()

    def test_counter_never_moves_backwards(self, session: Session) -> None:
        old = session.snapshot()
        graph = SchemaGraph.from_dict(old)
        new_id, _ = session.add_column(table_id(graph, "orders"), "status", "STRING", 10)
        counter = session.snapshot()["id_counter"]

        session.restore(old)
        assert session.snapshot()["id_counter"] == counter
        again, _ = session.add_column(table_id(graph, "orders"), "status", "STRING", 10)
        assert again != new_id

    def test_inconsistent_document_rejected(self, session: Session) -> None:
        before = session.snapshot()
        broken = session.snapshot()
        orders = next(t for t in broken["target_tables"].values() if t["name"] == "orders")
        orders["primary_keys"].append({"column_id": "c999", "desc": False, "order": 2})
        with pytest.raises(ValueError):
            session.restore(broken)
        assert session.snapshot() == before

    def test_missing_column_def_rejected(self, session: Session) -> None:
        before = session.snapshot()
        broken = session.snapshot()
        orders = next(t for t in broken["target_tables"].values() if t["name"] == "orders")
        note = next(cid for cid, c in orders["columns"].items() if c["name"] == "note")
        del orders["columns"][note]
        with pytest.raises(ValueError):
            session.restore(broken)
        assert session.snapshot() == before

    def test_document_is_json_serialisable(self, session: Session) -> None:
        document = session.snapshot()
        assert json.loads(json.dumps(document)) == document
