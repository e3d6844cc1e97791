"""
core/session.py
---------------
The editing session: owns one schema graph and serialises every change to it.

Design Decisions:
    * Copy-on-write commits.  A mutation runs on a deep copy of the graph
      under the exclusive lock; the copy is checked against the structural
      invariants and swapped in only if the whole cascade succeeded.  A
      rejected edit therefore never leaves partial changes behind.
    * Readers (snapshots, status queries) share the lock and never block
      each other.
    * No file or network I/O happens while the lock is held.  ``save_to``
      takes the snapshot first and writes it afterwards; ``restore`` parses
      and checks the document before taking the lock.
    * Every operation returns the snapshot document of the committed graph
      so callers never observe a half-applied state.
"""
from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from config import CONFIG, SessionConfig
from core import column_ops, foreign_key_ops, index_ops, interleave, primary_key
from core.errors import InvariantViolation, SchemaEditError, ValidationError
from core.importer import import_schema
from core.invariants import check_invariants
from core.schema_graph import SchemaGraph
from core.snapshot_store import SNAPSHOT_VERSION, SnapshotStore, validate_document
from core.type_resolver import DefaultTypeResolver, TypeResolver
from logger import edit_logger, get_logger
from models.requests import (
    AddColumnRequest,
    ForeignKeyRequest,
    IndexRequest,
    InterleaveStatus,
    KeyPartSpec,
    PrimaryKeyRequest,
    SourceTableSpec,
)

log = get_logger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

Document = dict[str, Any]


class ReadWriteLock:
    """
    Many readers or one writer.  Waiting writers block new readers so a
    steady stream of snapshots cannot starve an edit.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def shared(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _request(model: type[M], **fields: Any) -> M:
    """Build a request model, reporting malformed input as a ValidationError."""
    try:
        return model(**fields)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Malformed {model.__name__}: {exc.errors()[0]['msg']}",
            ValidationError.MALFORMED_REQUEST,
        ) from exc


class Session:
    """
    One conversion's editable schema.

    Example::

        session = Session()
        session.load_schema([{"name": "users", "columns": [...], "primary_key": [...]}])
        column_id, doc = session.add_column("t1", "nickname", "STRING", length=64)
        doc = session.rename_column("t1", column_id, "alias")
    """

    def __init__(
        self,
        resolver: TypeResolver | None = None,
        config: SessionConfig | None = None,
    ) -> None:
        config = config or CONFIG.session
        self._resolver: TypeResolver = resolver or DefaultTypeResolver()
        self._dialect = config.dialect
        self._driver = config.driver
        self._synthetic_pk_name = config.synthetic_pk_name
        self._lock = ReadWriteLock()
        self._graph = SchemaGraph()

    # ------------------------------------------------------------------
    # Commit machinery
    # ------------------------------------------------------------------

    def _document(self, graph: SchemaGraph) -> Document:
        document: Document = {
            "version": SNAPSHOT_VERSION,
            "dialect": self._dialect,
            "driver": self._driver,
        }
        document.update(graph.to_dict())
        return document

    def _mutate(self, operation: str, change: Callable[[SchemaGraph], T]) -> tuple[T, Document]:
        elog = edit_logger(__name__, operation)
        with self._lock.exclusive():
            work = copy.deepcopy(self._graph)
            try:
                result = change(work)
            except SchemaEditError as exc:
                elog.warning("Rejected: %s", exc.message)
                raise
            problems = check_invariants(work)
            if problems:
                elog.error("Would break the schema graph: %s", "; ".join(problems))
                raise InvariantViolation(problems)
            self._graph = work
            elog.debug("Committed, id counter at %d", work.ids.value)
            return result, self._document(work)

    # ------------------------------------------------------------------
    # Whole-graph operations
    # ------------------------------------------------------------------

    def snapshot(self) -> Document:
        with self._lock.shared():
            return self._document(self._graph)

    def load_schema(self, tables: Iterable[SourceTableSpec | dict[str, Any]]) -> Document:
        """
        Replace the session contents with a freshly imported source schema.
        The identifier counter starts over.
        """
        specs = [
            t if isinstance(t, SourceTableSpec) else _request(SourceTableSpec, **t) for t in tables
        ]
        graph = import_schema(
            specs, self._resolver, self._dialect, self._driver, self._synthetic_pk_name
        )
        problems = check_invariants(graph)
        if problems:
            raise InvariantViolation(problems)
        with self._lock.exclusive():
            self._graph = graph
            return self._document(graph)

    def restore(self, document: Document) -> Document:
        """
        Replace the session contents with a snapshot document.

        The identifier counter never moves backwards: restoring an older
        snapshot keeps the session's current counter.

        Raises:
            ValueError: The document is malformed or inconsistent.
        """
        data = validate_document(document)
        graph = SchemaGraph.from_dict(data)
        problems = check_invariants(graph)
        if problems:
            raise ValueError(f"Inconsistent snapshot: {'; '.join(problems)}")
        with self._lock.exclusive():
            graph.ids.advance_to(max(graph.ids.value, self._graph.ids.value))
            self._graph = graph
            self._dialect = data["dialect"]
            self._driver = data["driver"]
            log.info("Restored snapshot with %d table(s).", len(graph.target_tables))
            return self._document(graph)

    def save_to(self, store: SnapshotStore) -> Document:
        document = self.snapshot()
        store.save(document)
        return document

    def load_from(self, store: SnapshotStore) -> Document | None:
        document = store.load()
        if document is None:
            return None
        return self.restore(document)

    def issue_summary(self) -> dict[str, dict[str, int]]:
        with self._lock.shared():
            return self._graph.issues.summary()

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def add_column(
        self,
        table_id: str,
        name: str,
        requested_type: str,
        length: int = 0,
        nullable: bool = True,
    ) -> tuple[str, Document]:
        request = _request(
            AddColumnRequest, name=name, type=requested_type, length=length, nullable=nullable
        )
        return self._mutate(
            "add_column",
            lambda g: column_ops.add_column(
                g, table_id, request, self._resolver, self._dialect, self._driver
            ),
        )

    def remove_column(self, table_id: str, column_id: str) -> Document:
        return self._mutate("remove_column", lambda g: column_ops.remove_column(g, table_id, column_id))[1]

    def rename_column(self, table_id: str, column_id: str, new_name: str) -> Document:
        return self._mutate(
            "rename_column", lambda g: column_ops.rename_column(g, table_id, column_id, new_name)
        )[1]

    def change_column_type(self, table_id: str, column_id: str, requested_type: str) -> Document:
        return self._mutate(
            "change_column_type",
            lambda g: column_ops.change_column_type(
                g, table_id, column_id, requested_type, self._resolver, self._dialect, self._driver
            ),
        )[1]

    def update_nullability(self, table_id: str, column_id: str, not_null: bool) -> Document:
        return self._mutate(
            "update_nullability",
            lambda g: column_ops.update_nullability(g, table_id, column_id, not_null),
        )[1]

    def update_column_size(self, table_id: str, column_id: str, length: int) -> Document:
        return self._mutate(
            "update_column_size",
            lambda g: column_ops.update_column_size(g, table_id, column_id, length),
        )[1]

    # ------------------------------------------------------------------
    # Primary key
    # ------------------------------------------------------------------

    def replace_primary_key(
        self, table_id: str, columns: Iterable[KeyPartSpec | dict[str, Any]]
    ) -> Document:
        request = _request(
            PrimaryKeyRequest,
            table_id=table_id,
            columns=[c if isinstance(c, KeyPartSpec) else _request(KeyPartSpec, **c) for c in columns],
        )
        return self._mutate(
            "replace_primary_key",
            lambda g: primary_key.replace_primary_key(g, request.table_id, request.columns),
        )[1]

    # ------------------------------------------------------------------
    # Interleaving
    # ------------------------------------------------------------------

    def interleave_status(self, table_id: str) -> InterleaveStatus:
        with self._lock.shared():
            return interleave.status(self._graph, table_id)

    def set_parent(
        self, table_id: str, parent_id: str | None = None, on_delete: str = ""
    ) -> tuple[InterleaveStatus, Document]:
        return self._mutate(
            "set_parent", lambda g: interleave.set_parent(g, table_id, parent_id, on_delete)
        )

    def remove_parent(self, table_id: str) -> tuple[InterleaveStatus, Document]:
        return self._mutate("remove_parent", lambda g: interleave.remove_parent(g, table_id))

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    def add_index(
        self,
        table_id: str,
        name: str,
        keys: Iterable[KeyPartSpec | dict[str, Any]],
        unique: bool = False,
    ) -> tuple[str, Document]:
        request = _request(
            IndexRequest,
            name=name,
            unique=unique,
            keys=[k if isinstance(k, KeyPartSpec) else _request(KeyPartSpec, **k) for k in keys],
        )
        return self._mutate("add_index", lambda g: index_ops.add_index(g, table_id, request))

    def rename_index(self, table_id: str, index_id: str, new_name: str) -> Document:
        return self._mutate(
            "rename_index", lambda g: index_ops.rename_index(g, table_id, index_id, new_name)
        )[1]

    def drop_index(self, table_id: str, index_id: str) -> Document:
        return self._mutate("drop_index", lambda g: index_ops.drop_index(g, table_id, index_id))[1]

    # ------------------------------------------------------------------
    # Foreign keys
    # ------------------------------------------------------------------

    def add_foreign_key(
        self,
        table_id: str,
        name: str,
        column_ids: list[str],
        refer_table_id: str,
        refer_column_ids: list[str],
        on_delete: str = "",
    ) -> tuple[str, Document]:
        request = _request(
            ForeignKeyRequest,
            name=name,
            column_ids=column_ids,
            refer_table_id=refer_table_id,
            refer_column_ids=refer_column_ids,
            on_delete=on_delete,
        )
        return self._mutate(
            "add_foreign_key", lambda g: foreign_key_ops.add_foreign_key(g, table_id, request)
        )

    def rename_foreign_key(self, table_id: str, fk_id: str, new_name: str) -> Document:
        return self._mutate(
            "rename_foreign_key",
            lambda g: foreign_key_ops.rename_foreign_key(g, table_id, fk_id, new_name),
        )[1]

    def drop_foreign_key(self, table_id: str, fk_id: str) -> Document:
        return self._mutate(
            "drop_foreign_key", lambda g: foreign_key_ops.drop_foreign_key(g, table_id, fk_id)
        )[1]
