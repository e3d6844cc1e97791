"""
core/interleave.py
------------------
Parent/child interleaving: eligibility analysis, guidance issues, promotion
of a foreign key into a parent pointer and demotion back.

A table can be interleaved under a parent when one of its foreign keys
references the parent's first-order key column from the table's own
first-order key column, and both columns agree in name, base type and
length.  When the match fails in a way the user can fix, the foreign key
column carries exactly one guidance issue telling them how.

Design Decisions:
    * Evaluation (:func:`find_candidate`, :func:`status`) is side-effect
      free so it can run under a shared lock; :func:`analyze` is the only
      function writing guidance issues.
    * A table with a synthetic key is never eligible, on either side.
"""
from __future__ import annotations

from enum import Enum

from core import detectors
from core.errors import PreconditionError, ValidationError
from core.schema_graph import SchemaGraph
from logger import get_logger
from models.issues import INTERLEAVE_ISSUES, SchemaIssue
from models.requests import InterleaveStatus
from models.schema import ForeignKey, IndexKey, Table

log = get_logger(__name__)

ON_DELETE_ACTIONS = frozenset({"", "CASCADE", "NO ACTION"})


class InterleaveState(str, Enum):
    NOT_INTERLEAVED = "NOT_INTERLEAVED"
    CANDIDATE_PARENT = "CANDIDATE_PARENT"
    INTERLEAVED = "INTERLEAVED"


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def _would_cycle(graph: SchemaGraph, table_id: str, parent_id: str) -> bool:
    seen: set[str] = set()
    current = parent_id
    while current and current not in seen:
        if current == table_id:
            return True
        seen.add(current)
        ancestor = graph.target_tables.get(current)
        current = ancestor.parent_id if ancestor else ""
    return False


def _evaluate_fk(
    graph: SchemaGraph, table: Table, fk: ForeignKey
) -> tuple[str | None, SchemaIssue | None]:
    """
    Check one foreign key as an interleave route.

    Returns:
        (column id, issue) where issue is ``INTERLEAVE_ELIGIBLE`` for a
        usable route, a guidance issue for a fixable one, or ``(None, None)``
        when the foreign key is not a route at all.
    """
    parent = graph.target_tables.get(fk.refer_table_id)
    if parent is None or parent.id == table.id or parent.id in graph.synthetic_pks:
        return None, None
    parent_first = parent.first_pk()
    if parent_first is None or parent_first.column_id not in fk.refer_column_ids:
        return None, None

    position = fk.refer_column_ids.index(parent_first.column_id)
    column_id = fk.column_ids[position]
    child_col = table.columns.get(column_id)
    parent_col = parent.columns.get(parent_first.column_id)
    if child_col is None or parent_col is None:
        return None, None

    entry = table.pk_entry(column_id)
    if entry is None:
        return column_id, SchemaIssue.INTERLEAVE_ADD_COLUMN
    if child_col.name != parent_col.name:
        return column_id, SchemaIssue.INTERLEAVE_RENAME_COLUMN
    if not child_col.type.same_shape(parent_col.type):
        return column_id, SchemaIssue.INTERLEAVE_CHANGE_COLUMN_SIZE
    if entry.order != table.first_pk().order:
        return column_id, SchemaIssue.INTERLEAVE_ORDER_MISMATCH
    if table.id in graph.synthetic_pks or _would_cycle(graph, table.id, parent.id):
        return None, None
    return column_id, SchemaIssue.INTERLEAVE_ELIGIBLE


def find_candidate(graph: SchemaGraph, table: Table) -> ForeignKey | None:
    """The first foreign key through which *table* can be interleaved."""
    for fk in table.foreign_keys:
        _, issue = _evaluate_fk(graph, table, fk)
        if issue == SchemaIssue.INTERLEAVE_ELIGIBLE:
            return fk
    return None


def can_interleave(graph: SchemaGraph, table_id: str, parent_id: str) -> bool:
    table = graph.table(table_id)
    if table.parent_id:
        return False
    return any(
        fk.refer_table_id == parent_id
        and _evaluate_fk(graph, table, fk)[1] == SchemaIssue.INTERLEAVE_ELIGIBLE
        for fk in table.foreign_keys
    )


def status(graph: SchemaGraph, table_id: str) -> InterleaveStatus:
    table = graph.table(table_id)
    if table.parent_id:
        return InterleaveStatus(
            table_id=table_id,
            state=InterleaveState.INTERLEAVED.value,
            possible=True,
            parent=table.parent_id,
            on_delete=table.on_delete,
        )
    if table_id in graph.synthetic_pks:
        return InterleaveStatus(
            table_id=table_id, state=InterleaveState.NOT_INTERLEAVED.value, comment="Has synthetic pk"
        )
    candidate = find_candidate(graph, table)
    if candidate is None:
        return InterleaveStatus(
            table_id=table_id, state=InterleaveState.NOT_INTERLEAVED.value, comment="No valid prefix"
        )
    return InterleaveStatus(
        table_id=table_id,
        state=InterleaveState.CANDIDATE_PARENT.value,
        possible=True,
        parent=candidate.refer_table_id,
    )


# ---------------------------------------------------------------------------
# Guidance issues
# ---------------------------------------------------------------------------

def clear_guidance(graph: SchemaGraph, table: Table) -> None:
    for column_id in table.column_ids:
        graph.issues.remove_all(table.id, column_id, INTERLEAVE_ISSUES)


def analyze(graph: SchemaGraph, table: Table) -> None:
    """
    Recompute interleave guidance for *table*.

    Each foreign key column ends up with at most one interleave issue.  The
    first foreign key to reach a column decides its issue.
    """
    clear_guidance(graph, table)
    if table.parent_id:
        return
    decided: set[str] = set()
    for fk in table.foreign_keys:
        column_id, issue = _evaluate_fk(graph, table, fk)
        if column_id is None or issue is None or column_id in decided:
            continue
        decided.add(column_id)
        graph.issues.add(table.id, column_id, issue)
        log.debug("Interleave guidance for '%s.%s': %s", table.name, column_id, issue.value)


def analyze_related(graph: SchemaGraph, table_id: str) -> None:
    """Re-run analysis for *table_id* and every table referencing it."""
    table = graph.target_tables.get(table_id)
    if table is not None:
        analyze(graph, table)
    for other, _ in graph.referencing_foreign_keys(table_id):
        if other.id != table_id:
            analyze(graph, other)


# ---------------------------------------------------------------------------
# Promotion / demotion
# ---------------------------------------------------------------------------

def _refresh(graph: SchemaGraph, table: Table) -> None:
    detectors.detect_hotspots(graph, table)
    detectors.detect_redundant_indexes(graph, table)
    analyze_related(graph, table.id)


def set_parent(
    graph: SchemaGraph, table_id: str, parent_id: str | None = None, on_delete: str = ""
) -> InterleaveStatus:
    """
    Interleave *table_id* under *parent_id* (or its first eligible parent).

    The foreign key that made the table eligible is replaced by the parent
    pointer; its name becomes free again.

    Raises:
        ValidationError: Unknown tables or an invalid delete action.
        PreconditionError: The table is already interleaved or not eligible.
    """
    table = graph.table(table_id)
    on_delete = (on_delete or "").upper()
    if on_delete not in ON_DELETE_ACTIONS:
        raise ValidationError(
            f"'{on_delete}' is not a valid delete action.", ValidationError.INVALID_ON_DELETE
        )
    if table.parent_id:
        current = graph.table(table.parent_id)
        raise PreconditionError(
            f"Table '{table.name}' is already interleaved in '{current.name}'.", current.name
        )

    if parent_id:
        parent = graph.table(parent_id)
        route = next(
            (
                fk for fk in table.foreign_keys
                if fk.refer_table_id == parent_id
                and _evaluate_fk(graph, table, fk)[1] == SchemaIssue.INTERLEAVE_ELIGIBLE
            ),
            None,
        )
    else:
        route = find_candidate(graph, table)
        parent = graph.target_tables.get(route.refer_table_id) if route else None

    if route is None or parent is None:
        blocking = parent.name if parent is not None else table.name
        raise PreconditionError(
            f"Table '{table.name}' cannot be interleaved"
            + (f" in '{parent.name}'." if parent is not None else "."),
            blocking,
        )

    table.foreign_keys = [fk for fk in table.foreign_keys if fk.id != route.id]
    table.parent_id = parent.id
    table.on_delete = on_delete
    _refresh(graph, table)
    log.info("Interleaved '%s' in '%s' (dropped foreign key '%s').", table.name, parent.name, route.name)
    return status(graph, table_id)


def remove_parent(graph: SchemaGraph, table_id: str) -> InterleaveStatus:
    """
    Turn the parent pointer of *table_id* back into a foreign key.

    The foreign key pairs every parent key column with the child column of
    the same name and carries the interleave delete action.

    Raises:
        ValidationError: (NOT_INTERLEAVED) if the table has no parent.
    """
    table = graph.table(table_id)
    if not table.parent_id:
        raise ValidationError(
            f"Table '{table.name}' is not interleaved.", ValidationError.NOT_INTERLEAVED
        )
    parent = graph.table(table.parent_id)

    column_ids: list[str] = []
    refer_column_ids: list[str] = []
    for parent_col_id in parent.pk_column_ids():
        child_col_id = table.column_id_by_name(parent.columns[parent_col_id].name)
        if child_col_id is not None:
            column_ids.append(child_col_id)
            refer_column_ids.append(parent_col_id)

    fk = ForeignKey(
        id=graph.ids.foreign_key_id(),
        name=graph.unique_name(f"fk_{table.name}_{parent.name}"),
        column_ids=column_ids,
        refer_table_id=parent.id,
        refer_column_ids=refer_column_ids,
        on_delete=table.on_delete,
    )
    table.foreign_keys.append(fk)
    table.parent_id = ""
    table.on_delete = ""
    _refresh(graph, table)
    log.info("Removed interleave of '%s' in '%s' (added foreign key '%s').", table.name, parent.name, fk.name)
    return status(graph, table_id)


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------

def check_key_change(graph: SchemaGraph, table: Table, column_id: str) -> None:
    """
    Refuse changes to key columns shared through interleaving.

    Every key column of a parent is shared with its children; a child
    inherits as many leading key columns as its parent has.

    Raises:
        PreconditionError: Naming the child or parent table that blocks the change.
    """
    entry: IndexKey | None = table.pk_entry(column_id)
    if entry is None:
        return
    children = graph.children_of(table.id)
    if children:
        raise PreconditionError(
            f"Column '{table.columns[column_id].name}' is part of the primary key of "
            f"'{table.name}', which is the interleave parent of '{children[0].name}'. "
            "Remove the interleaving first.",
            children[0].name,
        )
    parent = graph.parent_of(table)
    if parent is None:
        return
    rank = table.pk_column_ids().index(column_id) + 1
    if rank <= len(parent.primary_keys):
        raise PreconditionError(
            f"Column '{table.columns[column_id].name}' of '{table.name}' is inherited from "
            f"its interleave parent '{parent.name}'. Remove the interleaving first.",
            parent.name,
        )
