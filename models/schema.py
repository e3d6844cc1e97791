"""
models/schema.py
----------------
Typed data models for source and target tables, columns, keys, indexes and
the name cross-reference entries that connect the two sides.

Design Decision:
    Tables use arena-style storage: ``columns`` maps column id to
    :class:`Column` while ``column_ids`` keeps the display/DDL order.
    Anything whose result depends on column order iterates ``column_ids``,
    never the dict.  Every model has explicit ``to_dict`` / ``from_dict``
    methods so a snapshot document can be rebuilt exactly.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ColumnType:
    """
    A column type.

    Attributes:
        name:          Type name (``"INT64"``, ``"varchar"`` …).
        length:        Length / precision for sized types, 0 when unsized.
        modifiers:     Raw source modifiers such as ``[10, 2]`` for
                       ``decimal(10,2)``.
        is_array:      Target-side array flag.
        array_bounds:  Source-side array dimensions (one entry per dimension).
    """
    name: str
    length: int = 0
    modifiers: list[int] = field(default_factory=list)
    is_array: bool = False
    array_bounds: list[int] = field(default_factory=list)

    @property
    def base_name(self) -> str:
        return self.name.upper()

    def same_shape(self, other: ColumnType) -> bool:
        """True when both types agree in base name and length."""
        return self.base_name == other.base_name and self.length == other.length

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "length": self.length,
            "modifiers": list(self.modifiers),
            "is_array": self.is_array,
            "array_bounds": list(self.array_bounds),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ColumnType":
        return ColumnType(
            name=data.get("name", ""),
            length=int(data.get("length", 0)),
            modifiers=list(data.get("modifiers", [])),
            is_array=bool(data.get("is_array", False)),
            array_bounds=list(data.get("array_bounds", [])),
        )


@dataclass
class Column:
    """
    One column, on either side of the conversion.

    ``auto_increment`` and ``has_default`` describe source columns; the
    target engine cannot express them and they surface as issues instead.
    """
    id: str
    name: str
    type: ColumnType
    not_null: bool = False
    comment: str = ""
    options: dict[str, str] = field(default_factory=dict)
    auto_increment: bool = False
    has_default: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.to_dict(),
            "not_null": self.not_null,
            "comment": self.comment,
            "options": dict(self.options),
            "auto_increment": self.auto_increment,
            "has_default": self.has_default,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Column":
        return Column(
            id=data["id"],
            name=data["name"],
            type=ColumnType.from_dict(data.get("type", {})),
            not_null=bool(data.get("not_null", False)),
            comment=data.get("comment", ""),
            options=dict(data.get("options", {})),
            auto_increment=bool(data.get("auto_increment", False)),
            has_default=bool(data.get("has_default", False)),
        )


@dataclass
class IndexKey:
    """A key part of a primary key or secondary index. ``order`` is 1-based."""
    column_id: str
    desc: bool = False
    order: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {"column_id": self.column_id, "desc": self.desc, "order": self.order}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "IndexKey":
        return IndexKey(
            column_id=data["column_id"],
            desc=bool(data.get("desc", False)),
            order=int(data.get("order", 1)),
        )


@dataclass
class ForeignKey:
    """
    A foreign key constraint.

    ``column_ids[i]`` references ``refer_column_ids[i]`` in the table
    ``refer_table_id``.
    """
    id: str
    name: str
    column_ids: list[str]
    refer_table_id: str
    refer_column_ids: list[str]
    on_delete: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "column_ids": list(self.column_ids),
            "refer_table_id": self.refer_table_id,
            "refer_column_ids": list(self.refer_column_ids),
            "on_delete": self.on_delete,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ForeignKey":
        return ForeignKey(
            id=data["id"],
            name=data.get("name", ""),
            column_ids=list(data.get("column_ids", [])),
            refer_table_id=data.get("refer_table_id", ""),
            refer_column_ids=list(data.get("refer_column_ids", [])),
            on_delete=data.get("on_delete", ""),
        )


@dataclass
class SecondaryIndex:
    """A secondary index over one or more columns of its table."""
    id: str
    name: str
    unique: bool = False
    keys: list[IndexKey] = field(default_factory=list)

    @property
    def column_ids(self) -> list[str]:
        return [k.column_id for k in self.keys]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "unique": self.unique,
            "keys": [k.to_dict() for k in self.keys],
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "SecondaryIndex":
        return SecondaryIndex(
            id=data["id"],
            name=data.get("name", ""),
            unique=bool(data.get("unique", False)),
            keys=[IndexKey.from_dict(k) for k in data.get("keys", [])],
        )


@dataclass
class Table:
    """
    A table with its columns, keys, indexes and foreign keys.

    Attributes:
        id:            Stable, allocator-issued identifier.
        name:          Display name.
        column_ids:    Column identifiers in display/DDL order.
        columns:       Column id → :class:`Column`.
        primary_keys:  Primary key entries, kept sorted by ``order``.
        indexes:       Secondary indexes.
        foreign_keys:  Foreign keys declared on this table.
        parent_id:     Id of the interleave parent, ``""`` when not interleaved.
        on_delete:     Delete action carried with the parent pointer.
    """
    id: str
    name: str
    column_ids: list[str] = field(default_factory=list)
    columns: dict[str, Column] = field(default_factory=dict)
    primary_keys: list[IndexKey] = field(default_factory=list)
    indexes: list[SecondaryIndex] = field(default_factory=list)
    foreign_keys: list[ForeignKey] = field(default_factory=list)
    parent_id: str = ""
    on_delete: str = ""

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def ordered_columns(self) -> list[Column]:
        return [self.columns[cid] for cid in self.column_ids]

    def column_id_by_name(self, name: str) -> str | None:
        """Case-sensitive lookup of a column id by its display name."""
        for cid in self.column_ids:
            if self.columns[cid].name == name:
                return cid
        return None

    def pk_entry(self, column_id: str) -> IndexKey | None:
        for pk in self.primary_keys:
            if pk.column_id == column_id:
                return pk
        return None

    def first_pk(self) -> IndexKey | None:
        """The primary key entry with the lowest order, if any."""
        if not self.primary_keys:
            return None
        return min(self.primary_keys, key=lambda k: k.order)

    def first_pk_column(self) -> Column | None:
        first = self.first_pk()
        if first is None:
            return None
        return self.columns.get(first.column_id)

    def pk_column_ids(self) -> list[str]:
        return [k.column_id for k in sorted(self.primary_keys, key=lambda k: k.order)]

    def index_by_id(self, index_id: str) -> SecondaryIndex | None:
        for idx in self.indexes:
            if idx.id == index_id:
                return idx
        return None

    def foreign_key_by_id(self, fk_id: str) -> ForeignKey | None:
        for fk in self.foreign_keys:
            if fk.id == fk_id:
                return fk
        return None

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "column_ids": list(self.column_ids),
            "columns": {cid: self.columns[cid].to_dict() for cid in self.column_ids},
            "primary_keys": [k.to_dict() for k in self.primary_keys],
            "indexes": [i.to_dict() for i in self.indexes],
            "foreign_keys": [f.to_dict() for f in self.foreign_keys],
            "parent_id": self.parent_id,
            "on_delete": self.on_delete,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Table":
        columns = {
            cid: Column.from_dict(c) for cid, c in data.get("columns", {}).items()
        }
        return Table(
            id=data["id"],
            name=data["name"],
            column_ids=list(data.get("column_ids", [])),
            columns=columns,
            primary_keys=[IndexKey.from_dict(k) for k in data.get("primary_keys", [])],
            indexes=[SecondaryIndex.from_dict(i) for i in data.get("indexes", [])],
            foreign_keys=[ForeignKey.from_dict(f) for f in data.get("foreign_keys", [])],
            parent_id=data.get("parent_id", ""),
            on_delete=data.get("on_delete", ""),
        )


@dataclass
class NameMapping:
    """
    One side of the table/column name cross reference.

    In the forward map (keyed by source table id) ``name`` is the target
    table name and ``columns`` maps source column name → target column name.
    The backward map (keyed by target table id) holds the inverse.
    """
    name: str
    columns: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "columns": dict(self.columns)}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "NameMapping":
        return NameMapping(name=data.get("name", ""), columns=dict(data.get("columns", {})))
