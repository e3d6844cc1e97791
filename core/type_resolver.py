"""
core/type_resolver.py
---------------------
Resolution of source column types into target column types.

The resolver is an external collaborator of the mutation engine: the engine
only depends on the :class:`TypeResolver` protocol.  :class:`DefaultTypeResolver`
is a compact stand-in that classifies source types into broad categories
(the same category model used for conversion-safety checks) and maps each
category onto the target type system, reporting conversion issues.

Design Decisions:
    * Category membership is data (frozensets), not nested if/else.
    * A requested target type is accepted only if converting the source
      category into it is not UNSAFE; STRING is always accepted.
    * Arrays: one dimension maps onto an array target type, more than one
      dimension falls back to ``STRING(MAX)`` with an issue.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from core.errors import ResolutionError
from models.issues import SchemaIssue
from models.schema import Column, ColumnType

MAX_LENGTH = 9223372036854775807


class ConversionSafety(str, Enum):
    SAFE = "safe"
    LOSSY = "lossy"
    UNSAFE = "unsafe"


class TargetType:
    BOOL = "BOOL"
    INT64 = "INT64"
    FLOAT32 = "FLOAT32"
    FLOAT64 = "FLOAT64"
    NUMERIC = "NUMERIC"
    STRING = "STRING"
    BYTES = "BYTES"
    DATE = "DATE"
    TIMESTAMP = "TIMESTAMP"
    JSON = "JSON"


TARGET_TYPES = frozenset({
    TargetType.BOOL, TargetType.INT64, TargetType.FLOAT32, TargetType.FLOAT64,
    TargetType.NUMERIC, TargetType.STRING, TargetType.BYTES, TargetType.DATE,
    TargetType.TIMESTAMP, TargetType.JSON,
})
_SIZED_TARGET_TYPES = frozenset({TargetType.STRING, TargetType.BYTES})

SUPPORTED_DRIVERS = frozenset({"mysql", "postgres", "sqlserver", "oracle", "cassandra"})
POSTGRESQL_DIALECT = "postgresql"


@dataclass
class ResolvedType:
    """Result of a resolution: the target type plus the issues it raises."""
    type: ColumnType
    issues: list[SchemaIssue] = field(default_factory=list)
    options: dict[str, str] = field(default_factory=dict)


class TypeResolver(Protocol):
    def resolve(
        self,
        source: Column | None,
        requested: str,
        dialect: str,
        driver: str,
        length: int | None = None,
    ) -> ResolvedType:
        """
        Resolve *requested* (or the default mapping when empty) for *source*.

        ``source`` is None for columns created on the target side only.

        Raises:
            ResolutionError: Unsupported driver or unacceptable target type.
        """
        ...


# ---------------------------------------------------------------------------
# Source type category sets
# ---------------------------------------------------------------------------
_BOOL_TYPES = frozenset({"bool", "boolean", "bit"})
_SMALL_INTEGER_TYPES = frozenset({
    "tinyint", "smallint", "mediumint", "int", "integer", "int2", "int4",
    "serial", "smallserial", "number",
})
_INTEGER_TYPES = _SMALL_INTEGER_TYPES | frozenset(
    {"bigint", "int8", "bigserial", "varint", "counter"}
)
_APPROX_NUMERIC = frozenset(
    {"float", "double", "real", "float4", "float8", "double precision", "binary_double"}
)
_EXACT_NUMERIC = frozenset({"decimal", "numeric", "fixed", "money"})
_STRING_TYPES = frozenset({
    "char", "varchar", "nchar", "nvarchar", "varchar2", "nvarchar2", "character",
    "character varying", "bpchar", "tinytext", "text", "ntext", "mediumtext",
    "longtext", "enum", "set", "clob", "nclob", "ascii", "inet", "uuid",
    "uniqueidentifier", "timeuuid",
})
_DATE_TYPES = frozenset({"date"})
_TIMESTAMP_TYPES = frozenset({
    "datetime", "timestamp", "timestamptz", "timestamp with time zone",
    "timestamp without time zone", "datetime2", "datetimeoffset", "smalldatetime",
})
_TIME_TYPES = frozenset({"time", "year", "interval", "duration"})
_BINARY_TYPES = frozenset({
    "binary", "varbinary", "tinyblob", "blob", "mediumblob", "longblob", "bytea",
    "raw", "long raw", "image",
})
_JSON_TYPES = frozenset({"json", "jsonb"})

_CAT_MAP = (
    ("bool", _BOOL_TYPES),
    ("int", _INTEGER_TYPES),
    ("approx", _APPROX_NUMERIC),
    ("exact", _EXACT_NUMERIC),
    ("str", _STRING_TYPES),
    ("date", _DATE_TYPES),
    ("ts", _TIMESTAMP_TYPES),
    ("time", _TIME_TYPES),
    ("bin", _BINARY_TYPES),
    ("json", _JSON_TYPES),
)

# Target type each source category maps to when nothing is requested.
_DEFAULT_TARGET = {
    "bool": TargetType.BOOL,
    "int": TargetType.INT64,
    "approx": TargetType.FLOAT64,
    "exact": TargetType.NUMERIC,
    "str": TargetType.STRING,
    "date": TargetType.DATE,
    "ts": TargetType.TIMESTAMP,
    "time": TargetType.STRING,
    "bin": TargetType.BYTES,
    "json": TargetType.JSON,
    "other": TargetType.STRING,
}

# Category of each target type, used for safety classification.
_TARGET_CATEGORY = {
    TargetType.BOOL: "bool",
    TargetType.INT64: "int",
    TargetType.FLOAT32: "approx",
    TargetType.FLOAT64: "approx",
    TargetType.NUMERIC: "exact",
    TargetType.STRING: "str",
    TargetType.BYTES: "bin",
    TargetType.DATE: "date",
    TargetType.TIMESTAMP: "ts",
    TargetType.JSON: "json",
}

_NUMERIC_CATS = ("int", "approx", "exact")

# Largest precision / scale the target NUMERIC can hold.
_NUMERIC_PRECISION = 38
_NUMERIC_SCALE = 9


def get_base_type(dtype_string: str) -> str:
    """
    Extract the base SQL type keyword from a type string.

    Examples::

        get_base_type("VARCHAR(255)")                  →  "varchar"
        get_base_type("timestamp with time zone")      →  "timestamp with time zone"
        get_base_type("INT UNSIGNED")                  →  "int"
    """
    if not dtype_string:
        return ""
    lowered = dtype_string.split("(")[0].strip().lower()
    for _, types in _CAT_MAP:
        if lowered in types:
            return lowered
    return lowered.split()[0]


def category(base_type: str) -> str:
    for cat, types in _CAT_MAP:
        if base_type in types:
            return cat
    return "other"


def classify_conversion(source_cat: str, target_cat: str) -> ConversionSafety:
    """
    Classify converting data of *source_cat* into *target_cat*.

    Examples::

        classify_conversion("int", "exact")  → SAFE
        classify_conversion("approx", "int") → LOSSY
        classify_conversion("str", "int")    → UNSAFE
    """
    if source_cat == target_cat:
        return ConversionSafety.SAFE

    # --- Anything → String ---
    if target_cat == "str":
        return ConversionSafety.LOSSY if source_cat == "bin" else ConversionSafety.SAFE

    # --- Numeric → Numeric ---
    if source_cat in _NUMERIC_CATS and target_cat in _NUMERIC_CATS:
        if target_cat == "int":
            return ConversionSafety.LOSSY
        if target_cat == "approx":
            return ConversionSafety.LOSSY
        return ConversionSafety.LOSSY if source_cat == "approx" else ConversionSafety.SAFE

    # --- Bool ↔ Integer ---
    if {source_cat, target_cat} == {"bool", "int"}:
        return ConversionSafety.SAFE

    # --- Date → Timestamp ---
    if source_cat == "date" and target_cat == "ts":
        return ConversionSafety.SAFE
    if source_cat == "ts" and target_cat == "date":
        return ConversionSafety.LOSSY

    # --- String → Binary / JSON ---
    if source_cat == "str" and target_cat in ("bin", "json"):
        return ConversionSafety.LOSSY

    return ConversionSafety.UNSAFE


class DefaultTypeResolver:
    """
    Category based resolver covering the supported source drivers.

    Example::

        resolver = DefaultTypeResolver()
        resolved = resolver.resolve(src_col, "", "google_standard_sql", "mysql")
        resolved.type.name   # "INT64"
    """

    def resolve(
        self,
        source: Column | None,
        requested: str,
        dialect: str,
        driver: str,
        length: int | None = None,
    ) -> ResolvedType:
        if driver not in SUPPORTED_DRIVERS:
            raise ResolutionError(f"Driver '{driver}' is not supported.")

        requested = (requested or "").strip().upper()
        if requested and requested not in TARGET_TYPES:
            raise ResolutionError(f"'{requested}' is not a valid target type.")

        if source is None:
            if not requested:
                raise ResolutionError("A target type is required for a new column.")
            return ResolvedType(type=self._sized(requested, length, None))

        base = get_base_type(source.type.name)
        src_cat = category(base)
        target = requested or _DEFAULT_TARGET[src_cat]
        issues: list[SchemaIssue] = []

        if requested and classify_conversion(src_cat, _TARGET_CATEGORY[target]) == ConversionSafety.UNSAFE:
            raise ResolutionError(
                f"Cannot convert source type '{source.type.name}' to '{target}'."
            )
        if src_cat == "other" and target == TargetType.STRING:
            issues.append(SchemaIssue.NO_GOOD_TYPE)

        issues.extend(self._type_issues(base, src_cat, target, source.type))
        resolved = self._sized(target, length, source.type if src_cat == "str" else None)

        bounds = source.type.array_bounds
        if len(bounds) > 1:
            resolved = ColumnType(name=TargetType.STRING, length=MAX_LENGTH)
            issues.append(SchemaIssue.MULTI_DIMENSIONAL_ARRAY)
        elif len(bounds) == 1:
            if dialect == POSTGRESQL_DIALECT:
                resolved = ColumnType(name=TargetType.STRING, length=MAX_LENGTH)
            else:
                resolved.is_array = True

        if source.has_default:
            issues.append(SchemaIssue.DEFAULT_VALUE_DROPPED)
        if source.auto_increment:
            issues.append(SchemaIssue.AUTO_INCREMENT_DROPPED)

        options: dict[str, str] = {}
        if driver == "cassandra":
            options["cassandra_type"] = source.type.name
        return ResolvedType(type=resolved, issues=issues, options=options)

    @staticmethod
    def _sized(target: str, length: int | None, source_type: ColumnType | None) -> ColumnType:
        if target not in _SIZED_TARGET_TYPES:
            return ColumnType(name=target)
        if length:
            return ColumnType(name=target, length=length)
        if source_type is not None and source_type.modifiers:
            return ColumnType(name=target, length=int(source_type.modifiers[0]))
        return ColumnType(name=target, length=MAX_LENGTH)

    @staticmethod
    def _type_issues(
        base: str, src_cat: str, target: str, source_type: ColumnType
    ) -> list[SchemaIssue]:
        issues: list[SchemaIssue] = []
        if target == TargetType.INT64 and base in _SMALL_INTEGER_TYPES:
            issues.append(SchemaIssue.TYPE_WIDENED)
        elif target == TargetType.FLOAT64 and base in ("float", "real", "float4"):
            issues.append(SchemaIssue.TYPE_WIDENED)
        elif target == TargetType.NUMERIC and src_cat == "exact":
            mods = source_type.modifiers
            precision = mods[0] if mods else 0
            scale = mods[1] if len(mods) > 1 else 0
            if precision > _NUMERIC_PRECISION or scale > _NUMERIC_SCALE:
                issues.append(SchemaIssue.PRECISION_LOSS)
        elif target == TargetType.TIMESTAMP and base in ("datetime", "timestamp", "timestamp without time zone"):
            issues.append(SchemaIssue.TIMESTAMP_SEMANTICS)

        if src_cat in _NUMERIC_CATS and classify_conversion(src_cat, _TARGET_CATEGORY[target]) == ConversionSafety.LOSSY:
            issues.append(SchemaIssue.PRECISION_LOSS)
        return issues
