"""
Request and response models for the schema editing operations.

Transport adapters (HTTP handlers, CLI, tests) build these from raw payloads;
pydantic rejects structurally malformed input before the engine sees it.
Semantic checks (unknown ids, duplicate names or orders) stay in the engine.
"""
from typing import List, Optional

from pydantic import BaseModel, Field


# ===== Column edits =====

class AddColumnRequest(BaseModel):
    """Request model for adding a target column."""
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    length: int = Field(default=0, ge=0)
    nullable: bool = True


# ===== Keys and indexes =====

class KeyPartSpec(BaseModel):
    """One entry of a primary key or index key list."""
    column_id: str = Field(min_length=1)
    desc: bool = False
    order: int = Field(ge=1)


class PrimaryKeyRequest(BaseModel):
    """Complete desired primary key of a table (full replacement)."""
    table_id: str
    columns: List[KeyPartSpec]


class IndexRequest(BaseModel):
    """Request model for creating a secondary index."""
    name: str = Field(min_length=1)
    unique: bool = False
    keys: List[KeyPartSpec] = Field(min_length=1)


class ForeignKeyRequest(BaseModel):
    """Request model for creating a foreign key."""
    name: str = Field(min_length=1)
    column_ids: List[str] = Field(min_length=1)
    refer_table_id: str = Field(min_length=1)
    refer_column_ids: List[str] = Field(min_length=1)
    on_delete: str = ""


# ===== Source schema import =====

class SourceColumnSpec(BaseModel):
    """A source column as reported by the (external) schema reader."""
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    modifiers: List[int] = Field(default_factory=list)
    array_bounds: List[int] = Field(default_factory=list)
    not_null: bool = False
    auto_increment: bool = False
    has_default: bool = False
    comment: str = ""


class SourceKeyPartSpec(BaseModel):
    column: str
    desc: bool = False


class SourceIndexSpec(BaseModel):
    name: str
    unique: bool = False
    keys: List[SourceKeyPartSpec]


class SourceForeignKeySpec(BaseModel):
    name: str
    columns: List[str]
    refer_table: str
    refer_columns: List[str]
    on_delete: str = ""


class SourceTableSpec(BaseModel):
    """A source table, referencing its columns by name."""
    name: str = Field(min_length=1)
    columns: List[SourceColumnSpec]
    primary_key: List[SourceKeyPartSpec] = Field(default_factory=list)
    indexes: List[SourceIndexSpec] = Field(default_factory=list)
    foreign_keys: List[SourceForeignKeySpec] = Field(default_factory=list)


# ===== Responses =====

class InterleaveStatus(BaseModel):
    """Outcome of an interleave check or change."""
    table_id: str
    state: str
    possible: bool = False
    parent: Optional[str] = None
    on_delete: str = ""
    comment: str = ""
