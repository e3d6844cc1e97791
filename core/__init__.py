"""core/__init__.py"""
from core.errors import (
    InvariantViolation,
    PreconditionError,
    ResolutionError,
    SchemaEditError,
    ValidationError,
)
from core.id_allocator import IdAllocator, IdKind
from core.schema_graph import SchemaGraph
from core.session import Session
from core.snapshot_store import SnapshotStore
from core.type_resolver import DefaultTypeResolver, ResolvedType, TypeResolver

__all__ = [
    "InvariantViolation",
    "PreconditionError",
    "ResolutionError",
    "SchemaEditError",
    "ValidationError",
    "IdAllocator",
    "IdKind",
    "SchemaGraph",
    "Session",
    "SnapshotStore",
    "DefaultTypeResolver",
    "ResolvedType",
    "TypeResolver",
]
