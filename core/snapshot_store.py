"""
core/snapshot_store.py
----------------------
JSON persistence of session snapshots.

Design Decisions:
    * The store only moves documents between memory and disk; it never
      touches a live graph, so no I/O happens while a session lock is held.
    * Writes go to a temporary file that is then renamed over the target,
      so a crash never leaves a half-written snapshot behind.
    * Documents carry a format version and are validated with pydantic on
      load before a session ever sees them.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from logger import get_logger

log = get_logger(__name__)

SNAPSHOT_VERSION = 1


class SnapshotDocument(BaseModel):
    """Shape check for a snapshot document (entity contents are checked by the models)."""
    version: int
    dialect: str
    driver: str
    source_tables: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    target_tables: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    to_target: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    to_source: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    synthetic_pks: Dict[str, str] = Field(default_factory=dict)
    issues: Dict[str, Dict[str, List[str]]] = Field(default_factory=dict)
    id_counter: int = Field(ge=0)

    @field_validator("version")
    @classmethod
    def _known_version(cls, value: int) -> int:
        if value != SNAPSHOT_VERSION:
            raise ValueError(f"unsupported snapshot version {value}")
        return value


def validate_document(data: Any) -> Dict[str, Any]:
    """
    Check *data* against :class:`SnapshotDocument`.

    Raises:
        ValueError: If the document is malformed.
    """
    try:
        return SnapshotDocument.model_validate(data).model_dump()
    except PydanticValidationError as exc:
        raise ValueError(f"Invalid snapshot document: {exc}") from exc


class SnapshotStore:
    """File backed store for one snapshot document."""

    def __init__(self, file_path: Path | str) -> None:
        self._path = Path(file_path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def save(self, document: Dict[str, Any]) -> None:
        """
        Persist *document* using an atomic write-then-rename.

        Raises:
            OSError: If the file cannot be written.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(document, indent=4), encoding="utf-8")
        tmp.replace(self._path)
        log.debug("Saved snapshot (%d table(s)) to '%s'.", len(document.get("target_tables", {})), self._path)

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Load the stored document.

        Returns:
            The validated document, or None when no snapshot file exists.

        Raises:
            ValueError: On invalid JSON or a malformed document.
        """
        if not self._path.exists():
            return None
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in snapshot file '{self._path}': {exc}") from exc
        document = validate_document(raw)
        log.info("Loaded snapshot from '%s'.", self._path)
        return document
