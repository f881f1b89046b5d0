# src/schema/library.py - v1
"""Named output schemas: the built-ins plus schemas the operator adds.

User schemas and the current selection persist in one JSON file
(SCHEMA_LIBRARY_PATH, default next to the run ledger root). Built-in
schemas are generated from the pydantic models in schema.builtin on every
load; they cannot be replaced or removed.
"""

from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError
from pydantic import BaseModel, Field, ValidationError

from visiontester.schema.builtin import BUILTIN_MODELS
from visiontester.schema.cleaner import schema_from_model

logger = logging.getLogger(__name__)

_NON_ID_CHARS = re.compile(r"[^a-z0-9]+")


class SchemaLibraryError(Exception):
    """Raised when the library cannot perform the requested change."""


class SchemaNotFoundError(SchemaLibraryError):
    def __init__(self, schema_id: str) -> None:
        self.schema_id = schema_id
        super().__init__(f"Schema not found: {schema_id}")


class SchemaEntry(BaseModel):
    id: str
    name: str
    definition: dict[str, Any]
    builtin: bool = False


class LibraryState(BaseModel):
    """On-disk content of the library file."""

    schemas: list[SchemaEntry] = Field(default_factory=list)
    selected_id: str | None = None


@lru_cache(maxsize=1)
def builtin_entries() -> tuple[SchemaEntry, ...]:
    return tuple(
        SchemaEntry(id=schema_id, name=name, definition=schema_from_model(model), builtin=True)
        for schema_id, (name, model) in BUILTIN_MODELS.items()
    )


def schema_id_for(name: str) -> str:
    """``"Invoice v2.json"`` -> ``invoice-v2-json``."""
    slug = _NON_ID_CHARS.sub("-", name.lower()).strip("-")
    if not slug:
        raise SchemaLibraryError(f"Cannot derive a schema id from {name!r}")
    return slug


class SchemaLibrary:
    """JSON-file backed schema library."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()
        self._builtins = {e.id: e for e in builtin_entries()}

    @property
    def path(self) -> Path:
        return self._path

    # --- Persistence ---

    def _load(self) -> LibraryState:
        if not self._path.exists():
            return LibraryState()
        try:
            return LibraryState.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise SchemaLibraryError(f"Cannot read schema library {self._path}: {e}") from e

    def _save(self, state: LibraryState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(state.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(self._path)

    # --- Queries ---

    def list_schemas(self) -> list[SchemaEntry]:
        """Built-ins first, then user schemas in the order they were added."""
        return [*self._builtins.values(), *self._load().schemas]

    def get(self, schema_id: str) -> SchemaEntry | None:
        if schema_id in self._builtins:
            return self._builtins[schema_id]
        return next((s for s in self._load().schemas if s.id == schema_id), None)

    def require(self, schema_id: str) -> SchemaEntry:
        entry = self.get(schema_id)
        if entry is None:
            raise SchemaNotFoundError(schema_id)
        return entry

    @property
    def selected_id(self) -> str | None:
        return self._load().selected_id

    def selected(self) -> SchemaEntry | None:
        """The selected schema; a selection whose schema is gone reads as None."""
        schema_id = self.selected_id
        if schema_id is None:
            return None
        entry = self.get(schema_id)
        if entry is None:
            logger.warning("Selected schema %s no longer exists", schema_id)
        return entry

    # --- Changes ---

    def add(self, schema_id: str, name: str, definition: dict[str, Any]) -> SchemaEntry:
        """Add a user schema, replacing any user schema with the same id.

        Raises:
            SchemaLibraryError: If the id belongs to a built-in or the
                definition is not a valid JSON Schema.
        """
        if schema_id in self._builtins:
            raise SchemaLibraryError(f"Schema id {schema_id!r} is reserved by a built-in schema")
        try:
            Draft7Validator.check_schema(definition)
        except SchemaError as e:
            raise SchemaLibraryError(f"Invalid JSON Schema: {e.message}") from e

        entry = SchemaEntry(id=schema_id, name=name, definition=definition)
        state = self._load()
        for i, existing in enumerate(state.schemas):
            if existing.id == schema_id:
                state.schemas[i] = entry
                logger.info("Replaced schema %s", schema_id)
                break
        else:
            state.schemas.append(entry)
            logger.info("Added schema %s", schema_id)
        self._save(state)
        return entry

    def add_from_file(
        self,
        path: Path | str,
        name: str | None = None,
        schema_id: str | None = None,
    ) -> SchemaEntry:
        """Load a JSON Schema file. Name defaults to the file stem, id to its slug."""
        path = Path(path)
        try:
            definition = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SchemaLibraryError(f"Cannot read schema {path}: {e}") from e
        if not isinstance(definition, dict):
            raise SchemaLibraryError(f"Schema {path} must be a JSON object")
        name = name or path.stem
        return self.add(schema_id or schema_id_for(name), name, definition)

    def remove(self, schema_id: str) -> bool:
        """Remove a user schema; clears the selection if it pointed there."""
        if schema_id in self._builtins:
            raise SchemaLibraryError(f"Built-in schema {schema_id!r} cannot be removed")
        state = self._load()
        remaining = [s for s in state.schemas if s.id != schema_id]
        if len(remaining) == len(state.schemas):
            return False
        state.schemas = remaining
        if state.selected_id == schema_id:
            state.selected_id = None
        self._save(state)
        logger.info("Removed schema %s", schema_id)
        return True

    def select(self, schema_id: str | None) -> SchemaEntry | None:
        """Select the schema used when a run names none; None clears it."""
        entry = self.require(schema_id) if schema_id is not None else None
        state = self._load()
        state.selected_id = schema_id
        self._save(state)
        return entry
