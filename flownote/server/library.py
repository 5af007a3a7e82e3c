"""
SchemaLibrary — the algorithm library plus the column lookups the
propagator needs.

  get_schema(id)                  schema records, loaded once
  fetch_file_columns(path)        CSV header of {root}/dataset/<path>
  fetch_variable_columns(name)    columns of a DataFrame-like object living in
                                  the executor namespace
"""
from __future__ import annotations

import asyncio
import csv
import json
import logging
from pathlib import Path, PureWindowsPath
from typing import Any, Callable, Dict, List, Optional, Union

from flownote.core.Errors import SchemaError
from flownote.core.Interface import ISchemaLibrary
from flownote.core.Schema import NodeSchema
from flownote.core.Types import Column

from .node_definitions import BUILTIN_LIBRARY

logger = logging.getLogger(__name__)

DATASET_DIR = "dataset"

LibraryGroups = Dict[str, List[Dict[str, Any]]]


def _read_header(path: Path) -> List[str]:
    with path.open(newline="", encoding="utf-8-sig") as fh:
        for row in csv.reader(fh):
            return [name.strip() for name in row]
    return []


class SchemaLibrary(ISchemaLibrary):
    def __init__(self,
                 groups: Optional[LibraryGroups] = None,
                 root: Union[str, Path] = ".",
                 namespace: Optional[Callable[[], Dict[str, Any]]] = None):
        self.root = Path(root)
        # callable so the executor can reset its namespace under us
        self._namespace = namespace or dict
        self._groups: LibraryGroups = {}
        self._schemas: Dict[str, NodeSchema] = {}
        for category, records in (groups if groups is not None else BUILTIN_LIBRARY).items():
            for record in records:
                self.add(record, category)

    @staticmethod
    def from_file(path: Union[str, Path], **kwargs) -> SchemaLibrary:
        """Load a JSON library: either {category: [schema, ...]} or a flat list of schemas."""
        with Path(path).open(encoding="utf-8") as fh:
            data = json.load(fh)
        if isinstance(data, list):
            groups: LibraryGroups = {}
            for record in data:
                groups.setdefault(str(record.get("category") or "other"), []).append(record)
            data = groups
        if not isinstance(data, dict):
            raise SchemaError(f"{path}: library must be an object keyed by category or a list of schemas")
        logger.info("Loaded algorithm library from %s", path)
        return SchemaLibrary(data, **kwargs)

    def add(self, record: Dict[str, Any], category: Optional[str] = None) -> NodeSchema:
        record = dict(record)
        if category and not record.get("category"):
            record["category"] = category
        schema = NodeSchema.from_dict(record)
        if schema.id in self._schemas:
            logger.warning("Algorithm '%s' defined twice; keeping the later definition", schema.id)
            for records in self._groups.values():
                records[:] = [r for r in records if r["id"] != schema.id]
        self._schemas[schema.id] = schema
        self._groups.setdefault(category or schema.category, []).append(record)
        return schema

    # ── Schemas ─────────────────────────────────────────────────────────────

    def get_schema(self, algorithm_id: str) -> Optional[NodeSchema]:
        return self._schemas.get(algorithm_id)

    def list_schemas(self) -> List[NodeSchema]:
        return list(self._schemas.values())

    def groups(self) -> LibraryGroups:
        return {category: list(records) for category, records in self._groups.items() if records}

    # ── Columns ─────────────────────────────────────────────────────────────

    def data_path(self, filepath: str) -> Path:
        value = filepath.replace("\\", "/").strip()
        if value.startswith("/") or PureWindowsPath(value).drive:
            return Path(value)
        if not value.startswith(f"{DATASET_DIR}/"):
            value = f"{DATASET_DIR}/{value}"
        return self.root.joinpath(*value.split("/"))

    async def fetch_file_columns(self, filepath: str) -> List[Column]:
        if not filepath:
            return []
        path = self.data_path(filepath)
        names = await asyncio.to_thread(_read_header, path)
        return [Column(name) for name in names]

    async def fetch_variable_columns(self, variable_name: str) -> List[Column]:
        value = self._namespace().get(variable_name)
        columns = getattr(value, "columns", None)
        if columns is None:
            return []

        names = [str(c) for c in columns]
        dtypes = getattr(value, "dtypes", None)
        types = [str(t) for t in dtypes] if dtypes is not None else []
        if len(types) != len(names):
            types = ["unknown"] * len(names)
        return [Column(name, t) for name, t in zip(names, types)]

    async def preview_columns(self, filepath: str) -> Dict[str, Any]:
        columns = await self.fetch_file_columns(filepath)
        return {"filepath": str(self.data_path(filepath)), "columns": [c.name for c in columns]}
