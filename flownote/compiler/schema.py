"""
FlowNote document JSON format + validator
=========================================
Canonical serialisation of a flow document, as written by
FlowDocument.to_dict() and read by the CLI and the server.

    {
      "name":        "sales-cleanup",          // human label (str, optional)
      "nextOrdinal": 4,                        // document ordinal counter (int, optional)
      "nodes": [
        {
          "id":         "5f0c…",               // unique within the document (str, required)
          "number":     1,                     // persisted ordinal (int, required)
          "schema":     { "id": "load_csv", … },   // node schema (object, optional → free cell)
          "values":     { "filepath": "a.csv" },   // parameter values (object, optional)
          "outputVars": { "df_out": "n01_df_out" },// bound variables (object, optional)
          "position":   { "x": 100, "y": 200 },    // canvas position (object, optional)
          "source":     "# free text"              // cell text (str, optional)
        }
      ],
      "edges": [
        { "sourceId": "5f0c…", "sourcePort": "df_out",
          "targetId": "91aa…", "targetPort": "df_in" }
      ]
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Union

from flownote.core.Errors import SchemaError


# ── Validation helpers ────────────────────────────────────────────────────────

def _require(condition: bool, message: str) -> None:
    if not condition:
        raise SchemaError(message)


def _require_keys(obj: Dict, keys: List[str], context: str) -> None:
    for key in keys:
        _require(key in obj, f"{context}: missing required field '{key}'")


# ── Public validator ─────────────────────────────────────────────────────────

def validate(data: Dict[str, Any]) -> None:
    """
    Validate a parsed document dict.

    Raises:
        SchemaError: On any structural violation.
    """
    _require(isinstance(data, dict), "document JSON must be a JSON object at the top level")
    _require_keys(data, ["nodes", "edges"], "document root")
    _require(isinstance(data["nodes"], list), "nodes must be a list")
    _require(isinstance(data["edges"], list), "edges must be a list")
    if "nextOrdinal" in data:
        _require(isinstance(data["nextOrdinal"], int), "nextOrdinal must be an integer")

    # ── Validate nodes ──────────────────────────────────────────────────────

    node_ids: set[str] = set()
    ordinals: set[int] = set()

    for i, node in enumerate(data["nodes"]):
        ctx = f"nodes[{i}]"
        _require(isinstance(node, dict), f"{ctx}: each node must be a JSON object")
        _require_keys(node, ["id", "number"], ctx)
        _require(isinstance(node["id"], str), f"{ctx}.id must be a string")
        _require(
            isinstance(node["number"], int) and not isinstance(node["number"], bool),
            f"{ctx}.number must be an integer",
        )
        _require(node["id"] not in node_ids, f"{ctx}: duplicate node id '{node['id']}'")
        _require(node["number"] not in ordinals, f"{ctx}: duplicate node number {node['number']}")
        node_ids.add(node["id"])
        ordinals.add(node["number"])

        for field in ("schema", "values", "outputVars", "position"):
            if node.get(field) is not None:
                _require(isinstance(node[field], dict), f"{ctx}.{field} must be an object")
        if node.get("schema") is not None:
            _require(isinstance(node["schema"].get("id"), str), f"{ctx}.schema.id must be a string")
        if node.get("source") is not None:
            _require(isinstance(node["source"], str), f"{ctx}.source must be a string")

    # ── Validate edges ──────────────────────────────────────────────────────

    for i, edge in enumerate(data["edges"]):
        ctx = f"edges[{i}]"
        _require(isinstance(edge, dict), f"{ctx}: each edge must be a JSON object")
        _require_keys(edge, ["sourceId", "sourcePort", "targetId", "targetPort"], ctx)

        for field in ("sourceId", "sourcePort", "targetId", "targetPort"):
            _require(isinstance(edge[field], str), f"{ctx}.{field} must be a string")

        _require(edge["sourceId"] in node_ids, f"{ctx}: sourceId '{edge['sourceId']}' not found in nodes")
        _require(edge["targetId"] in node_ids, f"{ctx}: targetId '{edge['targetId']}' not found in nodes")


def validate_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load and validate a document JSON file.

    Returns:
        The parsed dict on success.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        SchemaError: If the document structure is invalid.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as fh:
        data = json.load(fh)
    validate(data)
    return data


__all__ = ["SchemaError", "validate", "validate_file"]
