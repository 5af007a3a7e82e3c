"""
Node schemas
============
A schema is the static description of a node kind: its input/output ports,
its parameters and either a flat code template or a structured call
signature (the function name plus the parameter list).

Schemas arrive as JSON records from the algorithm library and are kept in
that shape for persistence (`to_dict` round-trips them).  At load time each
schema is also resolved into a closed kind, `SourceKind` or `TransformKind`,
so the propagation pass never has to re-inspect category strings.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union, TYPE_CHECKING

from .Errors import SchemaError
from .Types import NodeCategory, ParamRole

if TYPE_CHECKING:
    from flownote.propagation.transformers import ColumnTransform, TransformRegistry


FREE_CELL_ID = "free_cell"
FREE_CELL_NAME = "Free Cell"

SOURCE_IDS = frozenset({"load_csv", "import_variable"})
FILEPATH_ARG = "filepath"
VARIABLE_ARG = "variable_name"
INDEX_ARGS = ("timeIndex", "time_index")


# ── Ports and parameters ─────────────────────────────────────────────────────

@dataclass
class Port:
    name: str
    type: str = "any"   # advisory label, never enforced

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type}

    @staticmethod
    def from_dict(data: Any) -> Port:
        if isinstance(data, str):
            return Port(data)
        if not isinstance(data, dict) or "name" not in data:
            raise SchemaError(f"port must be an object with a name, got {data!r}")
        return Port(str(data["name"]), str(data.get("type") or "any"))


# Optional parameter fields carried through unchanged for the UI.
_PARAM_EXTRAS = ("label", "description", "options", "min", "max", "step", "widget")


@dataclass
class Param:
    name: str
    type: str = "str"
    default: Any = None
    role: ParamRole = ParamRole.PARAMETER
    priority: Optional[str] = None
    has_default: bool = False
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_input(self) -> bool:
        return self.role == ParamRole.INPUT

    @property
    def is_output(self) -> bool:
        return self.role == ParamRole.OUTPUT

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"name": self.name, "type": self.type}
        if self.has_default:
            result["default"] = copy.deepcopy(self.default)
        if self.role != ParamRole.PARAMETER:
            result["role"] = self.role.value
        if self.priority is not None:
            result["priority"] = self.priority
        result.update(copy.deepcopy(self.extras))
        return result

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Param:
        if not isinstance(data, dict) or "name" not in data:
            raise SchemaError(f"parameter must be an object with a name, got {data!r}")
        return Param(
            name=str(data["name"]),
            type=str(data.get("type") or "str"),
            default=copy.deepcopy(data.get("default")),
            role=ParamRole.parse(data.get("role")),
            priority=data.get("priority"),
            has_default="default" in data,
            extras={k: copy.deepcopy(data[k]) for k in _PARAM_EXTRAS if k in data},
        )


# ── Schema ───────────────────────────────────────────────────────────────────

@dataclass
class NodeSchema:
    id: str
    name: str = ""
    category: str = "free"
    inputs: List[Port] = field(default_factory=list)
    outputs: List[Port] = field(default_factory=list)
    args: List[Param] = field(default_factory=list)
    template: Optional[str] = None
    function: Optional[str] = None
    imports: List[str] = field(default_factory=list)
    description: Optional[str] = None

    @property
    def node_category(self) -> NodeCategory:
        if self.id == FREE_CELL_ID:
            return NodeCategory.FREE
        return NodeCategory.parse(self.category)

    @property
    def is_free(self) -> bool:
        return self.node_category == NodeCategory.FREE

    @property
    def is_flat_template(self) -> bool:
        return bool(self.template)

    @property
    def call_name(self) -> str:
        return self.function or self.id or "noop"

    def input_names(self) -> List[str]:
        return [p.name for p in self.inputs]

    def output_names(self) -> List[str]:
        return [p.name for p in self.outputs]

    def get_arg(self, name: str) -> Optional[Param]:
        return next((a for a in self.args if a.name == name), None)

    def has_output(self, port_name: str) -> bool:
        return any(p.name == port_name for p in self.outputs)

    def reference_names(self) -> List[str]:
        """Input ports followed by input-role args: every name that is wired through an edge."""
        names: List[str] = []
        for port in self.inputs:
            if port.name not in names:
                names.append(port.name)
        for arg in self.args:
            if arg.is_input and arg.name not in names:
                names.append(arg.name)
        return names

    def default_values(self) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for arg in self.args:
            if not arg.has_default:
                continue
            if arg.name == FILEPATH_ARG or arg.name in INDEX_ARGS:
                values[arg.name] = ""
            else:
                values[arg.name] = copy.deepcopy(arg.default)
        return values

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "inputs": [p.to_dict() for p in self.inputs],
            "outputs": [p.to_dict() for p in self.outputs],
            "args": [a.to_dict() for a in self.args],
        }
        if self.template:
            result["template"] = self.template
        if self.function:
            result["function"] = self.function
        if self.imports:
            result["imports"] = list(self.imports)
        if self.description:
            result["description"] = self.description
        return result

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> NodeSchema:
        if not isinstance(data, dict):
            raise SchemaError(f"schema must be a JSON object, got {type(data).__name__}")
        if not isinstance(data.get("id"), str) or not data["id"]:
            raise SchemaError("schema: missing required field 'id'")

        for key in ("inputs", "outputs", "args", "imports"):
            if key in data and data[key] is not None and not isinstance(data[key], list):
                raise SchemaError(f"schema '{data['id']}': {key} must be a list")

        return NodeSchema(
            id=data["id"],
            name=str(data.get("name") or ""),
            category=str(data.get("category") or "free"),
            inputs=[Port.from_dict(p) for p in data.get("inputs") or []],
            outputs=[Port.from_dict(p) for p in data.get("outputs") or []],
            args=[Param.from_dict(a) for a in data.get("args") or []],
            template=data.get("template") or None,
            function=data.get("function") or None,
            imports=[str(line) for line in data.get("imports") or []],
            description=data.get("description"),
        )


def free_cell_schema(index: int = 0) -> NodeSchema:
    """The schema of a node no algorithm has been assigned to yet."""
    return NodeSchema(
        id=FREE_CELL_ID,
        name=FREE_CELL_NAME,
        category=NodeCategory.FREE.value,
        inputs=[Port("in")] if index > 0 else [],
        outputs=[Port("out")],
        args=[],
    )


def critical_args(schema: NodeSchema) -> List[Param]:
    if len(schema.args) > 3:
        return [a for a in schema.args if a.priority == "critical"]
    return list(schema.args)


# ── Resolved node kinds ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class FetchDescriptor:
    mode: str                       # "file" | "variable"
    value_arg: str                  # parameter holding the path / variable name
    index_args: tuple = INDEX_ARGS  # parameters that may name an index column

    @property
    def is_file(self) -> bool:
        return self.mode == "file"


@dataclass(frozen=True)
class SourceKind:
    fetch: FetchDescriptor


@dataclass(frozen=True)
class TransformKind:
    transform: 'ColumnTransform'


NodeKind = Union[SourceKind, TransformKind]


def is_source_schema(schema: NodeSchema) -> bool:
    return schema.node_category == NodeCategory.SOURCE or schema.id in SOURCE_IDS


def resolve_kind(schema: NodeSchema, registry: 'TransformRegistry') -> NodeKind:
    if is_source_schema(schema):
        if schema.id == "import_variable" or schema.get_arg(VARIABLE_ARG) is not None:
            return SourceKind(FetchDescriptor("variable", VARIABLE_ARG, ()))
        return SourceKind(FetchDescriptor("file", FILEPATH_ARG))
    return TransformKind(registry.get(schema.id))
