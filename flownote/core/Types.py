from enum import Enum
from typing import Any, Dict, Optional
from dataclasses import dataclass


class NodeCategory(Enum):
    SOURCE = "source"
    TRANSFORM = "transform"
    FREE = "free"

    @staticmethod
    def parse(value: Optional[str]) -> 'NodeCategory':
        # Library categories are free-form ("data", "cleaning", "plot"...);
        # anything that is not source/free computes through a transform.
        if not value or value == NodeCategory.FREE.value:
            return NodeCategory.FREE
        if value == NodeCategory.SOURCE.value:
            return NodeCategory.SOURCE
        return NodeCategory.TRANSFORM


class ParamRole(Enum):
    INPUT = "input"
    OUTPUT = "output"
    PARAMETER = "parameter"

    @staticmethod
    def parse(value: Optional[str]) -> 'ParamRole':
        if value == ParamRole.INPUT.value:
            return ParamRole.INPUT
        if value == ParamRole.OUTPUT.value:
            return ParamRole.OUTPUT
        return ParamRole.PARAMETER


class NodeStatus(Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    @staticmethod
    def from_raw(value: Optional[str]) -> Optional['NodeStatus']:
        """Map a persisted execution status (including legacy aliases) to an overlay status."""
        if value in ("running", "calculating"):
            return NodeStatus.RUNNING
        if value in ("success", "ready"):
            return NodeStatus.SUCCESS
        if value in ("failed", "error"):
            return NodeStatus.FAILED
        return None


class MetadataStatus(Enum):
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class Column:
    name: str
    type: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type}

    @staticmethod
    def from_dict(data: Any) -> 'Column':
        if isinstance(data, str):
            return Column(data)
        return Column(str(data["name"]), str(data.get("type") or "unknown"))
