from __future__ import annotations
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from abc import ABC, abstractmethod

if TYPE_CHECKING:
    from .Schema import NodeSchema
    from .Types import Column


# Persisted side table of the host notebook.  Keys are per-node metadata
# fields; node_id=None addresses the document-level table.
class IDocumentStore(ABC):
    @abstractmethod
    def get(self, key: str, node_id: Optional[str] = None) -> Any:
        pass

    @abstractmethod
    def set(self, key: str, value: Any, node_id: Optional[str] = None):
        pass

    @abstractmethod
    def insert_node(self, node_id: str, index: Optional[int] = None, source: str = ""):
        pass

    @abstractmethod
    def delete_node_at_index(self, index: int):
        pass

    @abstractmethod
    def get_source(self, node_id: str) -> str:
        pass

    @abstractmethod
    def set_source(self, node_id: str, source: str):
        pass

    @abstractmethod
    def node_ids(self) -> List[str]:
        pass


class ISchemaLibrary(ABC):
    @abstractmethod
    def get_schema(self, algorithm_id: str) -> Optional['NodeSchema']:
        pass

    @abstractmethod
    def list_schemas(self) -> List['NodeSchema']:
        pass

    @abstractmethod
    async def fetch_file_columns(self, filepath: str) -> List['Column']:
        pass

    @abstractmethod
    async def fetch_variable_columns(self, variable_name: str) -> List['Column']:
        pass


class IExecutor(ABC):
    # Outputs are notebook-style records: {"output_type": "stream" | "error", ...}
    @abstractmethod
    async def run(self, node_id: str, source: str) -> List[Dict[str, Any]]:
        pass
