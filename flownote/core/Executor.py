import asyncio
import io
import sys
import threading
import traceback
from contextlib import contextmanager
from typing import Optional, List, Dict, Any, Iterator, Tuple
from logging import getLogger

from .Interface import IExecutor

logger = getLogger(__name__)


def stream_output(name: str, text: str) -> Dict[str, Any]:
    return {"output_type": "stream", "name": name, "text": text}


def error_output(exc: BaseException) -> Dict[str, Any]:
    return {
        "output_type": "error",
        "ename": type(exc).__name__,
        "evalue": str(exc),
        "traceback": traceback.format_exception(type(exc), exc, exc.__traceback__),
    }


class CellStream(io.TextIOBase):
    """
    Stands in for sys.stdout or sys.stderr while a cell runs.  Writes from
    the thread running the cell are captured; writes from any other thread
    (the server loop, its logging) go to the stream that was replaced.
    """

    def __init__(self, fallback):
        self.fallback = fallback
        self.captured = io.StringIO()
        self.owner: Optional[int] = None

    def _target(self):
        return self.captured if threading.get_ident() == self.owner else self.fallback

    def writable(self) -> bool:
        return True

    def write(self, text: str) -> int:
        return self._target().write(text)

    def flush(self):
        self._target().flush()


@contextmanager
def capture_streams() -> Iterator[Tuple[CellStream, CellStream]]:
    stdout, stderr = CellStream(sys.stdout), CellStream(sys.stderr)
    sys.stdout, sys.stderr = stdout, stderr
    try:
        yield stdout, stderr
    finally:
        sys.stdout, sys.stderr = stdout.fallback, stderr.fallback


class NamespaceExecutor(IExecutor):
    """
    Runs cell text in one persistent namespace, the way a notebook kernel
    keeps variables between cells.  Outputs come back as notebook-style
    records so the session can look for an `error` output.

    Cells run one at a time in a worker thread, so the event loop keeps
    serving requests and trace events while a cell is busy; a second run
    waits for the first to finish.
    """

    def __init__(self, namespace: Optional[Dict[str, Any]] = None):
        self.namespace: Dict[str, Any] = namespace if namespace is not None else {}
        self.namespace.setdefault("__name__", "__flownote__")
        self.namespace.setdefault("display", self._display)
        self._lock = asyncio.Lock()

    @staticmethod
    def _display(obj: Any):
        print(obj)

    def reset(self):
        self.namespace.clear()
        self.namespace["__name__"] = "__flownote__"
        self.namespace["display"] = self._display

    def _execute(self, node_id: str, source: str, stdout: CellStream, stderr: CellStream) -> List[Dict[str, Any]]:
        stdout.owner = stderr.owner = threading.get_ident()
        outputs: List[Dict[str, Any]] = []
        try:
            code = compile(source, f"<node {node_id}>", "exec")
            exec(code, self.namespace)
        except Exception as exc:
            logger.info("Node %s raised %s: %s", node_id, type(exc).__name__, exc)
            error = error_output(exc)
        else:
            error = None
        finally:
            stdout.owner = stderr.owner = None

        if stdout.captured.getvalue():
            outputs.append(stream_output("stdout", stdout.captured.getvalue()))
        if stderr.captured.getvalue():
            outputs.append(stream_output("stderr", stderr.captured.getvalue()))
        if error is not None:
            outputs.append(error)
        return outputs

    async def run(self, node_id: str, source: str) -> List[Dict[str, Any]]:
        async with self._lock:
            with capture_streams() as (stdout, stderr):
                return await asyncio.to_thread(self._execute, node_id, source, stdout, stderr)
