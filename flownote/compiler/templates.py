"""
Literal rendering and the code writer
=====================================
Turns parameter values into Python source fragments.

  None                  → None
  True / False          → True / False
  list / tuple          → [elem, ...]   (string elements always quoted)
  int / float           → 1, 0.5
  dict                  → {'key': value, ...}   (string values always quoted)
  str, name 'filepath'  → root-joined dataset path, quoted
  str, bare identifier  → unquoted (a reference to a bound variable)
  any other str         → single-quoted

Bound variable names are always valid identifiers, which is how wiring
shows up in source: `df=n01_df_out`.
"""

from __future__ import annotations

import re
from typing import Any, List, Optional

BARE_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

FILEPATH_ARG = "filepath"
DATASET_DIR = "dataset"

_WINDOWS_ROOT = re.compile(r"[\\:]")
_WINDOWS_ABSOLUTE = re.compile(r"^[A-Za-z]:/")


# ── Code writer ───────────────────────────────────────────────────────────────

class CodeWriter:
    """Simple indented string accumulator."""

    def __init__(self, indent: int = 0):
        self._lines: List[str] = []
        self._indent = indent

    def writeln(self, line: str = "") -> "CodeWriter":
        if line:
            self._lines.append("    " * self._indent + line)
        else:
            self._lines.append("")
        return self

    def blank(self) -> "CodeWriter":
        return self.writeln()

    def comment(self, text: str) -> "CodeWriter":
        return self.writeln(f"# {text}")

    def assign(self, target: str, expression: str) -> "CodeWriter":
        return self.writeln(f"{target} = {expression}")

    def call(self, func: str, args: List[str]) -> "CodeWriter":
        return self.writeln(f"{func}({', '.join(args)})")

    def try_except(self, body: List[str], handler: List[str]) -> "CodeWriter":
        self.writeln("try:")
        self.push().extend(body).pop()
        self.writeln("except Exception:")
        self.push().extend(handler).pop()
        return self

    def push(self) -> "CodeWriter":
        self._indent += 1
        return self

    def pop(self) -> "CodeWriter":
        self._indent = max(0, self._indent - 1)
        return self

    def extend(self, lines: List[str]) -> "CodeWriter":
        for line in lines:
            self.writeln(line)
        return self

    def lines(self) -> List[str]:
        return self._lines

    def result(self) -> str:
        return "\n".join(self._lines)


# ── Literal helpers ───────────────────────────────────────────────────────────

def is_bare_identifier(value: Any) -> bool:
    return isinstance(value, str) and BARE_IDENTIFIER.fullmatch(value) is not None


_ESCAPES = {code: f"\\x{code:02x}" for code in list(range(32)) + [127]}
_ESCAPES.update({ord("\n"): "\\n", ord("\r"): "\\r", ord("\t"): "\\t", ord("'"): "\\'"})
_ESCAPES_ALL = {**_ESCAPES, ord("\\"): "\\\\"}


def quote(text: str, escape_backslashes: bool = True) -> str:
    """
    Single-quoted literal that evaluates back to `text`.  Resolved file paths
    pass `escape_backslashes=False`; resolve_filepath has already doubled
    their Windows separators.
    """
    return "'" + text.translate(_ESCAPES_ALL if escape_backslashes else _ESCAPES) + "'"


def resolve_filepath(value: str, root: Optional[str] = None) -> str:
    """
    Normalise a library-relative data path and join it onto `root`.

    Relative values are placed under `dataset/`.  The joined path follows the
    root's separator convention; a root containing a backslash or a drive
    colon is treated as Windows, and the result then has its backslashes
    escaped for use inside a plain string literal.
    """
    path = str(value).replace("\\", "/")
    if not path.strip():
        return ""

    is_absolute = path.startswith("/") or _WINDOWS_ABSOLUTE.match(path) is not None
    if not root:
        return path if is_absolute or path.startswith(f"{DATASET_DIR}/") else f"{DATASET_DIR}/{path}"

    is_windows = _WINDOWS_ROOT.search(root) is not None
    sep = "\\" if is_windows else "/"

    if is_absolute:
        joined = path.replace("/", sep)
    else:
        relative = path if path.startswith(f"{DATASET_DIR}/") else f"{DATASET_DIR}/{path}"
        root_norm = re.sub(r"[\\/]+$", "", root)
        joined = sep.join([root_norm] + relative.split("/"))

    if is_windows:
        joined = joined.replace("\\", "\\\\")
    return joined


def _element(value: Any) -> str:
    # strings inside containers are data, never references
    return quote(value) if isinstance(value, str) else format_value(value)


def format_value(value: Any, name: Optional[str] = None, root: Optional[str] = None) -> str:
    """Render `value` as a Python literal (see the module docstring for the rules)."""
    if value is None:
        return "None"
    if value is True:
        return "True"
    if value is False:
        return "False"
    if isinstance(value, (list, tuple)):
        items = [_element(v) for v in value]
        return f"[{', '.join(items)}]"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, dict):
        items = [f"{quote(str(k))}: {_element(v)}" for k, v in value.items()]
        return "{" + ", ".join(items) + "}"

    text = str(value)
    if name == FILEPATH_ARG:
        return quote(resolve_filepath(text, root), escape_backslashes=False) if text.strip() else "''"
    if is_bare_identifier(text):
        return text
    return quote(text)


def raw_value(value: Any, name: Optional[str] = None, root: Optional[str] = None) -> str:
    """
    Text substituted into a flat template.  Templates carry their own quotes
    (`filepath='{filepath}'`), so strings go in as they are.
    """
    if value is None or isinstance(value, (bool, list, tuple, dict)):
        return format_value(value)
    if name == FILEPATH_ARG:
        return resolve_filepath(str(value), root)
    return str(value)
