"""
compile_document.py — CLI for the FlowNote document compiler
=============================================================
Compiles a serialised flow document into one sequential Python script.

Usage
-----
    flownote-compile <document.json> [options]
    python -m flownote.compile_document <document.json> [options]

Options
-------
    --root    <dir>     Directory `filepath` parameters resolve against
                        (default: $FLOWNOTE_SERVER_ROOT, else unresolved)
    --node    <id>      Print the cell text of a single node instead
    --out     <file>    Output file (default: <document stem>.py)
    --print             Print the generated source to stdout instead of writing a file
    --workflow-import   Import line for the algorithm library
                        (default: "from workflow_lib import *")

Exit status is 0 on success, 1 on an unreadable or invalid document and 2
when the document contains a cycle (the diagnostic line is still written).

Examples
--------
    flownote-compile flows/sales.json --root /srv/notebooks --print
    flownote-compile flows/sales.json --out build/sales.py
    flownote-compile flows/sales.json --node 5f0c2b7e --print
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from flownote.compiler import CYCLE_DIAGNOSTIC, DEFAULT_WORKFLOW_IMPORT, CodeSynthesizer, compile_document
from flownote.compiler.schema import SchemaError, validate_file
from flownote.core.Document import FlowDocument
from flownote.core.Errors import FlowError, NodeNotFoundError

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="flownote-compile",
        description="Compile a FlowNote document JSON to a sequential Python script.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    p.add_argument(
        "document_json",
        metavar="document.json",
        help="Path to the document JSON file to compile.",
    )
    p.add_argument(
        "--root",
        metavar="DIR",
        default=os.environ.get("FLOWNOTE_SERVER_ROOT"),
        help="Root directory `filepath` parameters are joined onto.",
    )
    p.add_argument(
        "--node",
        metavar="ID",
        help="Emit the cell text of one node only.",
    )
    p.add_argument(
        "--out",
        metavar="FILE",
        help="Output file for the compiled script (default: <document stem>.py).",
    )
    p.add_argument(
        "--print",
        dest="print_only",
        action="store_true",
        help="Print generated source to stdout instead of writing a file.",
    )
    p.add_argument(
        "--workflow-import",
        default=os.environ.get("FLOWNOTE_WORKFLOW_IMPORT", DEFAULT_WORKFLOW_IMPORT),
        help="Import line for the algorithm library.",
    )
    return p


def main(argv=None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    json_path = Path(args.document_json)
    if not json_path.exists():
        print(f"[error] File not found: {json_path}", file=sys.stderr)
        return 1

    # ── Validate JSON ────────────────────────────────────────────────────────
    try:
        data = validate_file(json_path)
    except json.JSONDecodeError as exc:
        print(f"[error] Not valid JSON: {exc}", file=sys.stderr)
        return 1
    except SchemaError as exc:
        print(f"[error] Document validation failed: {exc}", file=sys.stderr)
        return 1

    try:
        document = FlowDocument.from_dict(data)
    except (FlowError, ValueError) as exc:
        print(f"[error] Document could not be loaded: {exc}", file=sys.stderr)
        return 1

    name = data.get("name", json_path.stem)
    print(f"[compile_document] document : {name}", file=sys.stderr if args.print_only else sys.stdout)

    # ── Single node ──────────────────────────────────────────────────────────
    if args.node:
        synthesizer = CodeSynthesizer(root=args.root, workflow_import=args.workflow_import)
        try:
            source = synthesizer.node_source(document, args.node)
        except NodeNotFoundError as exc:
            print(f"[error] {exc}", file=sys.stderr)
            return 1
        if source is None:
            source = document.get_node(args.node).source
        print(source)
        return 0

    # ── Emit ─────────────────────────────────────────────────────────────────
    source = compile_document(document, root=args.root, workflow_import=args.workflow_import)
    status = 2 if source == CYCLE_DIAGNOSTIC else 0
    if status:
        print("[compile_document] cycle detected; no node code generated", file=sys.stderr)

    # ── Output ───────────────────────────────────────────────────────────────
    if args.print_only:
        print(source)
        return status

    out_path = Path(args.out) if args.out else Path(f"{json_path.stem}.py")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(source + "\n", encoding="utf-8")

    print(f"[compile_document] nodes    : {len(document.nodes)}")
    print(f"[compile_document] edges    : {len(document.edges)}")
    print(f"[compile_document] wrote    : {out_path}")
    return status


if __name__ == "__main__":
    sys.exit(main())
