"""
Flow REST routes.

All routes are mounted under /api by main.py and operate on the single open
FlowSession held by server.state.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Response
from pydantic import BaseModel, Field

from flownote.compiler.schema import validate
from flownote.core.Errors import FlowError, NodeNotFoundError, PortAlreadyConnectedError
from flownote.server.serializers.document_serializer import (
    serialize_document,
    serialize_node,
    serialize_statuses,
)
from flownote.server.state import get_flow_state

logger = logging.getLogger(__name__)

router = APIRouter()


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NodeNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PortAlreadyConnectedError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _session():
    return get_flow_state().session


# ── GET /library ──────────────────────────────────────────────────────────────

@router.get("/library")
async def get_library() -> Dict[str, List[Dict[str, Any]]]:
    return get_flow_state().library.groups()


@router.get("/library/{algorithm_id}")
async def get_algorithm(algorithm_id: str) -> Dict[str, Any]:
    schema = get_flow_state().library.get_schema(algorithm_id)
    if schema is None:
        raise HTTPException(status_code=404, detail=f"Algorithm '{algorithm_id}' not found")
    return schema.to_dict()


# ── GET /document ─────────────────────────────────────────────────────────────

@router.get("/document")
async def get_document() -> Dict[str, Any]:
    return serialize_document(_session())


# ── PUT /document ─────────────────────────────────────────────────────────────

@router.put("/document")
async def load_document(body: Dict[str, Any]) -> Dict[str, Any]:
    session = _session()
    try:
        validate(body)
        session.load(body)
    except (FlowError, ValueError, KeyError) as exc:
        raise _http_error(exc)
    return serialize_document(session)


@router.post("/document/reset")
async def reset_document(demo: bool = Query(False, description="Re-seed the demo flow")) -> Dict[str, Any]:
    return serialize_document(get_flow_state().reset(seed_demo=demo))


# ── POST /nodes ───────────────────────────────────────────────────────────────

class CreateNodeBody(BaseModel):
    algorithmId: Optional[str] = None
    id: Optional[str] = None
    values: Optional[Dict[str, Any]] = None
    position: Optional[Dict[str, float]] = None
    index: Optional[int] = None
    source: str = ""


@router.post("/nodes", status_code=201)
async def create_node(body: CreateNodeBody) -> Dict[str, Any]:
    session = _session()
    try:
        node = session.insert_node(
            body.algorithmId,
            values=body.values,
            node_id=body.id,
            position=body.position,
            index=body.index,
            source=body.source,
        )
    except (FlowError, ValueError) as exc:
        raise _http_error(exc)
    return serialize_node(session, node)


# ── DELETE /nodes/:nodeId ─────────────────────────────────────────────────────

@router.delete("/nodes/{node_id}")
async def delete_node(node_id: str) -> Dict[str, Any]:
    try:
        affected = _session().delete_node(node_id)
    except FlowError as exc:
        raise _http_error(exc)
    return {"deleted": node_id, "affected": serialize_statuses(affected)}


# ── PUT /nodes/:nodeId/values ─────────────────────────────────────────────────

class ValuesBody(BaseModel):
    values: Dict[str, Any]


@router.put("/nodes/{node_id}/values")
async def set_values(node_id: str, body: ValuesBody) -> Dict[str, Any]:
    session = _session()
    try:
        node = session.set_values(node_id, body.values)
    except FlowError as exc:
        raise _http_error(exc)
    return serialize_node(session, node)


# ── PUT /nodes/:nodeId/algorithm ──────────────────────────────────────────────

class AssignBody(BaseModel):
    algorithmId: Optional[str] = None
    schema_: Optional[Dict[str, Any]] = Field(default=None, alias="schema")


@router.put("/nodes/{node_id}/algorithm")
async def assign_algorithm(node_id: str, body: AssignBody) -> Dict[str, Any]:
    session = _session()
    if body.algorithmId is None and body.schema_ is None:
        raise HTTPException(status_code=400, detail="`algorithmId` or `schema` required")
    try:
        node = session.assign_schema(node_id, body.schema_ if body.schema_ is not None else body.algorithmId)
    except (FlowError, ValueError) as exc:
        raise _http_error(exc)
    return serialize_node(session, node)


# ── PUT /nodes/:nodeId/position ───────────────────────────────────────────────

class PositionBody(BaseModel):
    x: float
    y: float


@router.put("/nodes/{node_id}/position", status_code=204)
async def set_node_position(node_id: str, body: PositionBody) -> Response:
    try:
        _session().set_position(node_id, body.x, body.y)
    except FlowError as exc:
        raise _http_error(exc)
    return Response(status_code=204)


# ── PUT /nodes/:nodeId/source ─────────────────────────────────────────────────

class SourceBody(BaseModel):
    source: str


@router.put("/nodes/{node_id}/source", status_code=204)
async def set_node_source(node_id: str, body: SourceBody) -> Response:
    try:
        _session().set_source(node_id, body.source)
    except FlowError as exc:
        raise _http_error(exc)
    return Response(status_code=204)


# ── GET /nodes/:nodeId/code ───────────────────────────────────────────────────

@router.get("/nodes/{node_id}/code")
async def get_node_code(node_id: str) -> Dict[str, Any]:
    session = _session()
    try:
        code = session.node_code(node_id)
        if code is None:
            code = session.document.get_node(node_id).source
    except FlowError as exc:
        raise _http_error(exc)
    return {"nodeId": node_id, "code": code}


# ── POST /edges ───────────────────────────────────────────────────────────────

class EdgeBody(BaseModel):
    sourceId: str
    sourcePort: str
    targetId: str
    targetPort: str


@router.post("/edges", status_code=201)
async def add_edge(body: EdgeBody) -> Dict[str, Any]:
    try:
        edge = _session().connect(body.sourceId, body.sourcePort, body.targetId, body.targetPort)
    except FlowError as exc:
        raise _http_error(exc)
    return edge.to_dict()


# ── DELETE /edges ─────────────────────────────────────────────────────────────

@router.delete("/edges", status_code=204)
async def delete_edge(body: EdgeBody) -> Response:
    removed = _session().disconnect(body.sourceId, body.sourcePort, body.targetId, body.targetPort)
    if not removed:
        raise HTTPException(status_code=404, detail="Edge not found")
    return Response(status_code=204)


# ── GET /code ─────────────────────────────────────────────────────────────────

@router.get("/code")
async def get_document_code() -> Dict[str, Any]:
    return {"code": _session().generate_document()}


# ── GET /statuses ─────────────────────────────────────────────────────────────

@router.get("/statuses")
async def get_statuses() -> Dict[str, str]:
    return serialize_statuses(_session().statuses())


# ── POST /propagate ───────────────────────────────────────────────────────────

@router.post("/propagate")
async def propagate(force: bool = Query(False, description="Run even if nothing changed")) -> Dict[str, Any]:
    session = _session()
    changed = await session.propagate(force=force)
    return {
        "ran": changed is not None,
        "changed": changed or [],
        "metadata": {
            node.id: node.metadata.to_dict()
            for node in session.document.node_list()
            if node.metadata is not None
        },
    }


# ── POST /nodes/:nodeId/run ───────────────────────────────────────────────────

@router.post("/nodes/{node_id}/run")
async def run_node(node_id: str) -> Dict[str, Any]:
    session = _session()
    try:
        outputs = await session.run_node(node_id)
    except FlowError as exc:
        raise _http_error(exc)
    return {
        "nodeId": node_id,
        "status": session.status.status_of(node_id).value,
        "outputs": outputs,
    }


@router.post("/execution/clear", status_code=204)
async def clear_execution(node_id: Optional[str] = Query(None, alias="nodeId")) -> Response:
    _session().clear_execution(node_id)
    return Response(status_code=204)


# ── POST /csv-columns ─────────────────────────────────────────────────────────

class CsvColumnsBody(BaseModel):
    filepath: str


@router.post("/csv-columns")
async def csv_columns(body: CsvColumnsBody) -> Dict[str, Any]:
    try:
        return await get_flow_state().library.preview_columns(body.filepath)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"File not found: {exc.filename}")
    except (OSError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
