from __future__ import annotations

import logging
import os
import threading
from typing import Any, NoReturn

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .core import (
    BaseTableKeyRequest,
    BaseTableRequest,
    CollapseRequest,
    ConnectRequest,
    InvalidSchemaError,
    JoinMapResponse,
    ResortRequest,
    SchemaValidationError,
    TablePayload,
    UpdateLinkRequest,
    get_settings,
)
from .core.models import ConnectResponse, PositionPayload
from .schema import (
    Endpoint,
    ExpressionFormatter,
    Position,
    SchemaStore,
    add_table,
    build_join_map,
    delete_link,
    delete_table,
    export_payload,
    link_to_payload,
    resort,
    schema_to_payload,
    set_base_table,
    set_base_table_key,
    set_collapsed,
    unreachable_tables,
    upsert_link,
    validate_connection,
)
from .schema.interchange import table_from_payload
from .security import is_safe_sql

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="ERD Join Map", version="0.1.0")

# Every read-modify-replace of the store runs under this lock
_state_lock = threading.RLock()
store = SchemaStore()
store.collapse_threshold = settings.collapse_threshold

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type"],
)


# --- Structured Error Response ---

class ErrorDetail(BaseModel):
    error_code: str
    message: str
    details: dict[str, Any] | None = None


def raise_error(status_code: int, error_code: str, message: str, details: dict | None = None) -> NoReturn:
    """Raise HTTPException with structured error detail."""
    raise HTTPException(
        status_code=status_code,
        detail=ErrorDetail(error_code=error_code, message=message, details=details).model_dump()
    )


@app.exception_handler(RequestValidationError)
async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(f"Rejected request to {request.url.path}: {len(exc.errors())} validation errors")
    detail = ErrorDetail(
        error_code="invalid_data",
        message="Request body is not valid",
        details={"errors": [{"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()]},
    )
    return JSONResponse(status_code=400, content={"detail": detail.model_dump()})


def _formatter() -> ExpressionFormatter:
    return ExpressionFormatter(
        quote=settings.sql_identifier_quote,
        placeholder=settings.sql_key_placeholder,
    )


def _positions(payload: dict[str, PositionPayload]) -> dict[str, Position]:
    return {table_id: Position(x=pos.x, y=pos.y) for table_id, pos in payload.items()}


def _current_schema() -> dict[str, Any]:
    with _state_lock:
        return schema_to_payload(store.graph)


# --- Startup Events ---

@app.on_event("startup")
def _load_initial_schema() -> None:
    path = settings.initial_schema_path
    if not path:
        return
    if not os.path.exists(path):
        logger.warning(f"Initial schema not found: {path}")
        return
    logger.info(f"Loading initial schema from {path}...")
    try:
        with open(path, "r", encoding="utf-8") as handle:
            text = handle.read()
        with _state_lock:
            store.load_json(text)
    except InvalidSchemaError as exc:
        logger.error(f"Initial schema is invalid: {exc}")
        return
    logger.info(f"Initial schema loaded: {len(store.graph.tables)} tables")


# --- API Endpoints ---

@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/schema")
def get_schema() -> dict[str, Any]:
    return _current_schema()


@app.get("/api/schema/summary")
def schema_summary() -> dict[str, int | str]:
    with _state_lock:
        graph = store.graph
        base = graph.base_table()
        return {
            "tables": len(graph.tables),
            "links": len(graph.links),
            "base_table": base.id if base else "",
            "base_table_key": (base.base_table_key or "") if base else "",
            "updated_at": store.updated_at.isoformat() if store.updated_at else "",
        }


@app.post("/api/schema/load")
def load_schema_endpoint(payload: Any = Body(...)) -> dict[str, Any]:
    """Replace the whole schema; invalid data leaves the current one untouched."""
    try:
        with _state_lock:
            store.load(payload)
    except InvalidSchemaError as exc:
        logger.warning(f"Rejected schema load: {exc}")
        raise_error(400, "invalid_data", f"Invalid data: {exc}", exc.details)
    logger.info(f"Schema loaded: {len(store.graph.tables)} tables, {len(store.graph.links)} links")
    return _current_schema()


@app.post("/api/schema/merge")
def merge_schema_endpoint(payload: Any = Body(...)) -> dict[str, Any]:
    """Add tables and links that are not present yet."""
    try:
        with _state_lock:
            changed = store.merge(payload)
    except InvalidSchemaError as exc:
        logger.warning(f"Rejected schema merge: {exc}")
        raise_error(400, "invalid_data", f"Invalid data: {exc}", exc.details)
    return {"changed": changed, "schema": _current_schema()}


@app.post("/api/schema/demo")
def load_demo_schema() -> dict[str, Any]:
    path = settings.demo_schema_path
    if not path or not os.path.exists(path):
        raise_error(404, "demo_unavailable", f"Demo schema not found: {path}")
    with open(path, "r", encoding="utf-8") as handle:
        text = handle.read()
    try:
        with _state_lock:
            store.load_json(text)
    except InvalidSchemaError as exc:
        logger.error(f"Demo schema is invalid: {exc}")
        raise_error(500, "invalid_demo", f"Demo schema is invalid: {exc}", exc.details)
    return _current_schema()


@app.post("/api/schema/resort")
def resort_schema(request: ResortRequest) -> dict[str, Any]:
    with _state_lock:
        store.resort(_positions(request.positions))
    return _current_schema()


@app.post("/api/schema/base-table")
def update_base_table(request: BaseTableRequest) -> dict[str, Any]:
    ref = request.table_id or request.table_name
    if not ref:
        raise_error(400, "invalid_data", "Either table_id or table_name is required")
    with _state_lock:
        table = store.graph.table(request.table_id) if request.table_id else None
        if table is None and request.table_name:
            table = store.graph.table_by_id_or_name(request.table_name)
        if table is None:
            raise_error(404, "not_found", f"Table not found: {ref}")
        store.apply(set_base_table, table.id)
    return _current_schema()


@app.post("/api/schema/base-table-key")
def update_base_table_key(request: BaseTableKeyRequest) -> dict[str, Any]:
    with _state_lock:
        store.apply(set_base_table_key, request.key)
    return _current_schema()


@app.post("/api/links", response_model=ConnectResponse)
def connect_link(request: ConnectRequest) -> ConnectResponse:
    with _state_lock:
        graph, link = upsert_link(
            store.graph,
            request.source,
            request.target,
            request.relation,
            request.id,
            default_relation=settings.default_relation,
        )
        if link is None:
            _raise_invalid_connection(request.source, request.target)
        store.replace(resort(graph))
    return ConnectResponse(link=link_to_payload(link), schema_data=_current_schema())


@app.put("/api/links/{link_id}", response_model=ConnectResponse)
def update_link(link_id: str, request: UpdateLinkRequest) -> ConnectResponse:
    """Reconnect a link to other fields and/or change its relation."""
    with _state_lock:
        current = store.graph.link(link_id)
        if current is None:
            raise_error(404, "not_found", f"Link not found: {link_id}")
        source = request.source or current.source.encode()
        target = request.target or current.target.encode()
        graph, link = upsert_link(store.graph, source, target, request.relation, link_id)
        if link is None:
            _raise_invalid_connection(source, target)
        store.replace(resort(graph))
    return ConnectResponse(link=link_to_payload(link), schema_data=_current_schema())


@app.delete("/api/links/{link_id}")
def remove_link(link_id: str) -> dict[str, Any]:
    with _state_lock:
        store.apply(delete_link, link_id)
    return _current_schema()


@app.post("/api/tables")
def create_table(request: TablePayload) -> dict[str, Any]:
    table = table_from_payload(request, settings.collapse_threshold)
    try:
        with _state_lock:
            store.apply(add_table, table)
    except SchemaValidationError as exc:
        raise_error(400, "invalid_data", str(exc))
    return _current_schema()


@app.delete("/api/tables/{table_id}")
def remove_table(table_id: str) -> dict[str, Any]:
    """Delete a table and every link touching it."""
    with _state_lock:
        store.apply(delete_table, table_id)
    return _current_schema()


@app.post("/api/tables/{table_id}/collapse")
def collapse_table(table_id: str, request: CollapseRequest) -> dict[str, Any]:
    try:
        with _state_lock:
            store.apply(set_collapsed, table_id, request.collapsed)
    except SchemaValidationError as exc:
        raise_error(404, "not_found", str(exc))
    return _current_schema()


@app.get("/api/schema/join-map", response_model=JoinMapResponse)
def get_join_map() -> JoinMapResponse:
    with _state_lock:
        graph = store.graph
    entries = build_join_map(graph, _formatter())

    warnings: list[str] = []
    base = graph.base_table()
    if base is None:
        warnings.append("missing_base_table")
    elif not base.base_table_key:
        warnings.append("missing_base_table_key")
    else:
        missing = unreachable_tables(graph)
        if missing:
            warnings.append(f"missing_join_path: {', '.join(missing)}")
    for entry in entries:
        for item in entry.fields:
            ok, reason = is_safe_sql(item.expression)
            if not ok:
                warnings.append(f"invalid_expression: {entry.table_id}.{item.field_id} ({reason})")

    return JoinMapResponse.model_validate({"sql_map": _join_map_fields(entries), "warnings": warnings})


def _join_map_fields(entries: list) -> list[dict[str, Any]]:
    return [
        {
            "table_id": entry.table_id,
            "table_name": entry.table_name,
            "fields": [
                {
                    "field_id": item.field_id,
                    "field_name": item.field_name,
                    "sql": item.expression,
                    "join_level": item.join_level,
                }
                for item in entry.fields
            ],
        }
        for entry in entries
    ]


@app.get("/api/schema/export")
def export_schema(
    sql_map: bool = Query(default=True, description="Attach the sqlMap join map"),
) -> dict[str, Any]:
    """Current schema in the interchange shape, plus sqlMap when requested."""
    with _state_lock:
        graph = store.graph
    return export_payload(graph, include_sql_map=sql_map, formatter=_formatter())


# --- Helper Functions ---

def _raise_invalid_connection(source: str, target: str) -> NoReturn:
    try:
        source_ep = Endpoint.parse(source)
        target_ep = Endpoint.parse(target)
    except ValueError as exc:
        raise_error(400, "invalid_connection", str(exc))
    _, reason = validate_connection(store.graph, source_ep, target_ep)
    raise_error(400, "invalid_connection", reason or "Connection rejected")
