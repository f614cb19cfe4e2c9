"""JSON interchange: the schema shape the editor host reads and writes."""

from __future__ import annotations

from dataclasses import replace
import json
import logging
from typing import Any, Mapping
import uuid

from pydantic import ValidationError

from ..core.exceptions import InvalidSchemaError
from ..core.models import LinkPayload, SchemaPayload, TablePayload
from .join_map import ExpressionFormatter, build_join_map, join_map_payload
from .model import (
    Endpoint,
    FieldInfo,
    LinkInfo,
    Position,
    Relation,
    SchemaGraph,
    Side,
    TableInfo,
    with_link_names,
)
from .sorting import resort

logger = logging.getLogger(__name__)

# Tables with more fields than this start collapsed when the payload is silent
DEFAULT_COLLAPSE_THRESHOLD = 5


def table_from_payload(item: TablePayload, collapse_threshold: int = DEFAULT_COLLAPSE_THRESHOLD) -> TableInfo:
    fields = tuple(FieldInfo(id=f.id or f.name, name=f.name) for f in item.fields)
    field_ids = [f.id for f in fields]
    if len(set(field_ids)) != len(field_ids):
        raise InvalidSchemaError(
            f"Table '{item.id}' has duplicate field ids",
            {"table": item.id},
        )
    position = Position(x=item.position.x, y=item.position.y) if item.position else Position()
    collapsed = item.collapsed if item.collapsed is not None else len(fields) > collapse_threshold
    return TableInfo(
        id=item.id,
        name=item.name,
        fields=fields,
        base_table=item.base_table,
        base_table_key=item.base_table_key,
        position=position,
        collapsed=collapsed,
    )


def _endpoint(value: str, side: Side, link_id: str) -> Endpoint:
    try:
        endpoint = Endpoint.parse(value)
    except ValueError as exc:
        raise InvalidSchemaError(str(exc), {"link": link_id}) from exc
    if endpoint.side is not side:
        raise InvalidSchemaError(
            f"Link '{link_id}' endpoint {value!r} has the wrong polarity",
            {"link": link_id},
        )
    return endpoint


def link_from_payload(item: LinkPayload) -> LinkInfo:
    link_id = item.id or str(uuid.uuid4())
    return LinkInfo(
        id=link_id,
        source=_endpoint(item.source, Side.SOURCE, link_id),
        target=_endpoint(item.target, Side.TARGET, link_id),
        relation=item.relation or Relation.EQUAL.value,
        source_table_name=item.source_table_name or "",
        source_field_name=item.source_field_name or "",
        target_table_name=item.target_table_name or "",
        target_field_name=item.target_field_name or "",
    )


def _check_link(graph: SchemaGraph, link: LinkInfo) -> None:
    if link.source.table_id == link.target.table_id:
        raise InvalidSchemaError(f"Link '{link.id}' is a self-loop", {"link": link.id})
    for endpoint in (link.source, link.target):
        table = graph.table(endpoint.table_id)
        if table is None:
            raise InvalidSchemaError(
                f"Link '{link.id}' references unknown table '{endpoint.table_id}'",
                {"link": link.id},
            )
        if table.get_field(endpoint.field_id) is None:
            raise InvalidSchemaError(
                f"Link '{link.id}' references unknown field '{endpoint.field_id}' "
                f"in table '{endpoint.table_id}'",
                {"link": link.id},
            )


def schema_from_payload(
    payload: Mapping[str, Any] | SchemaPayload,
    collapse_threshold: int = DEFAULT_COLLAPSE_THRESHOLD,
    check_links: bool = True,
) -> SchemaGraph:
    """Validate an interchange payload and build a graph from it.

    With ``check_links`` off, links may reference tables outside the payload
    (a merge resolves them against the merged graph instead).

    Raises:
        InvalidSchemaError: on any shape, identity or reference problem; the
            caller's current graph is never touched.
    """
    if isinstance(payload, SchemaPayload):
        parsed = payload
    else:
        if not isinstance(payload, Mapping):
            raise InvalidSchemaError("Schema payload must be a JSON object")
        try:
            parsed = SchemaPayload.model_validate(payload)
        except ValidationError as exc:
            raise InvalidSchemaError(
                "Schema payload does not match the interchange shape",
                {"errors": exc.errors(include_url=False, include_context=False)},
            ) from exc

    tables = tuple(table_from_payload(item, collapse_threshold) for item in parsed.tables)
    table_ids = [t.id for t in tables]
    if len(set(table_ids)) != len(table_ids):
        raise InvalidSchemaError("Duplicate table ids in schema payload")
    if sum(1 for t in tables if t.base_table) > 1:
        raise InvalidSchemaError("More than one table is flagged as the base table")

    graph = SchemaGraph(tables=tables)
    links: list[LinkInfo] = []
    for item in parsed.links:
        link = link_from_payload(item)
        if check_links:
            _check_link(graph, link)
        links.append(with_link_names(graph, link))
    link_ids = [link.id for link in links]
    if len(set(link_ids)) != len(link_ids):
        raise InvalidSchemaError("Duplicate link ids in schema payload")

    return SchemaGraph(tables=tables, links=tuple(links))


def parse_schema_json(text: str | bytes, collapse_threshold: int = DEFAULT_COLLAPSE_THRESHOLD) -> SchemaGraph:
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise InvalidSchemaError(f"Invalid JSON: {exc}") from exc
    return schema_from_payload(payload, collapse_threshold)


def table_to_payload(table: TableInfo) -> dict[str, Any]:
    return {
        "id": table.id,
        "name": table.name,
        "baseTable": table.base_table,
        "baseTableKey": table.base_table_key,
        "position": {"x": table.position.x, "y": table.position.y},
        "collapsed": table.collapsed,
        "fields": [{"id": f.id, "name": f.name} for f in table.fields],
    }


def link_to_payload(link: LinkInfo) -> dict[str, Any]:
    return {
        "id": link.id,
        "source": link.source.encode(),
        "target": link.target.encode(),
        "relation": link.relation,
        "sourceTableName": link.source_table_name,
        "sourceFieldName": link.source_field_name,
        "targetTableName": link.target_table_name,
        "targetFieldName": link.target_field_name,
    }


def schema_to_payload(graph: SchemaGraph) -> dict[str, Any]:
    return {
        "tables": [table_to_payload(t) for t in graph.tables],
        "links": [link_to_payload(link) for link in graph.links],
    }


def export_payload(
    graph: SchemaGraph,
    positions: Mapping[str, Position] | None = None,
    include_sql_map: bool = True,
    formatter: ExpressionFormatter | None = None,
) -> dict[str, Any]:
    """Interchange payload plus the ``sqlMap`` join map.

    ``positions`` freezes the client's current layout into the exported
    tables without reordering anything.
    """
    if positions:
        graph = replace(
            graph,
            tables=tuple(replace(t, position=positions.get(t.id, t.position)) for t in graph.tables),
        )
    payload = schema_to_payload(graph)
    if include_sql_map:
        payload["sqlMap"] = join_map_payload(build_join_map(graph, formatter))
    logger.info(f"Exported {len(graph.tables)} tables and {len(graph.links)} links")
    return payload


def load_schema(payload: Mapping[str, Any] | SchemaPayload, collapse_threshold: int = DEFAULT_COLLAPSE_THRESHOLD) -> SchemaGraph:
    """Replace-wholesale entry point: validate, then resort."""
    graph = resort(schema_from_payload(payload, collapse_threshold))
    logger.info(f"Loaded schema: {len(graph.tables)} tables, {len(graph.links)} links")
    return graph
