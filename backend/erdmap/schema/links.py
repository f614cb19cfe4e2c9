"""Link and table edits on the schema graph.

Each function returns the next graph; none of them resorts. Callers run
``resort`` right after, the way every editor event does.
"""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Tuple
import uuid

from ..core.exceptions import SchemaValidationError
from .model import Endpoint, LinkInfo, Relation, SchemaGraph, Side, TableInfo, with_link_names

logger = logging.getLogger(__name__)


def validate_connection(graph: SchemaGraph, source: Endpoint, target: Endpoint) -> Tuple[bool, str]:
    """Check whether ``source`` may be linked to ``target``.

    Returns:
        Tuple of (is_valid, error_reason)
    """
    if source.side is not Side.SOURCE:
        return False, f"Source endpoint {source} must use an outgoing port"
    if target.side is not Side.TARGET:
        return False, f"Target endpoint {target} must use an incoming port"
    if source.table_id == target.table_id:
        return False, f"Table {source.table_id} cannot be linked to itself"

    source_table = graph.table(source.table_id)
    if source_table is None:
        return False, f"Unknown source table: {source.table_id}"
    target_table = graph.table(target.table_id)
    if target_table is None:
        return False, f"Unknown target table: {target.table_id}"
    if source_table.get_field(source.field_id) is None:
        return False, f"Unknown field {source.field_id} in table {source.table_id}"
    if target_table.get_field(target.field_id) is None:
        return False, f"Unknown field {target.field_id} in table {target.table_id}"

    # The base table only exposes outgoing ports
    if target_table.base_table:
        return False, f"Base table {target.table_id} cannot be a link target"

    return True, ""


def _coerce_endpoint(value: Endpoint | str) -> Endpoint | None:
    if isinstance(value, Endpoint):
        return value
    try:
        return Endpoint.parse(value)
    except ValueError:
        return None


def upsert_link(
    graph: SchemaGraph,
    source: Endpoint | str,
    target: Endpoint | str,
    relation: str | None = None,
    link_id: str | None = None,
    default_relation: str = Relation.EQUAL.value,
) -> tuple[SchemaGraph, LinkInfo | None]:
    """Create or update the link between two endpoints.

    An existing link is found by ``link_id`` when given (reconnection), else by
    its exact (source, target) pair; it is updated in place. Otherwise a new
    link with a generated id is appended, taking ``default_relation`` when
    ``relation`` is not given. An update without ``relation`` keeps the
    current one. Invalid endpoints leave the graph untouched and return
    ``None`` for the link.
    """
    source_ep = _coerce_endpoint(source)
    target_ep = _coerce_endpoint(target)
    if source_ep is None or target_ep is None:
        logger.warning(f"Rejected link with malformed endpoints: {source!r} -> {target!r}")
        return graph, None

    ok, reason = validate_connection(graph, source_ep, target_ep)
    if not ok:
        logger.warning(f"Rejected link {source_ep} -> {target_ep}: {reason}")
        return graph, None

    index = -1
    if link_id is not None:
        index = next((i for i, item in enumerate(graph.links) if item.id == link_id), -1)
    if index == -1:
        index = next(
            (i for i, item in enumerate(graph.links) if item.pair == (source_ep, target_ep)),
            -1,
        )

    links = list(graph.links)
    if index == -1:
        link = LinkInfo(
            id=link_id or str(uuid.uuid4()),
            source=source_ep,
            target=target_ep,
            relation=relation or default_relation,
        )
        link = with_link_names(graph, link)
        links.append(link)
        logger.info(f"Added link {link.id}: {source_ep} -> {target_ep} ({link.relation})")
    else:
        current = links[index]
        link = with_link_names(
            graph,
            replace(
                current,
                source=source_ep,
                target=target_ep,
                relation=relation or current.relation,
            ),
        )
        links[index] = link
        logger.info(f"Updated link {link.id}: {source_ep} -> {target_ep} ({link.relation})")

    return replace(graph, links=tuple(links)), link


def delete_link(graph: SchemaGraph, link_id: str) -> SchemaGraph:
    links = tuple(item for item in graph.links if item.id != link_id)
    if len(links) == len(graph.links):
        return graph
    logger.info(f"Deleted link {link_id}")
    return replace(graph, links=links)


def delete_table(graph: SchemaGraph, table_id: str) -> SchemaGraph:
    """Remove a table and every link with an endpoint in it."""
    tables = tuple(item for item in graph.tables if item.id != table_id)
    if len(tables) == len(graph.tables):
        return graph
    links = tuple(item for item in graph.links if not item.touches(table_id))
    logger.info(f"Deleted table {table_id} and {len(graph.links) - len(links)} links")
    return replace(graph, tables=tables, links=links)


def add_table(graph: SchemaGraph, table: TableInfo) -> SchemaGraph:
    if graph.table(table.id) is not None:
        raise SchemaValidationError(f"Table '{table.id}' already exists")
    field_ids = [item.id for item in table.fields]
    if len(set(field_ids)) != len(field_ids):
        raise SchemaValidationError(f"Table '{table.id}' has duplicate field ids")
    if table.base_table:
        # Keep the single-base invariant for tables added already flagged
        tables = tuple(replace(item, base_table=False) for item in graph.tables)
    else:
        tables = graph.tables
    logger.info(f"Added table {table.id} with {len(table.fields)} fields")
    return replace(graph, tables=tables + (table,))


def set_collapsed(graph: SchemaGraph, table_id: str, collapsed: bool) -> SchemaGraph:
    if graph.table(table_id) is None:
        raise SchemaValidationError(f"Table '{table_id}' was not found")
    tables = tuple(
        replace(item, collapsed=collapsed) if item.id == table_id else item
        for item in graph.tables
    )
    return replace(graph, tables=tables)
