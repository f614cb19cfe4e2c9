from __future__ import annotations

from dataclasses import replace
import logging
from typing import Mapping

from .model import Position, SchemaGraph, TableInfo

logger = logging.getLogger(__name__)


def relation_counts(graph: SchemaGraph) -> dict[str, int]:
    """Number of link endpoints touching each table.

    A link between the same pair of tables twice counts twice.
    """
    counts: dict[str, int] = {}
    for link in graph.links:
        counts[link.source.table_id] = counts.get(link.source.table_id, 0) + 1
        counts[link.target.table_id] = counts.get(link.target.table_id, 0) + 1
    return counts


def linked_field_ids(graph: SchemaGraph) -> dict[str, set[str]]:
    linked: dict[str, set[str]] = {}
    for link in graph.links:
        linked.setdefault(link.source.table_id, set()).add(link.source.field_id)
        linked.setdefault(link.target.table_id, set()).add(link.target.field_id)
    return linked


def _linked_first(table: TableInfo, linked: set[str]) -> TableInfo:
    if not linked:
        return table
    first = [item for item in table.fields if item.id in linked]
    rest = [item for item in table.fields if item.id not in linked]
    return replace(table, fields=tuple(first + rest))


def resort(graph: SchemaGraph, positions: Mapping[str, Position] | None = None) -> SchemaGraph:
    """Return ``graph`` with linked fields first and busiest tables first.

    ``positions`` carries the client's last on-screen coordinates keyed by
    table id; they are written into the table records before reordering so a
    full view rebuild keeps the layout. Both orderings are stable, which makes
    the pass idempotent.
    """
    positions = positions or {}
    counts = relation_counts(graph)
    linked = linked_field_ids(graph)

    tables: list[TableInfo] = []
    for table in graph.tables:
        if table.id in positions:
            table = replace(table, position=positions[table.id])
        tables.append(_linked_first(table, linked.get(table.id, set())))

    # sorted() is stable, so ties keep their prior order
    tables = sorted(tables, key=lambda item: counts.get(item.id, 0), reverse=True)

    logger.debug(f"Resorted {len(tables)} tables over {len(graph.links)} links")
    return replace(graph, tables=tuple(tables))
